import json

from screensense.popup import STATE_FILE, PopupPublisher


def test_publish_and_hide_write_state(tmp_path, logger):
    path = tmp_path / "data" / STATE_FILE
    publisher = PopupPublisher(logger, path)

    publisher.publish({"aiStatus": "pending", "fileName": "a.png"})
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "visible": True,
        "payload": {"aiStatus": "pending", "fileName": "a.png"},
    }

    publisher.hide()
    state = json.loads(path.read_text(encoding="utf-8"))
    assert state["visible"] is False
    assert state["payload"]["fileName"] == "a.png"
    assert [p.name for p in path.parent.iterdir()] == [STATE_FILE]


def test_listeners_called_in_order(logger):
    publisher = PopupPublisher(logger)
    seen = []
    publisher.add_listener(lambda payload, visible: seen.append((payload["n"], visible)))
    publisher.publish({"n": 1})
    publisher.publish({"n": 2})
    assert seen == [(1, True), (2, True)]
    assert publisher.latest == {"n": 2}


def test_failing_listener_does_not_block_others(logger, caplog):
    publisher = PopupPublisher(logger)
    seen = []

    def broken(payload, visible):
        raise RuntimeError("renderer crashed")

    publisher.add_listener(broken)
    publisher.add_listener(lambda payload, visible: seen.append(payload))
    publisher.publish({"n": 1})

    assert seen == [{"n": 1}]
    assert "Popup listener failed" in caplog.text
