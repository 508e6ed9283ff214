import pytest

from screensense.hotkeys import DEFAULT_SHORTCUTS, shortcut_candidates, shortcut_display, to_pynput_hotkey


@pytest.mark.parametrize("shortcut, expected", [
    ("Ctrl+Shift+S", "<ctrl>+<shift>+s"),
    ("CmdOrCtrl+Alt+P", "<ctrl>+<alt>+p"),
    ("Ctrl+F9", "<ctrl>+<f9>"),
    ("Shift+PrintScreen", "<shift>+<print_screen>"),
])
def test_to_pynput_hotkey(shortcut, expected):
    assert to_pynput_hotkey(shortcut) == expected


@pytest.mark.parametrize("shortcut", ["", "Ctrl+", "Ctrl++S"])
def test_invalid_shortcut(shortcut):
    with pytest.raises(ValueError):
        to_pynput_hotkey(shortcut)


def test_candidates_fall_back_to_defaults():
    assert shortcut_candidates([" ", ""]) == list(DEFAULT_SHORTCUTS)
    assert shortcut_candidates(["Ctrl+Alt+S "]) == ["Ctrl+Alt+S"]


def test_display_prefers_registered():
    assert shortcut_display("Ctrl+Alt+S", ["Ctrl+Shift+S"]) == "Ctrl+Alt+S"
    assert shortcut_display(None, ["Ctrl+Shift+S"]) == "Ctrl+Shift+S"
