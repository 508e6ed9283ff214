"""Metadata extraction from model markdown."""

import json

import pytest

from screensense.assist import (
    MAX_SUGGESTIONS,
    extract_assist_metadata,
    normalize_action,
    normalize_resource,
)
from screensense.models import Action, Resource


def _block(payload, tag="assist"):
    return f"```{tag}\n{json.dumps(payload)}\n```"


class TestExtractAssistMetadata:

    def test_plain_text_is_trimmed_description(self):
        result = extract_assist_metadata("  **Category**: Code\n\nEditing a file.  \n")
        assert result.cleaned == "**Category**: Code\n\nEditing a file."
        assert result.actions == []
        assert result.resources == []

    @pytest.mark.parametrize("text", [
        "",
        "```assist\n{not json}\n```",
        "```assist\n[1, 2, 3]\n```",
        "```assist\n\"just a string\"\n```",
        "```assist\n{\"actions\": \"nope\", \"resources\": 42}\n```",
        "```assist unterminated {\"actions\": []}",
    ])
    def test_malformed_input_never_raises(self, text):
        result = extract_assist_metadata(text)
        assert result.actions == []
        assert result.resources == []

    def test_malformed_block_is_still_removed(self):
        result = extract_assist_metadata("Summary here.\n```assist\n{oops\n```")
        assert result.cleaned == "Summary here."

    def test_unterminated_block_keeps_whole_text(self):
        text = "Summary\n```assist {\"actions\": []}"
        assert extract_assist_metadata(text).cleaned == text.strip()

    def test_assist_block_is_removed_and_parsed(self):
        text = "Working on tests.\n\n" + _block({
            "actions": [{"title": "Run tests", "command": "pytest", "notes": "Copy then run."}],
            "resources": [{"title": "Docs", "url": "https://docs.pytest.org", "reason": "Reference"}],
        }) + "\n"
        result = extract_assist_metadata(text)
        assert result.cleaned == "Working on tests."
        assert result.actions == [Action("Run tests", "pytest", "Copy then run.")]
        assert result.resources == [Resource("Docs", "https://docs.pytest.org", "Reference")]

    def test_json_block_is_fallback(self):
        text = "Desc\n" + _block({"actions": [{"command": "ls"}]}, tag="json")
        result = extract_assist_metadata(text)
        assert result.cleaned == "Desc"
        assert result.actions == [Action("Action 1", "ls", "")]

    def test_assist_block_preferred_over_earlier_json_block(self):
        json_block = _block({"actions": [{"title": "From json"}]}, tag="json")
        assist_block = _block({"actions": [{"title": "From assist"}]})
        result = extract_assist_metadata(f"Intro\n{json_block}\nMore\n{assist_block}")
        assert [a.title for a in result.actions] == ["From assist"]
        assert json_block in result.cleaned
        assert assist_block not in result.cleaned

    def test_tag_matching_is_case_insensitive(self):
        text = "Desc\n```ASSIST\n{\"resources\": [{\"url\": \"https://example.com\"}]}\n```"
        result = extract_assist_metadata(text)
        assert result.resources == [Resource("Resource 1", "https://example.com", "")]

    def test_only_first_assist_block_is_used(self):
        first = _block({"actions": [{"title": "First"}]})
        second = _block({"actions": [{"title": "Second"}]})
        result = extract_assist_metadata(f"A\n{first}\nB\n{second}")
        assert [a.title for a in result.actions] == ["First"]
        assert second in result.cleaned

    def test_lists_are_capped_in_order(self):
        actions = [{"title": f"A{i}", "command": f"cmd {i}"} for i in range(8)]
        resources = [{"title": f"R{i}", "url": f"https://r{i}.example"} for i in range(7)]
        result = extract_assist_metadata(_block({"actions": actions, "resources": resources}))
        assert len(result.actions) == MAX_SUGGESTIONS
        assert [a.title for a in result.actions] == ["A0", "A1", "A2", "A3", "A4"]
        assert [r.title for r in result.resources] == ["R0", "R1", "R2", "R3", "R4"]

    def test_invalid_items_dropped_before_cap(self):
        actions = [{}, {"notes": "only notes"}] + [{"title": f"A{i}"} for i in range(6)]
        result = extract_assist_metadata(_block({"actions": actions}))
        assert [a.title for a in result.actions] == ["A0", "A1", "A2", "A3", "A4"]

    def test_default_titles_use_raw_position(self):
        actions = [{"title": ""}, "garbage", {"command": "make"}]
        result = extract_assist_metadata(_block({"actions": actions}))
        assert result.actions == [Action("Action 3", "make", "")]


class TestNormalize:

    def test_action_requires_title_or_command(self):
        assert normalize_action({"title": "  ", "command": "", "notes": "n"}, 0) is None
        assert normalize_action(None, 0) is None
        assert normalize_action(["title"], 0) is None

    def test_action_strings_are_trimmed(self):
        assert normalize_action({"title": " Build ", "command": " make ", "notes": " ok "}, 0) == Action(
            "Build", "make", "ok"
        )

    def test_action_non_string_fields_count_as_empty(self):
        assert normalize_action({"title": 5, "command": "go test"}, 1) == Action("Action 2", "go test", "")

    def test_resource_dropped_only_when_all_empty(self):
        assert normalize_resource({"title": "", "url": "", "reason": ""}, 0) is None
        assert normalize_resource({"reason": "why"}, 4) == Resource("Resource 5", "", "why")
