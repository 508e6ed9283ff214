"""Split a model's markdown reply into description text and suggested actions/resources.

The prompt asks the model to finish with a fenced ``assist`` block holding JSON::

    ```assist
    {"actions": [{"title": "Run tests", "command": "pytest", "notes": "..."}],
     "resources": [{"title": "Docs", "url": "https://...", "reason": "..."}]}
    ```

Models sometimes tag the block ``json`` instead, so that is accepted as a fallback.
Everything here is pure and never raises on model output.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .models import Action, Resource

MAX_SUGGESTIONS = 5

ASSIST_BLOCK = re.compile(r"```assist\s*([\s\S]*?)```", re.IGNORECASE)
JSON_BLOCK = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


@dataclass
class AssistMetadata:
    cleaned: str
    actions: List[Action] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)


def normalize_action(raw: Any, index: int) -> Optional[Action]:
    if not isinstance(raw, dict):
        return None

    title = _clean(raw.get("title"))
    command = _clean(raw.get("command"))
    notes = _clean(raw.get("notes"))
    if not title and not command:
        return None
    return Action(title=title or f"Action {index + 1}", command=command, notes=notes)


def normalize_resource(raw: Any, index: int) -> Optional[Resource]:
    if not isinstance(raw, dict):
        return None

    title = _clean(raw.get("title"))
    url = _clean(raw.get("url"))
    reason = _clean(raw.get("reason"))
    if not title and not url and not reason:
        return None
    return Resource(title=title or f"Resource {index + 1}", url=url, reason=reason)


def extract_assist_metadata(markdown: str) -> AssistMetadata:
    text = markdown if isinstance(markdown, str) else ""
    match = ASSIST_BLOCK.search(text) or JSON_BLOCK.search(text)
    if not match:
        return AssistMetadata(cleaned=text.strip())

    metadata = _parse_block(match.group(1))
    cleaned = text.replace(match.group(0), "", 1).strip()

    actions = _normalize_all(metadata.get("actions"), normalize_action)
    resources = _normalize_all(metadata.get("resources"), normalize_resource)
    return AssistMetadata(cleaned=cleaned, actions=actions, resources=resources)


def _parse_block(body: str) -> dict[str, Any]:
    try:
        parsed = json.loads(body)
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _normalize_all(raw_items: Any, normalize) -> list:
    if not isinstance(raw_items, list):
        return []
    items = [normalize(item, index) for index, item in enumerate(raw_items)]
    return [item for item in items if item is not None][:MAX_SUGGESTIONS]


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
