from __future__ import annotations

from typing import Iterable, List

DEFAULT_SHORTCUTS = ("Ctrl+Shift+P", "Ctrl+Alt+P")

_MODIFIERS = {
    "ctrl": "<ctrl>",
    "control": "<ctrl>",
    "cmdorctrl": "<ctrl>",
    "commandorcontrol": "<ctrl>",
    "shift": "<shift>",
    "alt": "<alt>",
    "option": "<alt>",
    "cmd": "<cmd>",
    "command": "<cmd>",
    "super": "<cmd>",
    "win": "<cmd>",
}

_NAMED_KEYS = {
    "printscreen": "<print_screen>",
    "prtsc": "<print_screen>",
    "esc": "<esc>",
    "escape": "<esc>",
    "pageup": "<page_up>",
    "pagedown": "<page_down>",
}


def shortcut_candidates(configured: Iterable[str]) -> List[str]:
    candidates = [item.strip() for item in configured if item and item.strip()]
    return candidates or list(DEFAULT_SHORTCUTS)


def shortcut_display(registered: str | None, configured: Iterable[str]) -> str:
    if registered:
        return registered
    candidates = shortcut_candidates(configured)
    return candidates[0] if candidates else "Not set"


def to_pynput_hotkey(shortcut: str) -> str:
    """Convert ``Ctrl+Shift+S`` style accelerators to pynput's ``<ctrl>+<shift>+s``."""
    keys = [part.strip() for part in shortcut.split("+")]
    if not keys or any(not key for key in keys):
        raise ValueError(f"Invalid shortcut: {shortcut!r}")

    converted = []
    for key in keys:
        lowered = key.lower()
        if lowered in _MODIFIERS:
            converted.append(_MODIFIERS[lowered])
        elif lowered in _NAMED_KEYS:
            converted.append(_NAMED_KEYS[lowered])
        elif len(key) == 1:
            converted.append(lowered)
        else:
            converted.append(f"<{lowered}>")
    return "+".join(converted)
