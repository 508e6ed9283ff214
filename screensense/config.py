from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_PROMPT = (
    "Describe the key elements of this screenshot in one sentence, including notable UI, text, and context."
)

DEFAULT_CONFIG: dict[str, Any] = {
    "ai_enabled": True,
    "ai_provider": "openai",
    "ai_model": "gpt-4o-mini",
    "ai_base_url": "https://api.openai.com/v1",
    "ai_max_output_tokens": 200,
    # requests never times out on its own; this is the only bound on an AI call.
    "ai_timeout_seconds": 120,
    "screenshot_folder": str(Path.home() / "Pictures" / "ScreenSense"),
    "log_limit": 100,
    "openai_api_key_env": "OPENAI_API_KEY",
    "capture_shortcut": ["Ctrl+Shift+S", "Ctrl+Alt+S"],
    "image_compression": {
        "enabled": True,
        "max_width": 1920,
        "quality": 80,
    },
    "ai_prompt": (
        "Study this screenshot and provide actionable insight in Markdown with the following sections:\n\n"
        "**Category**: Classify the overall context in ONE word (Work, Code, Communication, Planning, "
        "Entertainment, Browser, Other).\n\n"
        "**What I'm Doing**: Summarize the user's current task or intent in 2 short sentences. "
        "Mention if they appear to be blocked.\n\n"
        "**Key Evidence**:\n"
        "- Highlight 2-3 important UI elements, files, or messages that justify the assessment.\n"
        "- Quote any critical text verbatim when useful.\n\n"
        "**Immediate Suggestions**:\n"
        "- List concrete next steps or quick fixes the user can try now.\n"
        "- Include links or commands only if they are visible in the screenshot.\n\n"
        "**Longer-Term Ideas**:\n"
        "- Provide improvement ideas, optimizations, or learning resources relevant to the task.\n\n"
        "If code is visible, include a fenced code block with the most relevant snippet.\n\n"
        "Finish with a fenced ```assist code block containing JSON like "
        '{"actions":[{"title":"Run tests","command":"npm test","notes":"Copy then run manually."}],'
        '"resources":[{"title":"Docs","url":"https://example.com","reason":"Reference for the tool in use."}]}. '
        "Omit properties that would otherwise be empty."
    ),
    "ai_enhance_prompt": (
        "Deliver a deep-dive review of this screenshot in Markdown:\n\n"
        "## Situation Overview\n"
        "- Describe the end-to-end workflow in progress and why the user is doing it.\n"
        "- Identify blockers, risks, or decision points.\n\n"
        "## Diagnosis\n"
        "- Break down root causes behind any issues, citing on-screen evidence.\n"
        "- Map UI elements to their purpose and any related data/variables.\n\n"
        "## Recommendations\n"
        "- Give step-by-step remedies or improvements, starting with the quickest win.\n"
        "- Suggest tooling, references, or examples that match what is shown.\n\n"
        "## Optimization & Learning\n"
        "- Offer process refinements, automation ideas, or best practices.\n"
        "- Share resources (docs, tutorials, patterns) that would help the user advance.\n\n"
        "## Reference Snippets\n"
        "- Extract the most informative code or command snippets with short explanations.\n\n"
        'Close with a fenced ```assist code block containing JSON describing any follow-up {"actions":[...],'
        '"resources":[...]}. Remind the user in each note that manual confirmation is required before executing.'
    ),
}


@dataclass(frozen=True)
class ImageCompressionSettings:
    enabled: bool = True
    max_width: int = 1920
    quality: int = 80


@dataclass(frozen=True)
class LoggingSettings:
    directory: Path
    level: str = "INFO"


@dataclass(frozen=True)
class AppSettings:
    ai_enabled: bool
    ai_provider: str
    ai_model: str | None
    ai_base_url: str
    ai_prompt: str | None
    ai_enhance_prompt: str | None
    ai_max_output_tokens: int | None
    ai_timeout_seconds: float
    api_key_env: str
    screenshot_folder: Path
    log_limit: int
    capture_shortcut: tuple[str, ...]
    image_compression: ImageCompressionSettings
    logging: LoggingSettings
    data_dir: Path

    @property
    def api_key(self) -> str | None:
        return os.getenv(self.api_key_env) or None


def config_path() -> Path:
    override = os.getenv("SCREENSENSE_CONFIG")
    if override:
        return Path(override).resolve()
    return PROJECT_ROOT / "config.json"


def load_config_data(path: Path | None = None) -> dict[str, Any]:
    """Read the JSON config merged over DEFAULT_CONFIG, creating the file on first run."""
    path = path or config_path()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(DEFAULT_CONFIG, ensure_ascii=False, indent=2), encoding="utf-8")
    raw = json.loads(path.read_text(encoding="utf-8-sig") or "{}")
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return {**DEFAULT_CONFIG, **raw}


def save_config_data(data: dict[str, Any], path: Path | None = None) -> None:
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def get_settings(path: Path | None = None) -> AppSettings:
    load_dotenv(dotenv_path=PROJECT_ROOT / ".env", override=False, encoding="utf-8-sig")
    return build_settings(load_config_data(path))


def build_settings(data: dict[str, Any]) -> AppSettings:
    compression_raw = data.get("image_compression")
    if not isinstance(compression_raw, dict):
        compression_raw = {}

    provider = str(data.get("ai_provider") or "openai").strip().lower()
    model = _optional_str(data.get("ai_model"))
    key_env = _optional_str(data.get("openai_api_key_env"))
    default_env = "OPENAI_API_KEY"
    if provider == "gemini":
        default_env = "GEMINI_API_KEY"
        # The OpenAI defaults merged in from DEFAULT_CONFIG do not apply here.
        if model == DEFAULT_CONFIG["ai_model"]:
            model = None
        if key_env == DEFAULT_CONFIG["openai_api_key_env"]:
            key_env = None

    compression = ImageCompressionSettings(
        enabled=compression_raw.get("enabled") is not False,
        max_width=_positive_int(compression_raw.get("max_width"), 1920),
        quality=_positive_int(compression_raw.get("quality"), 80),
    )

    logging_settings = LoggingSettings(
        directory=Path(os.getenv("LOG_DIR", "logs")).resolve(),
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    return AppSettings(
        ai_enabled=_as_bool(data.get("ai_enabled")),
        ai_provider=provider,
        ai_model=model,
        ai_base_url=str(data.get("ai_base_url") or DEFAULT_CONFIG["ai_base_url"]).rstrip("/"),
        ai_prompt=_optional_str(data.get("ai_prompt")),
        ai_enhance_prompt=_optional_str(data.get("ai_enhance_prompt")),
        ai_max_output_tokens=_positive_int(data.get("ai_max_output_tokens"), None),
        ai_timeout_seconds=float(data.get("ai_timeout_seconds") or 120),
        api_key_env=key_env or default_env,
        screenshot_folder=Path(str(data.get("screenshot_folder") or DEFAULT_CONFIG["screenshot_folder"])).resolve(),
        log_limit=_positive_int(data.get("log_limit"), 100),
        capture_shortcut=_as_shortcuts(data.get("capture_shortcut")),
        image_compression=compression,
        logging=logging_settings,
        data_dir=Path(os.getenv("DATA_DIR", "data")).resolve(),
    )


def _as_bool(raw: Any, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(raw: Any) -> str | None:
    if isinstance(raw, str) and raw.strip():
        return raw
    return None


def _positive_int(raw: Any, default: int | None) -> int | None:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _as_shortcuts(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return ()
    return tuple(str(item).strip() for item in raw if str(item).strip())


def update_config_file(changes: dict[str, Any], path: Path | None = None) -> None:
    """Apply ``changes`` on top of the file's current contents and write it back."""
    path = path or config_path()
    data = load_config_data(path)
    data.update(changes)
    save_config_data(data, path)
