from __future__ import annotations

import base64
from pathlib import Path
from typing import Any, Callable, List

import google.generativeai as genai
import requests

from .assist import extract_assist_metadata
from .config import DEFAULT_PROMPT, AppSettings
from .imaging import compress_image, sniff_mime
from .models import AssistResult

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_MAX_OUTPUT_TOKENS = 200
NO_DESCRIPTION = "AI returned no description."


class AssistError(RuntimeError):
    """The AI provider could not be reached or rejected the request."""


class AssistClient:
    """Describe a screenshot with a vision model.

    ``settings`` may be a callable returning the current settings so a config
    reload between two calls is picked up without rebuilding the client.
    """

    def __init__(self, settings: AppSettings | Callable[[], AppSettings], log):
        self._settings_source = settings
        self._logger = log

    @property
    def settings(self) -> AppSettings:
        if callable(self._settings_source):
            return self._settings_source()
        return self._settings_source

    def describe(
        self,
        image_path: Path,
        *,
        prompt: str | None = None,
        model: str | None = None,
        max_output_tokens: int | None = None,
    ) -> AssistResult | None:
        settings = self.settings

        if not settings.ai_enabled:
            self._logger.info("AI disabled; skipping description")
            return None

        api_key = settings.api_key
        if not api_key:
            self._logger.warning("AI enabled but %s is not set; skipping description", settings.api_key_env)
            return None

        image_data = self._prepare_image(image_path, settings)

        resolved_prompt = prompt or settings.ai_prompt or DEFAULT_PROMPT
        default_model = DEFAULT_GEMINI_MODEL if settings.ai_provider == "gemini" else DEFAULT_MODEL
        resolved_model = model or settings.ai_model or default_model
        resolved_tokens = max_output_tokens or settings.ai_max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS

        if settings.ai_provider == "gemini":
            parts, echoed_model, response_id = self._generate_gemini(
                api_key=api_key,
                prompt=resolved_prompt,
                image_data=image_data,
                model=resolved_model,
                max_output_tokens=resolved_tokens,
            )
        else:
            parts, echoed_model, response_id = self._create_openai_response(
                settings,
                api_key=api_key,
                prompt=resolved_prompt,
                image_data=image_data,
                model=resolved_model,
                max_output_tokens=resolved_tokens,
            )

        raw_text = " ".join(part for part in parts if part).strip() or NO_DESCRIPTION
        metadata = extract_assist_metadata(raw_text)

        self._logger.info(
            "AI response received (model=%s, actions=%s, resources=%s): %s",
            echoed_model or resolved_model,
            len(metadata.actions),
            len(metadata.resources),
            metadata.cleaned,
        )

        return AssistResult(
            description=metadata.cleaned,
            actions=metadata.actions,
            resources=metadata.resources,
            model=echoed_model or resolved_model,
            response_id=response_id,
        )

    def _prepare_image(self, image_path: Path, settings: AppSettings) -> bytes:
        compression = settings.image_compression
        if not compression.enabled:
            self._logger.info("Image compression disabled, using original")
            return image_path.read_bytes()

        self._logger.info("Compressing image for AI analysis")
        data = compress_image(image_path, compression.max_width, compression.quality)
        original_size = image_path.stat().st_size
        if original_size:
            saved = (1 - len(data) / original_size) * 100
            self._logger.info(
                "Image compressed: %.1fKB -> %.1fKB (saved %.1f%%)",
                original_size / 1024,
                len(data) / 1024,
                saved,
            )
        return data

    def _create_openai_response(
        self,
        settings: AppSettings,
        *,
        api_key: str,
        prompt: str,
        image_data: bytes,
        model: str,
        max_output_tokens: int,
    ) -> tuple[List[str], str | None, str | None]:
        url = f"{settings.ai_base_url}/responses"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        encoded = base64.b64encode(image_data).decode("ascii")
        payload: dict[str, Any] = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": f"data:{sniff_mime(image_data)};base64,{encoded}"},
                    ],
                }
            ],
            "max_output_tokens": max_output_tokens,
        }

        try:
            res = requests.post(url, headers=headers, json=payload, timeout=settings.ai_timeout_seconds)
        except requests.RequestException as exc:
            raise AssistError(f"OpenAI request failed: {exc}") from exc

        if res.status_code >= 400:
            raise AssistError(f"OpenAI HTTP {res.status_code}: {res.text}")

        try:
            data = res.json()
        except ValueError as exc:
            raise AssistError(f"OpenAI returned invalid JSON: {exc}") from exc

        return _openai_text_parts(data), data.get("model"), data.get("id")

    def _generate_gemini(
        self,
        *,
        api_key: str,
        prompt: str,
        image_data: bytes,
        model: str,
        max_output_tokens: int,
    ) -> tuple[List[str], str | None, str | None]:
        try:
            genai.configure(api_key=api_key)
            response = genai.GenerativeModel(model).generate_content(
                [prompt, {"mime_type": sniff_mime(image_data), "data": image_data}],
                generation_config={"max_output_tokens": max_output_tokens},
            )
        except Exception as exc:
            raise AssistError(f"Gemini request failed: {exc}") from exc

        parts: List[str] = []
        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                text = getattr(part, "text", None)
                if isinstance(text, str) and text.strip():
                    parts.append(text.strip())
        return parts, model, None


def _openai_text_parts(data: dict[str, Any]) -> List[str]:
    parts: List[str] = []
    for item in data.get("output") or []:
        if not isinstance(item, dict):
            continue
        for segment in item.get("content") or []:
            if not isinstance(segment, dict):
                continue
            text = segment.get("text")
            if segment.get("type") == "output_text" and isinstance(text, str) and text:
                parts.append(text.strip())
    return parts
