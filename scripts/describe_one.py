from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from screensense.ai_client import AssistClient
from screensense.config import get_settings
from screensense.logging_utils import init_logger


def main() -> None:
    parser = argparse.ArgumentParser(description="Describe one image with the configured AI provider")
    parser.add_argument("--image", required=True)
    parser.add_argument("--model", default=None)
    parser.add_argument("--max-tokens", type=int, default=None)
    parser.add_argument("--enhance", action="store_true", help="Use the enhance prompt")
    parser.add_argument("--no-compress", action="store_true", help="Send the original bytes")
    args = parser.parse_args()

    settings = get_settings()
    if args.no_compress:
        settings = replace(settings, image_compression=replace(settings.image_compression, enabled=False))
    logger = init_logger("describe_one", settings.logging.directory, "INFO")

    client = AssistClient(settings, logger)
    result = client.describe(
        Path(args.image),
        prompt=settings.ai_enhance_prompt if args.enhance else None,
        model=args.model,
        max_output_tokens=args.max_tokens,
    )
    if result is None:
        print("AI skipped (disabled or missing API key)")
        sys.exit(1)

    print("model:", result.model)
    print("response_id:", result.response_id)
    print("description:", result.description)
    print("actions:", json.dumps([a.to_dict() for a in result.actions], ensure_ascii=False, indent=2))
    print("resources:", json.dumps([r.to_dict() for r in result.resources], ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
