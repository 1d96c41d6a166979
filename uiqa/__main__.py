"""Command-line entry point (``python -m uiqa`` / ``uiqa``).

GitHub Action inputs arrive as ``INPUT_*`` env vars; flags given here
override them.

Usage:
    uiqa --mode detect
    uiqa --mode analyze --pr-number 42 --comment-id 123456
    uiqa --mode request --figma-links '["https://www.figma.com/design/KEY/Page"]'
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from .config import AI_PROVIDERS, MODES, load_config
from .exceptions import ConfigurationError, UIQAError
from .logging_config import get_action_logger
from .modes import run_mode


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="uiqa",
        description="Compare PR screenshots against the Figma designs linked from Jira",
    )
    parser.add_argument("--mode", choices=MODES, help="Operation to run (default: INPUT_MODE)")
    parser.add_argument("--pr-number", help="Pull request number (default: from the event payload)")
    parser.add_argument("--comment-id", help="Triggering comment id (analyze mode)")
    parser.add_argument("--figma-links", help="Design links for request mode (JSON array or comma list)")
    parser.add_argument("--ai-provider", choices=AI_PROVIDERS, help="AI collaborator backend")
    parser.add_argument("--annotations-dir", help="Write annotated screenshots to this directory")
    parser.add_argument(
        "--figma-mock-mode", action="store_const", const="true", default=None,
        help="Use a placeholder image instead of calling the Figma API",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger = get_action_logger()

    overrides = {
        "mode": args.mode,
        "pr_number": args.pr_number,
        "comment_id": args.comment_id,
        "figma_links": args.figma_links,
        "ai_provider": args.ai_provider,
        "annotations_dir": args.annotations_dir,
        "figma_mock_mode": args.figma_mock_mode,
    }

    try:
        config = load_config({k: v for k, v in overrides.items() if v is not None})
        logger.info(f"Configuration: {config.as_dict()}")
        result = asyncio.run(run_mode(config))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        print(f"::error::{e}")
        return 1
    except UIQAError as e:
        logger.error(f"UI QA Agent failed: {e}")
        print(f"::error::{e}")
        return 1

    if result.skipped:
        print(f"::notice::{result.skipped}")
    logger.info("UI QA Agent completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
