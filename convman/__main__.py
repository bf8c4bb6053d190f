"""Entry point — python -m convman."""

from __future__ import annotations

import argparse
import asyncio
import sys


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="convman",
        description="Persistent LLM conversations from the terminal",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration YAML (or JSON) file",
        default=None,
    )
    parser.add_argument(
        "-u", "--user",
        help="User ID whose conversations are loaded and saved",
        default="default",
    )
    prompt = parser.add_mutually_exclusive_group()
    prompt.add_argument(
        "-p", "--preset",
        help="Named preset from the config's 'models' table",
        default=None,
    )
    prompt.add_argument(
        "-f", "--prompt-file",
        help="Read the system prompt from this file",
        default=None,
    )
    parser.add_argument(
        "--continue",
        dest="resume",
        action="store_true",
        help="Resume the user's most recent conversation",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    args = parser.parse_args()

    from convman.app import Application
    from convman.errors import ConfigurationError

    try:
        app = Application(
            config_path=args.config,
            user_id=args.user,
            preset=args.preset,
            prompt_file=args.prompt_file,
            resume=args.resume,
        )
        asyncio.run(app.start(verbose=args.verbose))
    except ConfigurationError as exc:
        print(f"convman: {exc}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
