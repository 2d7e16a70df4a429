"""Command-line entrypoint and logging setup."""

import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

import structlog

from circuit_assistant.config import (
    get_settings,
    init_api_config,
    override_api_config,
)
from circuit_assistant.errors import ConfigurationError
from circuit_assistant.llm.client import StreamClient


# Third-party loggers that log every request at INFO/DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    log_level: str = "INFO",
    log_file: str = "",
    log_file_max_bytes: int = 10_485_760,
    log_file_backup_count: int = 5,
) -> None:
    """Configure structlog and standard library logging.

    Streamed answers are written to stdout, so console logs always go to
    stderr. The HTTP client libraries stay at WARNING unless DEBUG is asked for.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a JSON log file with rotation. Empty string = console only.
        log_file_max_bytes: Max size per log file before rotation (default: 10 MB)
        log_file_backup_count: Number of rotated backup files to keep (default: 5)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.root
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_path,
            maxBytes=log_file_max_bytes,
            backupCount=log_file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    # A log file gets one JSON object per line; the console gets readable output
    renderer = structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


class ConsoleObserver:
    """Prints streamed fragments under a section header per category."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self._out = out or sys.stdout
        self._err = err or sys.stderr
        self._section: str | None = None

    def _write(self, section: str, fragment: str) -> None:
        if self._section != section:
            prefix = "\n\n" if self._section else ""
            self._out.write(f"{prefix}[{section}]\n")
            self._section = section
        self._out.write(fragment)
        self._out.flush()

    def on_thinking_process(self, fragment: str) -> None:
        self._write("Thinking Process", fragment)

    def on_final_answer(self, fragment: str) -> None:
        self._write("Final Answer", fragment)

    def on_complete(self, full_reasoning: str, full_answer: str) -> None:
        self._out.write("\n")
        self._out.flush()

    def on_error(self, message: str) -> None:
        self._err.write(f"Error during streaming: {message}\n")


def load_context_document(path: str) -> str:
    """Read a serialised circuit file to send along with the question."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read context document {path}: {e}") from e


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="circuit-assistant",
        description="Ask an LLM about a digital circuit and stream its reasoning and answer.",
    )
    parser.add_argument("--api-key", help="Override the resolved API key.")
    parser.add_argument("--base-url", help="Override the resolved API base URL.")
    parser.add_argument("--model", help="Override the resolved model name.")

    commands = parser.add_subparsers(dest="command", required=True)

    ask = commands.add_parser("ask", help="Send a question and stream the response.")
    ask.add_argument("prompt", help="Question for the model.")
    ask.add_argument("--context", metavar="FILE", help="Circuit document to attach.")
    ask.add_argument(
        "--no-stream",
        action="store_true",
        help="Collect the whole response before printing it.",
    )

    commands.add_parser("config", help="Show the effective API configuration.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command-line client."""
    args = _build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    logger.debug("cli_start", command=args.command)

    api_config = init_api_config()
    if args.api_key or args.base_url or args.model:
        api_config = override_api_config(
            api_key=args.api_key,
            base_url=args.base_url,
            model=args.model,
        )

    if args.command == "config":
        print(f"API Key: {api_config.masked_api_key}")
        print(f"Base URL: {api_config.base_url}")
        print(f"Model: {api_config.model}")
        return 0

    try:
        context = load_context_document(args.context) if args.context else None
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 2

    client = StreamClient(settings)
    if args.no_stream:
        response = asyncio.run(client.complete(args.prompt, context))
        if response is None:
            print("No response received.", file=sys.stderr)
            return 1
        print(response)
        return 0

    ok = asyncio.run(client.run(args.prompt, context, ConsoleObserver()))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
