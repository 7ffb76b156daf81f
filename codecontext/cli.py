"""
Command-line entry point and the single top-level error handler.

    codecontext [--quick] [--verbose] [--dry-run] [--output FILE] "query"

Exit code 0 on success or help, 1 on cancellation or any error. Stages never
exit the process; every failure reaches main() as an exception or result.
"""

import argparse
import logging
import sys
from pathlib import Path

from codecontext.agent.graph import build_coordinator
from codecontext.core.config import PROMPT_BOX_WIDTH, load_config
from codecontext.core.errors import ConfigurationError, DispatchFailure, RateLimitReached
from codecontext.schemas.pipeline import PipelineResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codecontext",
        description="Answer a question about a codebase with only the relevant methods as context.",
    )
    parser.add_argument("query", nargs="?", help="Free-text request about the codebase.")
    parser.add_argument("--quick", action="store_true", help="Skip the proposal/validation step.")
    parser.add_argument("--verbose", action="store_true", help="Show retrieval details and full error traces.")
    parser.add_argument("--dry-run", action="store_true", help="Build and show the prompt without calling the API.")
    parser.add_argument("--output", metavar="FILE", help="Write the query and response (or the prompt in dry-run) to FILE.")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration file (default: codecontext.json).")
    parser.add_argument("--max-methods", type=positive_int, metavar="N", help="Maximum number of methods to extract.")
    return parser


def frame_prompt(prompt: str, width: int = PROMPT_BOX_WIDTH) -> str:
    """Frame text in a fixed-width box; long lines are truncated with an ellipsis."""
    inner = width - 4
    lines = ["┌" + "─" * (width - 2) + "┐"]
    for raw in prompt.splitlines() or [""]:
        text = raw if len(raw) <= inner else raw[: inner - 1] + "…"
        lines.append(f"│ {text.ljust(inner)} │")
    lines.append("└" + "─" * (width - 2) + "┘")
    return "\n".join(lines)


def format_output_file(query: str, response: str) -> str:
    return f"# Query\n{query}\n\n# Response\n{response}"


def rate_limit_message(error: RateLimitReached) -> str:
    if error.weekly:
        return (
            f"Weekly usage limit reached ({error.code}). "
            "Wait for the weekly limit window to reset, then retry."
        )
    return f"Rate limit reached ({error.code}). Wait for the limit window to reset, then retry."


def _report(result: PipelineResult, query: str, output: str | None) -> None:
    for warning in result.warnings:
        print(f"Warning: {warning}")
    if result.dry_run:
        print(frame_prompt(result.prompt))
        print(f"Estimated tokens: {result.tokens_estimate}")
        if output:
            Path(output).write_text(result.prompt, encoding="utf-8")
            print(f"Prompt saved to {output}")
        return
    print(result.response)
    if result.usage is not None:
        cached = result.usage.cache_read_input_tokens
        print(
            f"\nTokens: {result.usage.input_tokens} in / {result.usage.output_tokens} out"
            + (f" ({cached} read from cache)" if cached else "")
        )
    if output:
        Path(output).write_text(format_output_file(query, result.response), encoding="utf-8")
        print(f"Response saved to {output}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code in (0, None) else EXIT_FAILURE
    if not args.query or not args.query.strip():
        parser.print_help()
        return EXIT_OK

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.config)
        coordinator = build_coordinator(config)
        result = coordinator.run(
            args.query,
            quick=args.quick,
            dry_run=args.dry_run,
            verbose=args.verbose,
            max_methods=args.max_methods,
        )
        if result.cancelled:
            print(f"Cancelled: {result.reason or 'not approved'}")
            return EXIT_FAILURE
        _report(result, args.query, args.output)
        return EXIT_OK
    except RateLimitReached as e:
        if args.verbose:
            logger.exception("Rate limit reached")
        print(rate_limit_message(e), file=sys.stderr)
    except ConfigurationError as e:
        if args.verbose:
            logger.exception("Configuration error")
        print(f"Configuration error: {e.message}", file=sys.stderr)
    except DispatchFailure as e:
        if args.verbose:
            logger.exception("Dispatch failed")
        print(f"API error: {e.message}", file=sys.stderr)
    except Exception as e:
        if args.verbose:
            logger.exception("Pipeline failed")
        print(f"Error: {e}", file=sys.stderr)
    return EXIT_FAILURE


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
