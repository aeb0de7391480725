"""
Command line interface for Deep Stock Research.

Loads settings from environment variables (via `.env`), creates a
ResearchOrchestrator, and either runs one subcommand or enters an interactive
loop that turns tickers and company names into research memos.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from stock_research import ConfigurationError, ResearchOrchestrator, Settings, format_blocks
from stock_research.generation_client import GenerationError, verify_credential
from stock_research.model_catalog import ModelCatalogClient, ModelCatalogError
from stock_research.research_state import Failed, RequestState, Succeeded

# --- Logging configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Failed to generate report. Please check your API Key and try again."


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stock-research",
        description="Generate an institutional-grade research memo for a ticker or company name.",
    )
    subparsers = parser.add_subparsers(dest="command")

    research = subparsers.add_parser("research", help="Generate a memo for one subject.")
    research.add_argument("subject", nargs="+", help="Ticker (e.g. AAPL) or company name.")
    research.add_argument("--raw", action="store_true", help="Print the raw Markdown instead of formatted text.")

    set_key = subparsers.add_parser("set-key", help="Save the API key (empty string clears it).")
    set_key.add_argument("value", help="API key value.")

    subparsers.add_parser("check-key", help="Send a short prompt to confirm the API key works.")
    subparsers.add_parser("models", help="List the models the API key can use.")
    return parser


def _print_state(state: RequestState, *, raw: bool = False) -> bool:
    if isinstance(state, Succeeded):
        output = state.raw_text if raw else format_blocks(state.blocks, color=sys.stdout.isatty())
        print(f"\n{output}\n")
        return True
    if isinstance(state, Failed):
        print(f"{FAILURE_PREFIX} {state.message}\n", file=sys.stderr)
        return False
    return False


def _research(orchestrator: ResearchOrchestrator, subject: str, *, raw: bool = False) -> bool:
    logger.info("Processing subject: %s", subject)
    state = asyncio.run(orchestrator.research(subject))
    return _print_state(state, raw=raw)


def _check_key(orchestrator: ResearchOrchestrator) -> bool:
    result = asyncio.run(verify_credential(orchestrator.generation_client, orchestrator.credential))
    if isinstance(result, GenerationError):
        print(f"Key check failed ({result.kind.value}): {result.message}", file=sys.stderr)
        return False
    print(f"Success: {result.text.strip()}")
    return True


def _list_models(orchestrator: ResearchOrchestrator, settings: Settings) -> bool:
    try:
        models = ModelCatalogClient(settings=settings).list_models(orchestrator.credential)
    except ModelCatalogError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return False
    if not models:
        print("No models returned.")
        return True
    print("Available models:")
    for name in models:
        print(name)
    return True


def _interactive(orchestrator: ResearchOrchestrator) -> None:
    """Run the command line loop for the research orchestrator."""
    print(
        "\nWelcome to Deep Stock Research!\n"
        "Type a ticker (e.g. AAPL) or company name and press Enter.  Type 'quit' to exit.\n"
    )

    while True:
        try:
            subject = input("> ").strip()
        except EOFError:
            logger.info("EOF received; exiting.")
            break

        if not subject:
            continue
        if subject.lower() in {"quit", "exit", "q"}:
            logger.info("User requested exit.")
            break

        _research(orchestrator, subject)
        if not orchestrator.credential_required:
            continue

        try:
            key = input("API key (leave blank to skip): ").strip()
        except EOFError:
            break
        if key:
            orchestrator.set_credential(key)

    logger.info("Session ended. Goodbye!")
    print("Goodbye!")


def main(argv: Optional[List[str]] = None) -> int:
    logger.info("Loading environment variables from .env file...")
    load_dotenv()
    args = _build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
        orchestrator = ResearchOrchestrator.from_settings(settings)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    if args.command == "research":
        subject = " ".join(args.subject).strip()
        if not subject:
            print("Error: the subject must not be empty.", file=sys.stderr)
            return 1
        if _research(orchestrator, subject, raw=args.raw):
            return 0
        if orchestrator.credential_required:
            print("Save a key with `set-key <value>` or set RESEARCH_API_KEY.", file=sys.stderr)
        return 1
    if args.command == "set-key":
        persisted = orchestrator.set_credential(args.value)
        print("Key saved." if persisted else "Key kept for this session only (storage unavailable).")
        return 0 if persisted else 1
    if args.command == "check-key":
        return 0 if _check_key(orchestrator) else 1
    if args.command == "models":
        return 0 if _list_models(orchestrator, settings) else 1

    _interactive(orchestrator)
    return 0


if __name__ == "__main__":
    sys.exit(main())
