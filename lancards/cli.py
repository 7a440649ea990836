"""
LanCards CLI — Cultural Insight Cards from the Command Line
============================================================
Entry point for asking questions by text or voice and managing the
saved destinations.

Usage:
    # List saved destinations and their cards
    python -m lancards.cli destinations

    # Ask a typed question (saved when the destination exists)
    python -m lancards.cli ask Japan "How should I greet my business partner?"

    # Ask by voice: records for up to N seconds, Enter stops early
    python -m lancards.cli record Germany --seconds 8

    # Show registered providers and the configured chain
    python -m lancards.cli providers

    # Check the destinations file for duplicate ids
    python -m lancards.cli validate

    # Upgrade legacy cards in the destinations file
    python -m lancards.cli migrate

    # Launch the API server
    python -m lancards.cli serve --port 8000
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path

from lancards.config import PipelineConfig
from lancards.errors import LanCardsError
from lancards.localization import language_code_for, local_language_text
from lancards.models import CulturalCard, Destination
from lancards.pipeline import VoiceCardPipeline, build_orchestrator, build_session, build_store
from lancards.providers.registry import list_providers
from lancards.transcription import SessionEvent


# ─────────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────────

def print_card(card: CulturalCard):
    category = card.category.title if card.category else card.type.title
    emoji = card.category.emoji if card.category else card.type.emoji
    print(f"\n  {emoji} {card.title}  [{category}]")
    if card.name_card_app:
        local = f" / {card.name_card_local}" if card.name_card_local else ""
        print(f"  ▸ {card.name_card_app}{local}")
        if card.name_card_local:
            code = language_code_for(card.destination)
            print(f"    🔊 {local_language_text(card.bilingual_name)} [{code}]")
    elif card.type and not card.is_ai_generated:
        print(f"  ▸ {card.type.description}")
    for bullet in card.key_knowledge or []:
        print(f"    {bullet}")
    print(f"\n  {card.cultural_insights or card.content}\n")


def _print_progress(progress):
    if progress.phase:
        print(f"  … {progress.phase}")


def _resolve(store, name: str):
    """The stored destination with that name, else the bare name."""
    return store.find_destination(name) or name


# ─────────────────────────────────────────────────────────────
#  Commands
# ─────────────────────────────────────────────────────────────

def cmd_destinations(args, config: PipelineConfig):
    """List saved destinations."""
    store = build_store(config)
    destinations = store.destinations
    print(f"\n☤ ─── Destinations ({len(destinations)}) ───")
    for destination in destinations:
        print(f"  {destination.flag} {destination.name}: {len(destination.cultural_cards)} cards")
        if args.cards:
            for card in destination.cultural_cards:
                print_card(card)


def cmd_ask(args, config: PipelineConfig):
    """Generate a card for a typed question."""
    store = build_store(config)
    orchestrator = build_orchestrator(config)

    destination = _resolve(store, args.destination)
    result = orchestrator.generate_with_report(destination, args.question,
                                               on_progress=_print_progress)
    card = result.card
    print_card(card)

    report = result.report
    if report and report.provider:
        print(f"  ✔ Generated by {report.provider} (extraction: {report.tier.value})")
    if isinstance(destination, Destination) and not args.no_save:
        store.add_card(destination.id, card)
        print(f"  ✔ Saved to {destination.name}")


def cmd_record(args, config: PipelineConfig):
    """Record a spoken question and generate a card for it."""
    store = build_store(config)
    pipeline = VoiceCardPipeline(build_session(config), build_orchestrator(config),
                                 None if args.no_save else store)

    def on_event(event: SessionEvent):
        if event.kind == "partial":
            print(f"\r  🎙  {event.text}", end="", flush=True)
        elif event.kind == "error":
            print(f"\n  ✘ {event.error}")

    pipeline.session.events.subscribe(on_event)

    pipeline.start_recording()
    print(f"  🎙  Recording for up to {args.seconds}s, press Enter to stop...")
    done = threading.Event()
    threading.Thread(target=lambda: (sys.stdin.readline(), done.set()), daemon=True).start()
    done.wait(args.seconds)
    print()

    destination = _resolve(store, args.destination)
    card = pipeline.stop_and_generate(destination, on_progress=_print_progress)
    print(f"  ✔ Heard: {card.question}")
    print_card(card)


def cmd_providers(args, config: PipelineConfig):
    """List available providers and the configured chain."""
    print(f"\n☤ ─── Available Providers ───")
    for name in list_providers():
        print(f"  • {name}")
    chain = " → ".join(c.provider_name for c in config.provider_configs())
    print(f"\n  Chain: {chain}")
    missing = [c.provider_name for c in config.provider_configs()
               if c.provider_name in ("gemini", "openai", "anthropic") and not c.api_key]
    if missing:
        print(f"  No API key for: {', '.join(missing)} (these will be skipped)")


def cmd_validate(args, config: PipelineConfig):
    """Check the destinations file."""
    report = build_store(config).validate()
    if report:
        print("  ✔ No problems found")
        return
    print(f"  ✘ {len(report.problems)} problems:")
    for problem in report.problems:
        print(f"    - {problem}")
    sys.exit(1)


def cmd_migrate(args, config: PipelineConfig):
    """Load (and thereby migrate) the destinations file."""
    store = build_store(config)
    destinations = store.load()
    cards = sum(len(d.cultural_cards) for d in destinations)
    print(f"  ✔ {len(destinations)} destinations, {cards} cards in the current format")
    print(f"  {store.path}")


def cmd_serve(args, config: PipelineConfig):
    """Launch the API server."""
    try:
        import uvicorn  # noqa: F401
    except ImportError:
        print("✘ uvicorn is required for the server.")
        print("  Install it with:  pip install uvicorn fastapi")
        return

    from lancards.server import run_server
    run_server(port=args.port, host=args.host, config=config)


# ─────────────────────────────────────────────────────────────
#  Main
# ─────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="lancards",
        description="LanCards — cultural insight cards from spoken questions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  lancards destinations --cards\n"
            '  lancards ask Japan "How should I greet my business partner?"\n'
            "  lancards record Germany --seconds 8\n"
            "  lancards providers\n"
            "  lancards serve --port 8000\n"
        ),
    )
    parser.add_argument("--data", default=None, help="Destinations file (overrides LANCARDS_DATA_PATH)")
    parser.add_argument("--chain", default=None, help="Provider chain, e.g. gemini,openai,offline")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # destinations
    p_dest = subparsers.add_parser("destinations", help="List saved destinations")
    p_dest.add_argument("--cards", action="store_true", help="Show every card")

    # ask
    p_ask = subparsers.add_parser("ask", help="Generate a card for a typed question")
    p_ask.add_argument("destination", help="Destination name or country")
    p_ask.add_argument("question", help="The question to answer")
    p_ask.add_argument("--no-save", action="store_true", help="Don't save the card")

    # record
    p_rec = subparsers.add_parser("record", help="Ask by voice")
    p_rec.add_argument("destination", help="Destination name or country")
    p_rec.add_argument("--seconds", type=float, default=10.0, help="Maximum recording time")
    p_rec.add_argument("--no-save", action="store_true", help="Don't save the card")

    # providers / validate / migrate
    subparsers.add_parser("providers", help="List available providers")
    subparsers.add_parser("validate", help="Check the destinations file")
    subparsers.add_parser("migrate", help="Upgrade legacy cards")

    # serve
    p_serve = subparsers.add_parser("serve", help="Launch the API server")
    p_serve.add_argument("--port", default=8000, type=int, help="Port number (default: 8000)")
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = PipelineConfig.from_env()
    if args.data:
        config.data_path = Path(args.data).expanduser()
    if args.chain:
        config.provider_chain = [p.strip().lower() for p in args.chain.split(",") if p.strip()]

    commands = {
        "destinations": cmd_destinations,
        "ask": cmd_ask,
        "record": cmd_record,
        "providers": cmd_providers,
        "validate": cmd_validate,
        "migrate": cmd_migrate,
        "serve": cmd_serve,
    }

    if args.command not in commands:
        parser.print_help()
        return

    try:
        commands[args.command](args, config)
    except LanCardsError as e:
        print(f"\n  ✘ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
