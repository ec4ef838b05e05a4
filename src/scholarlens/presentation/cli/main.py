"""
CLI entry point.

Runs research searches and manages the stored session history.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from scholarlens import __version__
from scholarlens.application.ports.enrichment_port import EnrichmentClientPort
from scholarlens.application.workflows.research_search import ResearchSearchWorkflow
from scholarlens.config import ScholarLensConfig
from scholarlens.domain.errors import (
    ContentUnavailableError,
    NothingToExportError,
    ScholarLensError,
    SourceNotFoundError,
)
from scholarlens.domain.research import TRANSLATION_LANGUAGES, ReaderExtras
from scholarlens.infrastructure.adapters import build_enrichment_client
from scholarlens.infrastructure.stores.export import export_filename
from scholarlens.infrastructure.stores.session_cache_store import QUOTA_WARNING, SessionCacheStore
from scholarlens.utils.logging_config import Logger

# Load local .env automatically for the Gemini key.
load_dotenv(find_dotenv(usecwd=True), override=False)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scholarlens",
        description="ScholarLens - AI-enriched research sessions",
    )

    subparsers = parser.add_subparsers(dest="command", help="available commands")

    search_parser = subparsers.add_parser("search", help="run a research query")
    search_parser.add_argument("query", help="research topic")
    search_parser.add_argument("--json", action="store_true", help="print the full session as JSON")
    search_parser.add_argument(
        "--translate",
        choices=TRANSLATION_LANGUAGES,
        default=None,
        help="also print the summary translated to this language",
    )

    subparsers.add_parser("history", help="list stored research sessions")

    delete_parser = subparsers.add_parser("delete", help="delete a stored session")
    delete_parser.add_argument("timestamp", type=int, help="session timestamp")

    export_parser = subparsers.add_parser("export", help="export stored sessions as JSON")
    export_parser.add_argument("--timestamp", type=int, default=None, help="export one session")
    export_parser.add_argument("--output", "-o", default=None, help="output file or directory")

    open_parser = subparsers.add_parser("open", help="show the full content of one source")
    open_parser.add_argument("timestamp", type=int, help="session timestamp")
    open_parser.add_argument("url", help="source URL")
    open_parser.add_argument(
        "--translate",
        choices=TRANSLATION_LANGUAGES,
        default=None,
        help="print the content translated to this language",
    )
    open_parser.add_argument(
        "--extras", action="store_true", help="also print newspaper snippets and comic captions"
    )

    parser.add_argument("--version", "-v", action="store_true", help="show version")

    return parser


_config: Optional[ScholarLensConfig] = None
_store: Optional[SessionCacheStore] = None
_client: Optional[EnrichmentClientPort] = None


def _get_config() -> ScholarLensConfig:
    global _config
    if _config is None:
        _config = ScholarLensConfig.from_env()
    return _config


def _get_store() -> SessionCacheStore:
    global _store
    if _store is None:
        config = _get_config()
        _store = SessionCacheStore(
            config.db_url,
            max_sessions=config.max_sessions,
            quota_bytes=config.store_quota_bytes,
        )
    return _store


def _get_client() -> EnrichmentClientPort:
    global _client
    if _client is None:
        _client = build_enrichment_client(_get_config())
    return _client


def run_cli(args: Optional[list] = None) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print(f"ScholarLens v{__version__}")
        return 0

    if not parsed.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=_get_config().log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    Logger.init()

    try:
        if parsed.command == "search":
            return asyncio.run(_run_search(parsed))
        if parsed.command == "history":
            return _run_history()
        if parsed.command == "delete":
            return _run_delete(parsed.timestamp)
        if parsed.command == "export":
            return _run_export(parsed)
        if parsed.command == "open":
            return asyncio.run(_run_open(parsed))
        return 0

    except ScholarLensError as e:
        if e.retryable:
            print(f"The search failed: {e}", file=sys.stderr)
            print("You can try again with the same or a different query.", file=sys.stderr)
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1


async def _run_search(parsed: argparse.Namespace) -> int:
    client = _get_client()
    workflow = ResearchSearchWorkflow(client, _get_store())

    def _progress(phase: str, data: dict) -> None:
        if data.get("message") and not parsed.json:
            print(data["message"], file=sys.stderr)

    translated: Optional[str] = None
    try:
        outcome = await workflow.run(parsed.query, on_progress=_progress)
        if parsed.translate:
            translated = await workflow.translate(outcome.session.summary, parsed.translate)
    finally:
        await client.close()

    if outcome.quota_warning:
        print(f"Warning: {QUOTA_WARNING}", file=sys.stderr)
    if outcome.advisory is not None:
        print(f"Notice: {outcome.advisory.message}", file=sys.stderr)

    if parsed.json:
        payload = outcome.to_dict()
        if translated is not None:
            payload["translatedSummary"] = translated
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    session = outcome.session
    print(f"query: {session.query}")
    print(f"timestamp: {session.timestamp}")
    print(f"\n{session.summary}\n")
    if translated is not None:
        print(f"[{parsed.translate}] {translated}\n")
    for index, record in enumerate(session.results, start=1):
        year = record.publication_year or "n.d."
        cover = "cover" if record.cover_image_url else "no cover"
        print(f"{index}. {record.title} ({year}) [{record.rating:.1f}/5, {cover}]")
        print(f"   {record.url}")
        if record.brief_summary:
            print(f"   {record.brief_summary}")
        if record.tags:
            print(f"   tags: {', '.join(record.tags)}")
    return 0


def _run_history() -> int:
    sessions = _get_store().load()
    if not sessions:
        print("No stored research sessions.")
        return 0
    for session in sessions:
        print(f"{session.timestamp}  {session.query}  ({len(session.results)} sources)")
    return 0


def _run_delete(timestamp: int) -> int:
    store = _get_store()
    before = len(store.load())
    remaining = store.delete_by_timestamp(timestamp)
    if len(remaining) == before:
        print(f"No session with timestamp {timestamp}.", file=sys.stderr)
        return 1
    print(f"Deleted session {timestamp}; {len(remaining)} remaining.")
    return 0


def _run_export(parsed: argparse.Namespace) -> int:
    store = _get_store()
    session = None
    if parsed.timestamp is not None:
        session = store.get(parsed.timestamp)
        if session is None:
            print(f"No session with timestamp {parsed.timestamp}.", file=sys.stderr)
            return 1
        content = store.export_one(session)
    else:
        try:
            content = store.export_all()
        except NothingToExportError as e:
            print(str(e), file=sys.stderr)
            return 1

    if not parsed.output:
        print(content)
        return 0

    target = Path(parsed.output)
    if target.is_dir():
        target = target / export_filename(session)
    target.write_text(content, encoding="utf-8")
    print(f"Exported to {target}")
    return 0


async def _run_open(parsed: argparse.Namespace) -> int:
    store = _get_store()
    session = store.get(parsed.timestamp)
    if session is None:
        print(f"No session with timestamp {parsed.timestamp}.", file=sys.stderr)
        return 1

    client = _get_client()
    workflow = ResearchSearchWorkflow(client, store)
    workflow.open_session(session)
    extras: Optional[ReaderExtras] = None
    try:
        content = await workflow.ensure_content(parsed.url)
        if parsed.translate:
            content = await workflow.translate(content, parsed.translate)
        if parsed.extras:
            extras = await workflow.reader_extras(parsed.url)
    except SourceNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 1
    except ContentUnavailableError as e:
        print(f"Could not load the content: {e.reason}", file=sys.stderr)
        print(f"Open the original source instead: {e.url}")
        return 0
    finally:
        await client.close()

    print(content)
    if extras is not None:
        _print_extras(extras)
    return 0


def _print_extras(extras: ReaderExtras) -> None:
    if extras.snippets:
        print("\nIn brief:")
        for snippet in extras.snippets:
            print(f"  {snippet.headline}: {snippet.text}")
    if extras.comic_panels:
        print("\nComic strip:")
        for index, panel in enumerate(extras.comic_panels, start=1):
            print(f"  {index}. {panel.dialogue}")
    if extras.comic_image_url:
        print("  (comic image generated)")


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
