#!/usr/bin/env python3
"""
CLI for the phase-scoped knowledge store.

Usage:
    python -m knowledge.cli --help
    python -m knowledge.cli store phase1 output/phase1_analysis.json
    python -m knowledge.cli query phase1 "customer orders" --limit 5
    python -m knowledge.cli cross-query "revenue by segment" --phases phase1,phase2
    python -m knowledge.cli delete phase1,phase2
    python -m knowledge.cli index knowledge/
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config.config_loader import KnowledgeConfig
from .contracts.knowledge_contracts import KnowledgeResult
from .core.exceptions import InputError, KnowledgeError
from .core.logging import configure_logging
from .manager import KnowledgeManager
from .retrieval.indexer import KnowledgeIndexer


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, structured: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level=level, structured=structured)


def split_phases(value: str) -> List[str]:
    """Parse a comma-separated phase list, ignoring blanks."""
    return [p.strip() for p in value.split(",") if p.strip()]


def print_results(results: List[KnowledgeResult], as_json: bool) -> None:
    if as_json:
        print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
        return

    if not results:
        print("No results found")
        return

    for rank, result in enumerate(results, start=1):
        print(f"\n[{rank}] score={result.score:.4f} phase={result.metadata.get('phase')}")
        print("-" * 50)
        print(result.content)


def print_stats(manager: KnowledgeManager) -> None:
    stats = manager.get_knowledge_stats()
    print(f"\nTotal chunks: {stats.total_chunks}")
    for phase, count in sorted(stats.phases.items()):
        print(f"  {phase}: {count}")


def cmd_store(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Store a JSON artifact under a phase."""
    path = Path(args.file)
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {e}", source=str(path)) from e

    if args.replace:
        stored = manager.replace_phase_knowledge(args.phase, payload)
    else:
        stored = manager.store_phase_knowledge(args.phase, payload)

    print(f"Stored {stored} chunks for phase {args.phase}")
    return 0


def cmd_query(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Query one phase."""
    results = manager.retrieve_phase_knowledge(args.phase, args.text, args.limit)
    print_results(results, args.json)
    return 0


def cmd_cross_query(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Query several phases at once."""
    results = manager.retrieve_cross_phase_knowledge(
        args.text, split_phases(args.phases), args.limit
    )
    print_results(results, args.json)
    return 0


def cmd_delete(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Delete the knowledge of one or more phases, then show stats."""
    for phase in split_phases(args.phases):
        deleted = manager.delete_phase_knowledge(phase)
        print(f"Deleted {deleted} chunks for phase {phase}")

    print_stats(manager)
    return 0


def cmd_stats(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Show chunk counts per phase."""
    if args.json:
        print(json.dumps(manager.get_knowledge_stats().to_dict(), indent=2))
    else:
        print_stats(manager)
    return 0


def cmd_index(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Rebuild (or update) the index from a directory of artifacts."""
    indexer = KnowledgeIndexer(
        store=manager.store,
        embedder=manager.embedder,
        chunker=manager.chunker,
        duplicate_threshold=args.knowledge_config.vectorstore.duplicate_threshold,
    )

    if args.command == "update":
        stats = indexer.update_index(Path(args.directory))
    else:
        stats = indexer.index_knowledge_base(Path(args.directory))

    print(f"\nIndexing complete ({stats.mode}):")
    print(f"  Run ID: {stats.run_id}")
    print(f"  Files processed: {stats.files_processed}")
    print(f"  Files skipped: {stats.files_skipped}")
    print(f"  Chunks created: {stats.chunks_created}")
    print(f"  Chunks stored: {stats.chunks_stored}")
    print(f"  Chunks skipped: {stats.chunks_skipped}")
    print(f"  Duration: {stats.duration_seconds}s")

    if stats.errors:
        print(f"  Errors: {len(stats.errors)}")
        for err in stats.errors:
            print(f"    - {err['source']}: {err['error']}")

    return 0


def cmd_export(args: argparse.Namespace, manager: KnowledgeManager) -> int:
    """Export all chunks grouped by phase to a JSON file."""
    path = manager.export_knowledge(Path(args.path))
    print(f"Knowledge exported to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Phase-scoped knowledge store CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--structured-logs", action="store_true", help="Emit JSON log lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # store command
    store_parser = subparsers.add_parser("store", help="Store a JSON artifact under a phase")
    store_parser.add_argument("phase", help="Phase tag")
    store_parser.add_argument("file", help="JSON file with the phase output")
    store_parser.add_argument(
        "--replace", action="store_true", help="Delete the phase's knowledge first"
    )
    store_parser.set_defaults(func=cmd_store)

    # query command
    query_parser = subparsers.add_parser("query", help="Query one phase")
    query_parser.add_argument("phase", help="Phase tag")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument("--limit", type=int, default=5, help="Maximum results (default: 5)")
    query_parser.add_argument("--json", action="store_true", help="Output JSON")
    query_parser.set_defaults(func=cmd_query)

    # cross-query command
    cross_parser = subparsers.add_parser("cross-query", help="Query several phases")
    cross_parser.add_argument("text", help="Query text")
    cross_parser.add_argument("--phases", required=True, help="Comma-separated phase tags")
    cross_parser.add_argument("--limit", type=int, default=5, help="Maximum results (default: 5)")
    cross_parser.add_argument("--json", action="store_true", help="Output JSON")
    cross_parser.set_defaults(func=cmd_cross_query)

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Delete knowledge of phases")
    delete_parser.add_argument("phases", help="Comma-separated phase tags")
    delete_parser.set_defaults(func=cmd_delete)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show chunk counts per phase")
    stats_parser.add_argument("--json", action="store_true", help="Output JSON")
    stats_parser.set_defaults(func=cmd_stats)

    # index / update commands
    index_parser = subparsers.add_parser("index", help="Rebuild the index from artifacts")
    index_parser.add_argument("directory", help="Directory holding pipeline artifacts")
    index_parser.set_defaults(func=cmd_index)

    update_parser = subparsers.add_parser("update", help="Add new artifact chunks to the index")
    update_parser.add_argument("directory", help="Directory holding pipeline artifacts")
    update_parser.set_defaults(func=cmd_index)

    # export command
    export_parser = subparsers.add_parser("export", help="Export all chunks to JSON")
    export_parser.add_argument("path", help="Output file")
    export_parser.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.structured_logs)

    if not args.command:
        parser.print_help()
        return 1

    load_dotenv()

    try:
        args.knowledge_config = KnowledgeConfig.load(Path(args.config) if args.config else None)
        with KnowledgeManager.from_config(args.knowledge_config) as manager:
            return args.func(args, manager)
    except (KnowledgeError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
