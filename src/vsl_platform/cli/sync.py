"""
Command-line interface for dictionary index maintenance.

Usage:
    # Create database tables and the search index
    python -m vsl_platform.cli.sync init

    # Push every unsynced entry to the index once
    python -m vsl_platform.cli.sync reconcile

    # Rebuild the whole index from the store
    python -m vsl_platform.cli.sync reindex

    # Show sync counters and unsynced entries
    python -m vsl_platform.cli.sync status
"""

import argparse
import json
import sys
from typing import Dict, List, Optional

import structlog

from vsl_platform.dictionary.database import create_all_tables
from vsl_platform.dictionary.synchronizer import (
    IndexSynchronizer,
    SyncOutcome,
    create_index_synchronizer,
)
from vsl_platform.errors import ServiceError
from vsl_platform.logging_config import setup_logging


# Setup logging
setup_logging()
logger = structlog.get_logger(__name__)


# ============================================================================
# CLI FUNCTIONS
# ============================================================================

def run_sweeps(synchronizer: IndexSynchronizer, reindex: bool = False) -> Dict[str, int]:
    """
    Enqueue unsynced entries and process them on this thread until a sweep
    makes no progress.

    Retries are not waited for; anything left unsynced is picked up by the
    service's periodic sweep.

    Returns:
        Outcome counts keyed by outcome name
    """
    totals: Dict[str, int] = {}
    enqueued = synchronizer.reindex_all() if reindex else synchronizer.reconcile()

    while enqueued:
        outcomes = synchronizer.drain()
        for outcome, count in outcomes.items():
            totals[outcome.value] = totals.get(outcome.value, 0) + count
        if not outcomes.get(SyncOutcome.SYNCED):
            break
        enqueued = synchronizer.reconcile()

    return totals


def command_init(synchronizer: IndexSynchronizer) -> int:
    create_all_tables()
    try:
        created = synchronizer.ensure_index()
    except ServiceError as e:
        logger.error("init_index_failed", **e.failure.to_log_fields())
        return 1
    print(json.dumps({"tables": "ok", "index_created": created}))
    return 0


def command_reconcile(synchronizer: IndexSynchronizer, reindex: bool) -> int:
    totals = run_sweeps(synchronizer, reindex=reindex)
    remaining = synchronizer.status().unsynced_entries
    print(json.dumps({"outcomes": totals, "unsynced_remaining": remaining}))
    return 0 if remaining == 0 else 2


def command_status(synchronizer: IndexSynchronizer) -> int:
    print(synchronizer.status().model_dump_json(indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vsl-sync",
        description="Maintain the dictionary search index"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init", help="Create database tables and the search index")
    subparsers.add_parser("reconcile", help="Index every entry whose synced flag is false")
    subparsers.add_parser("reindex", help="Mark every entry unsynced and index it again")
    subparsers.add_parser("status", help="Print synchronizer status")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    synchronizer = create_index_synchronizer()

    if args.command == "init":
        return command_init(synchronizer)
    if args.command == "reconcile":
        return command_reconcile(synchronizer, reindex=False)
    if args.command == "reindex":
        return command_reconcile(synchronizer, reindex=True)
    return command_status(synchronizer)


if __name__ == "__main__":
    sys.exit(main())
