#!/usr/bin/env python3
"""
Paprika Sync CLI
================

Command-line entry point for the local Paprika recipe cache.

USAGE:
    python sync_cli.py sync              # Categories, then recipes
    python sync_cli.py categories        # Category pass only
    python sync_cli.py recipes           # Recipe pass only
    python sync_cli.py recipe UID        # Re-fetch one recipe
    python sync_cli.py push UID          # Send a local recipe to Paprika
    python sync_cli.py delete UID        # Delete remotely and locally
    python sync_cli.py status            # Cache counts and last sync times

Ctrl-C during a recipe pass stops after the current recipe; press it again to
abort immediately.

Credentials come from PAPRIKA_EMAIL / PAPRIKA_PASSWORD or data/secrets.yaml.
"""

import argparse
import json
import signal
import sqlite3
import sys
from typing import List, Optional

from category_store import CategoryStore
from config import DATABASE_PATH, SYNC_CONFIG, validate_credentials
from local_db import LocalDatabase, LocalStoreError
from paprika_client import PaprikaClient, PaprikaClientError
from recipe_store import RecipeStore
from sync_service import (
    LAST_CATEGORY_SYNC_KEY,
    LAST_RECIPE_SYNC_KEY,
    RecipeNotFoundError,
    SyncAbortedError,
    SyncService,
)
from tools.logging_utils import get_logger
from tools.pacing import pacer_from_config
from tools.progress_ui import PAPRIKA_HEADER, SyncProgressUI

logger = get_logger(__name__)

# Errors that end a command with exit code 1
FATAL_ERRORS = (
    SyncAbortedError,
    RecipeNotFoundError,
    PaprikaClientError,
    LocalStoreError,
    sqlite3.Error,
    ValueError,
)


class StopRequest:
    """
    should_stop callback flipped by SIGINT.

    The first Ctrl-C asks the sync loop to stop between recipes; the default
    handler is restored so a second Ctrl-C raises KeyboardInterrupt.
    """

    def __init__(self):
        self.requested = False
        self._previous_handler = None

    def __call__(self) -> bool:
        return self.requested

    def _handle(self, signum, frame) -> None:
        self.requested = True
        logger.warning("🛑 Interrupt received, stopping after the current recipe (Ctrl-C again to abort)")
        signal.signal(signal.SIGINT, self._previous_handler or signal.default_int_handler)

    def install(self) -> None:
        self._previous_handler = signal.signal(signal.SIGINT, self._handle)

    def uninstall(self) -> None:
        if self._previous_handler is not None:
            signal.signal(signal.SIGINT, self._previous_handler)
            self._previous_handler = None


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="paprika-sync",
        description="Sync Paprika recipes and categories into a local SQLite cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  paprika-sync sync
  paprika-sync recipes --no-progress
  paprika-sync recipe 8F6B0E0C-1C2D-4F1A-9E1E-0D9A1B2C3D4E
  paprika-sync status --db /tmp/recipes.db
        """
    )
    parser.add_argument('--db', type=str, default=None,
                        help=f'Cache database path (default: {DATABASE_PATH})')
    parser.add_argument('--no-progress', action='store_true',
                        help='Plain output instead of progress bars')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('sync', help='Sync categories, then recipes')
    subparsers.add_parser('categories', help='Sync categories only')
    subparsers.add_parser('recipes', help='Sync recipes only')
    subparsers.add_parser('status', help='Show cache counts and last sync times')

    for name, help_text in (
        ('recipe', 'Fetch one recipe from Paprika into the cache'),
        ('push', 'Send one cached recipe to Paprika'),
        ('delete', 'Delete one recipe from Paprika and the cache'),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('uid', help='Recipe uid')

    return parser


def show_status(db: LocalDatabase, recipes: RecipeStore, categories: CategoryStore, ui: SyncProgressUI) -> None:
    """Print cache counts and the last pass results."""
    ui.show_status(f"📦 Cache: {db.db_path}")
    trashed = recipes.count(include_trashed=True) - recipes.count()
    ui.show_status(f"🍲 Recipes: {recipes.count()} ({trashed} in trash)")
    ui.show_status(f"📂 Categories: {categories.count()}")

    for label, key in (("Categories", LAST_CATEGORY_SYNC_KEY), ("Recipes", LAST_RECIPE_SYNC_KEY)):
        last_sync = db.get_last_sync(key)
        if last_sync is None:
            ui.show_status(f"🕒 {label} last synced: never")
            continue
        summary = json.loads(db.get_metadata(key) or "{}")
        details = ", ".join(f"{k}={v}" for k, v in summary.items())
        ui.show_status(f"🕒 {label} last synced: {last_sync} ({details})")


def run_command(args: argparse.Namespace, db: LocalDatabase, ui: SyncProgressUI) -> int:
    """Dispatch one subcommand against an open database. Returns the exit code."""
    recipes = RecipeStore(db)
    categories = CategoryStore(db)

    if args.command == 'status':
        show_status(db, recipes, categories, ui)
        return 0

    email, password = validate_credentials()
    with PaprikaClient(email, password) as client:
        service = SyncService(client, recipes, categories, pacer=pacer_from_config(SYNC_CONFIG))

        if args.command in ('sync', 'categories', 'recipes'):
            stop = StopRequest()
            stop.install()
            try:
                with ui:
                    if args.command == 'sync':
                        status = service.sync_all(on_progress=ui.on_progress, should_stop=stop)
                    elif args.command == 'categories':
                        status = service.sync_categories(on_progress=ui.on_progress)
                    else:
                        status = service.sync_recipes(on_progress=ui.on_progress, should_stop=stop)
            finally:
                stop.uninstall()

            title = "Sync Stopped" if stop.requested else "Sync Complete"
            ui.show_summary(status, title=title)
            return 0

        if args.command == 'recipe':
            recipe = service.sync_recipe(args.uid)
            ui.show_status(f"✅ Synced: {recipe.name}")
        elif args.command == 'push':
            action = service.push_recipe(args.uid)
            ui.show_status(f"✅ Remote recipe {action}: {args.uid}")
        elif args.command == 'delete':
            removed = service.delete_recipe(args.uid)
            note = "" if removed else " (was not cached locally)"
            ui.show_status(f"✅ Deleted: {args.uid}{note}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    ui = SyncProgressUI(use_rich=not args.no_progress)
    if args.command != 'status':
        ui.show_status(PAPRIKA_HEADER)

    db = LocalDatabase(args.db or DATABASE_PATH)
    try:
        return run_command(args, db, ui)
    except FATAL_ERRORS as e:
        logger.error(f"❌ {args.command} failed: {e}")
        logger.debug("Failure details", exc_info=True)
        ui.show_status(str(e), "error")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
