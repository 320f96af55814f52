#!/usr/bin/env python3
"""
Store command endpoints for inspecting persisted mood data.
"""

import json
import logging
from argparse import Namespace

from .base import BaseCommand

logger = logging.getLogger(__name__)


class StoreCommand(BaseCommand):
    """Inspect the combined store and historical snapshots."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute store subcommand."""
        try:
            if subcommand == "show":
                return self.show(args)
            elif subcommand == "history":
                return self.history(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except (Exception, KeyboardInterrupt) as e:
            return self.handle_error(e, f"store {subcommand}")

    def show(self, args: Namespace) -> int:
        """Print one line per entity in the combined store."""
        store = self.create_store(getattr(args, 'output_dir', None))
        records = store.load()

        if getattr(args, 'json', False):
            print(json.dumps({entity_id: record.to_dict() for entity_id, record in records.items()},
                             ensure_ascii=False, indent=2))
            return 0

        print(f"\n=== Mood Store ({store.combined_path}) ===")
        if not records:
            print("  (empty)")
            return 0

        for entity_id, record in sorted(records.items()):
            topics = ', '.join(record.sub_topics) or '-'
            print(f"  {entity_id:<8} {record.mood:<10} {record.intensity:>3} bpm  {record.color}  "
                  f"{record.topic_word} [{topics}]  @ {record.updated_at or 'unknown'}")
        return 0

    def history(self, args: Namespace) -> int:
        """List historical snapshot files for one entity, oldest first."""
        store = self.create_store(getattr(args, 'output_dir', None))
        paths = store.list_history(args.entity)

        print(f"\n=== History for {args.entity} ({len(paths)} snapshots) ===")
        limit = getattr(args, 'limit', None)
        if limit:
            paths = paths[-limit:]
        for path in paths:
            print(f"  {path}")
        return 0
