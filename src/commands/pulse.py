#!/usr/bin/env python3
"""
Pulse command endpoints: run the mood pipeline and inspect time slots.
"""

import asyncio
import logging
from argparse import Namespace

from .base import BaseCommand
from core.entities import select_entities
from core.orchestrator import Orchestrator
from core.time_slots import parse_now

logger = logging.getLogger(__name__)


class PulseCommand(BaseCommand):
    """Run the mood pipeline for tracked entities."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute pulse subcommand."""
        try:
            if subcommand == "run":
                return self.run(args)
            elif subcommand == "slot":
                return self.slot(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except (Exception, KeyboardInterrupt) as e:
            return self.handle_error(e, f"pulse {subcommand}")

    def run(self, args: Namespace) -> int:
        """Fetch, analyze and persist every tracked entity."""
        config = self.config

        # Abort before any network activity when the credential is absent
        config.require_api_key()

        if getattr(args, 'verbose', False):
            logging.getLogger().setLevel(logging.DEBUG)

        all_entities = self.entities
        entities = select_entities(all_entities, getattr(args, 'entities', None))
        now = parse_now(getattr(args, 'now', None))
        pacing = 0 if getattr(args, 'no_pacing', False) else config.retry.pacing_seconds

        orchestrator = Orchestrator(
            fetcher=self.feed_fetcher,
            client=self.create_analysis_client(),
            normalizer=self.normalizer,
            store=self.create_store(getattr(args, 'output_dir', None)),
            aligner=self.aligner,
            pacing_seconds=pacing,
            deadline_seconds=config.retry.deadline_seconds,
            llm_logger=self.llm_logger,
        )

        result = asyncio.run(orchestrator.run(
            entities,
            now=now,
            tracked_ids=[entity.id for entity in all_entities],
        ))

        print(f"\n=== Mood Pulse Run ({result.updated_at}) ===")
        for entity_id, record in result.updated.items():
            print(f"  ✅ {entity_id}: {record.mood} / {record.topic_word} ({record.intensity} bpm)")
        for entity_id, reason in result.skipped.items():
            note = ", no prior data" if entity_id in result.missing else ""
            print(f"  ⏭️  {entity_id}: skipped ({reason}{note})")
        for entity_id, reason in result.failed.items():
            print(f"  ❌ {entity_id}: {reason}")
        print(f"\n{result.summary()}, {len(result.store)} entities in store")

        return result.exit_code

    def slot(self, args: Namespace) -> int:
        """Print the aligned timestamp and history label for now (or --now)."""
        timestamp, label = self.aligner.aligned_timestamp(parse_now(getattr(args, 'now', None)))
        print(f"Timestamp: {timestamp}")
        print(f"Label:     {label}")
        return 0
