#!/usr/bin/env python3
"""
Mood pipeline orchestrator.

Processes tracked entities through an asyncio queue strictly one at a time:
fetch headlines, analyze, normalize, write the latest and historical
snapshots. Successive analysis calls are spaced by an awaited pacing interval
so one run stays under the remote API's per-minute quota. Per-entity failures
are recorded and never abort the run; the combined store is written at the
end with whatever data is available.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, Optional

from .analysis.normalizer import ResponseNormalizer
from .exceptions import ENTITY_ERRORS, FetchError
from .feed_fetcher import FeedFetcher
from .models.entity import EntityConfig
from .models.record import AnalysisRecord
from .store import MoodStore, Store, merge
from .time_slots import TimeSlotAligner

logger = logging.getLogger(__name__)

DEFAULT_PACING_SECONDS = 65.0


@dataclass
class RunResult:
    """Accumulator threaded through one orchestrator run."""
    updated: Dict[str, AnalysisRecord] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)
    # Skipped entities that also had no prior record to keep
    missing: Dict[str, str] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    store: Store = field(default_factory=dict)
    updated_at: str = ""
    slot_label: str = ""

    @property
    def exit_code(self) -> int:
        return 1 if self.failed or self.missing else 0

    def summary(self) -> str:
        return (f"{len(self.updated)} updated, {len(self.skipped)} skipped, "
                f"{len(self.failed)} failed")


class Orchestrator:
    """Runs the fetch -> analyze -> normalize -> persist pipeline sequentially."""

    def __init__(self, fetcher: FeedFetcher, client, normalizer: ResponseNormalizer,
                 store: MoodStore, aligner: TimeSlotAligner,
                 pacing_seconds: float = DEFAULT_PACING_SECONDS,
                 deadline_seconds: Optional[float] = None,
                 sleep: Optional[Callable[[float], Awaitable[None]]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 llm_logger=None):
        """
        Initialize orchestrator.

        Args:
            client: Object with an async analyze(entity, headlines) -> str
            pacing_seconds: Minimum spacing between analysis call starts
            deadline_seconds: Stop starting new entities after this long
            sleep: Awaitable used for pacing (asyncio.sleep by default)
            clock: Monotonic clock used for pacing and the deadline
        """
        self.fetcher = fetcher
        self.client = client
        self.normalizer = normalizer
        self.store = store
        self.aligner = aligner
        self.pacing_seconds = max(0.0, float(pacing_seconds))
        self.deadline_seconds = deadline_seconds
        self._sleep = sleep or asyncio.sleep
        self._clock = clock
        self.llm_logger = llm_logger
        self._last_call_started: Optional[float] = None

    async def _pace(self, entity_id: str) -> None:
        """Wait out the remainder of the pacing interval since the previous analysis call."""
        if self._last_call_started is None or self.pacing_seconds <= 0:
            return
        remaining = self.pacing_seconds - (self._clock() - self._last_call_started)
        if remaining > 0:
            logger.info(f"Pacing: waiting {remaining:.0f}s before analyzing {entity_id}")
            await self._sleep(remaining)

    async def _process(self, entity: EntityConfig, result: RunResult) -> None:
        try:
            headlines = await asyncio.to_thread(self.fetcher.fetch, entity.feed_url)
        except FetchError as e:
            logger.warning(f"Skipping {entity.id}: feed {e.reason} ({entity.feed_url})")
            result.skipped[entity.id] = e.reason
            return

        await self._pace(entity.id)
        self._last_call_started = self._clock()

        try:
            raw_text = await self.client.analyze(entity, headlines)
            record = self.normalizer.normalize(entity.id, raw_text, entity=entity, updated_at=result.updated_at)
        except ENTITY_ERRORS as e:
            logger.error(f"Failed to update {entity.id}: {e}")
            result.failed[entity.id] = str(e)
            if self.llm_logger:
                self.llm_logger.log_error(entity.id, type(e).__name__, str(e))
            return

        try:
            self.store.write_latest(record)
            self.store.write_history(record, result.slot_label)
        except OSError as e:
            logger.error(f"Failed to write {entity.id} snapshots: {e}")
            result.failed[entity.id] = f"write failed: {e}"
            return

        if self.llm_logger:
            self.llm_logger.log_record(entity.id, record.to_dict())

        result.updated[entity.id] = record
        logger.info(f"Updated {entity.id}: {record.mood} / {record.topic_word} ({record.intensity} bpm)")

    async def run(self, entities: Iterable[EntityConfig], now: Optional[datetime] = None,
                  tracked_ids: Optional[Iterable[str]] = None) -> RunResult:
        """
        Process entities and write the combined store.

        Args:
            entities: Entities to process this run, in order
            now: Override for the current time (slot alignment only)
            tracked_ids: Ids kept in the combined store; defaults to the
                processed entities

        Returns:
            RunResult with per-entity outcomes and the merged store
        """
        entities = list(entities)
        tracked = list(tracked_ids) if tracked_ids is not None else [entity.id for entity in entities]

        result = RunResult()
        result.updated_at, result.slot_label = self.aligner.aligned_timestamp(now)
        logger.info(f"Starting run for {len(entities)} entities at slot {result.updated_at}")

        existing = self.store.load()

        queue: asyncio.Queue = asyncio.Queue()
        for entity in entities:
            queue.put_nowait(entity)

        started = self._clock()
        self._last_call_started = None

        while not queue.empty():
            entity = queue.get_nowait()
            if self.deadline_seconds is not None and self._clock() - started > self.deadline_seconds:
                logger.error(f"Run deadline of {self.deadline_seconds:g}s exceeded, not starting {entity.id}")
                result.failed[entity.id] = "deadline exceeded"
            else:
                await self._process(entity, result)
            queue.task_done()

        for entity_id, reason in result.skipped.items():
            if entity_id not in existing:
                logger.warning(f"{entity_id} was skipped ({reason}) and has no prior data")
                result.missing[entity_id] = reason

        result.store = merge(existing, result.updated, tracked)
        self.store.write_combined(result.store)

        log = logger.warning if result.failed else logger.info
        log(f"Run finished: {result.summary()}")
        return result
