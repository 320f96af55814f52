#!/usr/bin/env python3
"""
Mood store persistence.

Manages the three output artifacts under the output directory:
- <entityId>.json: latest record per entity
- history/<entityId>_<slotLabel>.json: historical snapshots
- mood.json: combined store of every tracked entity

Writes go through a temporary file and os.replace so that HTTP clients never
observe a half-written file.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .analysis.normalizer import ResponseNormalizer
from .models.record import AnalysisRecord

logger = logging.getLogger(__name__)

COMBINED_FILENAME = 'mood.json'
HISTORY_DIRNAME = 'history'

SAFE_ID_RE = re.compile(r'[^A-Za-z0-9_.-]+')

Store = Dict[str, AnalysisRecord]


def merge(existing: Mapping[str, AnalysisRecord], updates: Mapping[str, AnalysisRecord],
          tracked_ids: Iterable[str]) -> Store:
    """
    Merge this run's updates into the previous store.

    Tracked ids with an update take it; tracked ids without one keep their
    previous entry (or stay absent); untracked ids are dropped. Inputs are
    not modified.
    """
    merged: Store = {}
    for entity_id in tracked_ids:
        if entity_id in updates:
            merged[entity_id] = updates[entity_id]
        elif entity_id in existing:
            merged[entity_id] = existing[entity_id]

    pruned = sorted(set(existing) - set(merged) - set(updates))
    if pruned:
        logger.info(f"Pruned untracked entities from store: {', '.join(pruned)}")
    return merged


def safe_filename_part(value: str) -> str:
    """Make an entity id usable inside a filename."""
    cleaned = SAFE_ID_RE.sub('_', value).strip('._')
    return cleaned or '_'


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to path via a temporary file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix='.tmp', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.write('\n')
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class MoodStore:
    """File-backed store of latest, historical and combined records."""

    def __init__(self, output_dir, normalizer: Optional[ResponseNormalizer] = None):
        """
        Initialize store.

        Args:
            output_dir: Directory served to front-end clients
            normalizer: Used to re-validate records read back from disk
        """
        self.output_dir = Path(output_dir)
        self.history_dir = self.output_dir / HISTORY_DIRNAME
        self.combined_path = self.output_dir / COMBINED_FILENAME
        self.normalizer = normalizer or ResponseNormalizer()

    def latest_path(self, entity_id: str) -> Path:
        return self.output_dir / f"{safe_filename_part(entity_id)}.json"

    def history_path(self, entity_id: str, label: str) -> Path:
        return self.history_dir / f"{safe_filename_part(entity_id)}_{label}.json"

    def load(self) -> Store:
        """
        Load the combined store.

        A missing or unreadable file yields an empty store; entries that are
        not objects are skipped. Entries written in the older
        keyword/hashtags shape are upgraded through the normalizer.
        """
        if not self.combined_path.exists():
            logger.info(f"No existing store at {self.combined_path}, starting empty")
            return {}

        try:
            with open(self.combined_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading existing store {self.combined_path}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.error(f"Existing store {self.combined_path} is not an object, ignoring it")
            return {}

        store: Store = {}
        for entity_id, data in raw.items():
            if not isinstance(data, dict):
                logger.warning(f"Skipping malformed store entry for {entity_id}")
                continue
            store[entity_id] = self.normalizer.normalize_data(entity_id, data)

        logger.info(f"Loaded {len(store)} entities from {self.combined_path}")
        return store

    def write_latest(self, record: AnalysisRecord) -> Path:
        path = self.latest_path(record.entity_id)
        write_json_atomic(path, record.to_dict())
        logger.debug(f"Wrote latest record {path}")
        return path

    def write_history(self, record: AnalysisRecord, label: str) -> Path:
        """Write the historical snapshot; a re-run in the same slot overwrites only that slot."""
        path = self.history_path(record.entity_id, label)
        write_json_atomic(path, record.to_dict())
        logger.debug(f"Wrote historical snapshot {path}")
        return path

    def write_combined(self, store: Mapping[str, AnalysisRecord]) -> Path:
        data = {entity_id: record.to_dict() for entity_id, record in store.items()}
        write_json_atomic(self.combined_path, data)
        logger.info(f"Wrote combined store with {len(data)} entities to {self.combined_path}")
        return self.combined_path

    def list_history(self, entity_id: str) -> List[Path]:
        """Historical snapshots for one entity, oldest slot first."""
        if not self.history_dir.exists():
            return []
        prefix = f"{safe_filename_part(entity_id)}_"
        return sorted(
            path for path in self.history_dir.glob(f"{prefix}*.json")
            if path.name[len(prefix):len(prefix) + 1].isdigit()
        )
