#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
LLM Interaction Logger

Writes prompts, raw model responses and normalized records to a plain debug
file so a run can be inspected afterwards. Enabled by LLM_DEBUG_LOG.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .env_loader import PROJECT_ROOT

logger = logging.getLogger(__name__)


class LLMLogger:
    """Logs model interactions for one run to a debug file."""

    def __init__(self, log_file_path: str = "llm_debug.log"):
        """Initialize the LLM logger.

        Args:
            log_file_path: Path to the debug log file (relative paths resolve
                against the project root)
        """
        path = Path(log_file_path)
        self.log_file_path = path if path.is_absolute() else PROJECT_ROOT / path

        # Each run starts a fresh file
        self._clear_log()

    def _clear_log(self):
        try:
            with open(self.log_file_path, 'w', encoding='utf-8') as f:
                f.write(f"=== LLM DEBUG LOG - {datetime.now().isoformat()} ===\n\n")
        except OSError as e:
            logger.error(f"Failed to clear LLM log file: {e}")

    def _write_section(self, title: str, content: str):
        try:
            with open(self.log_file_path, 'a', encoding='utf-8') as f:
                f.write(f"\n{'=' * 80}\n")
                f.write(f"{title}\n")
                f.write(f"{'=' * 80}\n")
                f.write(f"{content}\n")
        except OSError as e:
            logger.error(f"Failed to write to LLM log file: {e}")

    def log_llm_interaction(self, entity_id: str, prompt: str, response: str):
        """Log prompt and raw response for one entity."""
        content = f"Timestamp: {datetime.now().isoformat()}\n"
        content += f"Entity: {entity_id}\n\n"
        content += "PROMPT:\n"
        content += f"{prompt}\n\n"
        content += "MODEL RESPONSE:\n"
        content += f"{response}\n"

        self._write_section(f"LLM INTERACTION ({entity_id})", content)

    def log_record(self, entity_id: str, record: Dict[str, Any]):
        """Log the normalized record that was persisted."""
        content = f"Timestamp: {datetime.now().isoformat()}\n"
        content += f"Entity: {entity_id}\n\n"
        content += json.dumps(record, indent=2, ensure_ascii=False)

        self._write_section(f"NORMALIZED RECORD ({entity_id})", content)

    def log_error(self, entity_id: str, error_type: str, error_message: str):
        content = f"Timestamp: {datetime.now().isoformat()}\n"
        content += f"Entity: {entity_id}\n"
        content += f"Error Type: {error_type}\n"
        content += f"\nError Message:\n{error_message}\n"

        self._write_section(f"ERROR ({entity_id})", content)


def create_llm_logger(log_file_path: Optional[str]) -> Optional[LLMLogger]:
    """Build a logger when a path is configured, otherwise None."""
    if not log_file_path:
        return None
    return LLMLogger(log_file_path)
