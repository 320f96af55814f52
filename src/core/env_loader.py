#!/usr/bin/env python3
"""
Environment variable loader with .env file support.

Loads KEY=VALUE pairs from a .env file at the project root. Variables that
are already present in the real environment always win.
"""

import os
from pathlib import Path
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def parse_env_lines(lines) -> Dict[str, str]:
    """Parse .env lines into a dict, skipping comments and malformed lines."""
    values: Dict[str, str] = {}
    for line_num, line in enumerate(lines, 1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        if line.startswith('export '):
            line = line[len('export '):].strip()

        if '=' not in line:
            logger.warning(f"Invalid .env format at line {line_num}: {line}")
            continue

        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        values[key] = value
    return values


def load_env_file(env_file_path: Optional[str] = None) -> int:
    """
    Load environment variables from a .env file if it exists.

    Args:
        env_file_path: Explicit path; defaults to ".env" in the project root

    Returns:
        Number of variables that were newly set
    """
    env_path = Path(env_file_path) if env_file_path else PROJECT_ROOT / ".env"

    if not env_path.exists():
        logger.debug(f"No .env file found at {env_path}")
        return 0

    try:
        with open(env_path, 'r', encoding='utf-8') as f:
            values = parse_env_lines(f.readlines())
    except OSError as e:
        logger.error(f"Error loading .env file {env_path}: {e}")
        return 0

    loaded_count = 0
    for key, value in values.items():
        if key not in os.environ:
            os.environ[key] = value
            loaded_count += 1
            logger.debug(f"Loaded {key} from .env")
        else:
            logger.debug(f"Skipped {key} (already in environment)")

    logger.info(f"Loaded {loaded_count} variables from {env_path}")
    return loaded_count


# Auto-load .env file when module is imported
load_env_file()
