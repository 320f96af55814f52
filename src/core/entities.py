#!/usr/bin/env python3
"""
Tracked entity registry.

Loads the external list of (id, displayName, feedUrl) tuples and provides
localized display names for well known country codes.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Iterable

from .exceptions import ConfigError
from .models.entity import EntityConfig

logger = logging.getLogger(__name__)

# Localized display names used when an entity config does not carry its own
COUNTRY_NAMES: Dict[str, Dict[str, str]] = {
    'KR': {'en': 'South Korea', 'ko': '대한민국', 'zh': '韩国', 'ja': '韓国'},
    'US': {'en': 'United States', 'ko': '미국', 'zh': '美国', 'ja': 'アメリカ'},
    'JP': {'en': 'Japan', 'ko': '일본', 'zh': '日本', 'ja': '日本'},
    'CN': {'en': 'China', 'ko': '중국', 'zh': '中国', 'ja': '中国'},
    'UK': {'en': 'United Kingdom', 'ko': '영국', 'zh': '英国', 'ja': 'イギリス'},
    'RU': {'en': 'Russia', 'ko': '러시아', 'zh': '俄罗斯', 'ja': 'ロシア'},
    'DE': {'en': 'Germany', 'ko': '독일', 'zh': '德国', 'ja': 'ドイツ'},
    'FR': {'en': 'France', 'ko': '프랑스', 'zh': '法国', 'ja': 'フランス'},
}


def localized_display_name(entity: Optional[EntityConfig], entity_id: str, language: str) -> str:
    """Localized name for an entity, falling back to the built-in country table."""
    fallback = COUNTRY_NAMES.get(entity_id.upper(), {})
    if entity is not None:
        return entity.localized_name(language, fallback)
    return fallback.get(language) or entity_id


def parse_entities(items: Iterable[dict]) -> List[EntityConfig]:
    """Build EntityConfig objects, rejecting duplicates and malformed entries."""
    entities: List[EntityConfig] = []
    seen = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ConfigError('entities', f"entry {index} is not an object")
        try:
            entity = EntityConfig.from_dict(item)
        except ValueError as e:
            raise ConfigError('entities', f"entry {index}: {e}")
        if entity.id in seen:
            raise ConfigError('entities', f"duplicate entity id {entity.id!r}")
        seen.add(entity.id)
        entities.append(entity)
    return entities


def load_entities(path) -> List[EntityConfig]:
    """
    Load tracked entities from a JSON file.

    Accepts either a list of entity objects or an object keyed by entity id
    (the value holding the remaining fields).

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    entities_path = Path(path)
    if not entities_path.exists():
        raise ConfigError('PULSE_ENTITIES_FILE', f"entities file not found: {entities_path}")

    try:
        with open(entities_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError('PULSE_ENTITIES_FILE', f"cannot read {entities_path}: {e}")

    if isinstance(raw, dict):
        raw = [dict(value, id=key) for key, value in raw.items() if isinstance(value, dict)]
    if not isinstance(raw, list):
        raise ConfigError('PULSE_ENTITIES_FILE', "expected a list or an object of entities")

    entities = parse_entities(raw)
    if not entities:
        raise ConfigError('PULSE_ENTITIES_FILE', "no entities configured")

    logger.info(f"Loaded {len(entities)} tracked entities from {entities_path}")
    return entities


def select_entities(entities: List[EntityConfig], ids: Optional[Iterable[str]]) -> List[EntityConfig]:
    """Restrict entities to the given ids, preserving configuration order."""
    if not ids:
        return entities
    wanted = {entity_id.strip() for entity_id in ids}
    unknown = wanted - {entity.id for entity in entities}
    if unknown:
        raise ConfigError('entities', f"unknown entity id(s): {', '.join(sorted(unknown))}")
    return [entity for entity in entities if entity.id in wanted]
