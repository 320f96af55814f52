#!/usr/bin/env python3
"""
Tracked entity data model.

An entity is a country or a company/topic whose news feed is analyzed on
every scheduled run.
"""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

# Ordered headline strings from one fetch, feed order, never persisted
HeadlineSet = List[str]


@dataclass(frozen=True)
class EntityConfig:
    """Externally supplied (id, display name, feed URL) tuple."""
    id: str
    display_name: str
    feed_url: str
    localized_names: Dict[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        """Validate identity fields."""
        if not self.id or not self.id.strip():
            raise ValueError("EntityConfig.id must be a non-empty string")
        if not self.feed_url or not self.feed_url.strip():
            raise ValueError(f"EntityConfig {self.id}: feed_url must be a non-empty string")

    def localized_name(self, language: str, fallback_names: Optional[Dict[str, str]] = None) -> str:
        """Display name for a language: explicit mapping, then fallback table, then display name."""
        if self.localized_names.get(language):
            return self.localized_names[language]
        if fallback_names and fallback_names.get(language):
            return fallback_names[language]
        return self.display_name or self.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            'id': self.id,
            'displayName': self.display_name,
            'feedUrl': self.feed_url,
        }
        if self.localized_names:
            data['localizedNames'] = dict(self.localized_names)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntityConfig':
        """Create EntityConfig from a configuration mapping (camelCase or snake_case keys)."""
        entity_id = str(data.get('id') or data.get('code') or '').strip()
        return cls(
            id=entity_id,
            display_name=str(data.get('displayName') or data.get('display_name') or data.get('name') or entity_id).strip(),
            feed_url=str(data.get('feedUrl') or data.get('feed_url') or data.get('url') or '').strip(),
            localized_names=dict(data.get('localizedNames') or data.get('localized_names') or {}),
        )
