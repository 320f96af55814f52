#!/usr/bin/env python3
"""
Analysis record data models.

An AnalysisRecord is the unit persisted per entity: the latest file, the
historical snapshot and each value of the combined store.
"""

from typing import List, Dict, Any
from dataclasses import dataclass, field

MOODS = ('Panic', 'Calm', 'Greed', 'Innovation', 'Conflict')
DEFAULT_MOOD = 'Calm'

MIN_INTENSITY = 40
MAX_INTENSITY = 180
DEFAULT_INTENSITY = 80

DEFAULT_COLOR = '#00F260'
DEFAULT_TOPIC_WORD = 'Unknown'
DEFAULT_REASON = 'No analysis available.'

SUBTOPIC_COUNT = 3


@dataclass
class Translation:
    """Per-language rendering of the record's text fields."""
    topic_word: str
    sub_topics: List[str]
    reason: str
    display_name_localized: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'topicWord': self.topic_word,
            'subTopics': list(self.sub_topics),
            'reason': self.reason,
            'displayNameLocalized': self.display_name_localized,
        }


@dataclass
class AnalysisRecord:
    """Normalized mood analysis for one entity at one aligned slot."""
    entity_id: str
    updated_at: str
    mood: str
    topic_word: str
    sub_topics: List[str]
    reason: str
    intensity: int
    color: str
    display_name: str = ""
    translations: Dict[str, Translation] = field(default_factory=dict)

    def __post_init__(self):
        """Enforce the domain invariants that do not need context."""
        if self.mood not in MOODS:
            raise ValueError(f"mood must be one of {MOODS}, got {self.mood!r}")
        if not MIN_INTENSITY <= self.intensity <= MAX_INTENSITY:
            raise ValueError(f"intensity must be within [{MIN_INTENSITY}, {MAX_INTENSITY}], got {self.intensity}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON shape consumed by the front-end."""
        return {
            'entityId': self.entity_id,
            'displayName': self.display_name,
            'updatedAt': self.updated_at,
            'mood': self.mood,
            'topicWord': self.topic_word,
            'subTopics': list(self.sub_topics),
            'reason': self.reason,
            'intensity': self.intensity,
            'color': self.color,
            'translations': {
                language: translation.to_dict()
                for language, translation in self.translations.items()
            },
        }
