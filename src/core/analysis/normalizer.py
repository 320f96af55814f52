#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Response normalizer for mood analysis output.

Parses generated text as JSON and repairs it into a strict AnalysisRecord.
Every field is resolved through an ordered list of candidate keys (current
schema first, then the legacy keyword/hashtags/explanation shape) and falls
back to a hard default, so only genuinely unparsable text is rejected.
"""

import json
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..entities import localized_display_name
from ..exceptions import SchemaError
from ..models.entity import EntityConfig
from ..models.record import (
    AnalysisRecord, Translation, MOODS, DEFAULT_MOOD, DEFAULT_INTENSITY,
    MIN_INTENSITY, MAX_INTENSITY, DEFAULT_COLOR, DEFAULT_TOPIC_WORD,
    DEFAULT_REASON, SUBTOPIC_COUNT,
)
from ..text_sanitizer import (
    preprocess_llm_response, extract_json_object, remove_trailing_commas,
    normalize_quotes,
)

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES = ('en', 'ko', 'zh')

# Candidate keys per field, in priority order
TOPIC_WORD_KEYS = ('topicWord', 'word', 'keyword')
SUB_TOPIC_KEYS = ('subTopics', 'hashtags', 'keywords')
REASON_KEYS = ('reason', 'explanation', 'summary')
MOOD_KEYS = ('mood', 'sentiment')
INTENSITY_KEYS = ('intensity', 'bpm')
COLOR_KEYS = ('color', 'colour')
DISPLAY_NAME_KEYS = ('displayNameLocalized', 'country', 'displayName', 'title')

MARKER_RE = re.compile(r'^[\s#＃*•·\-–—]+')
COLOR_RE = re.compile(r'^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$')
HASHTAG_SPLIT_RE = re.compile(r'\s+(?=#)')

# Keyword groups used to infer a mood when the model gives none
MOOD_KEYWORDS = {
    'Panic': ('panic', 'chaos', 'fear', 'crisis', 'turbulence', 'turbulent', 'anxiety', 'shock', 'crash'),
    'Calm': ('calm', 'stable', 'peace', 'slow', 'steady', 'resilience', 'resilient', 'quiet'),
    'Greed': ('greed', 'growth', 'vibrancy', 'vibrant', 'boom', 'surge', 'rally', 'profit'),
    'Innovation': ('innovation', 'breakthrough', 'tech', 'progress', 'momentum', 'launch', 'ai'),
    'Conflict': ('conflict', 'tension', 'reform', 'strike', 'disquiet', 'unrest', 'division', 'war', 'protest'),
}


# ---------- parsing ----------

PARSE_STRATEGIES: Sequence[Callable[[str], str]] = (
    lambda text: text,
    extract_json_object,
    lambda text: remove_trailing_commas(extract_json_object(text)),
    lambda text: remove_trailing_commas(normalize_quotes(extract_json_object(text))),
)


def parse_structured(entity_id: str, raw_text: str) -> Dict[str, Any]:
    """
    Parse generated text into a JSON object, trying increasingly lenient repairs.

    Raises:
        SchemaError: If no strategy yields a JSON object
    """
    text = preprocess_llm_response(raw_text or "")
    if not text:
        raise SchemaError(entity_id, "empty response")

    last_error = "no JSON object found"
    for strategy in PARSE_STRATEGIES:
        candidate = strategy(text)
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = str(e)
            continue

        if isinstance(data, list) and data and isinstance(data[0], dict):
            data = data[0]
        if isinstance(data, dict):
            return data
        last_error = f"top-level JSON is {type(data).__name__}, not an object"

    logger.error(f"Could not parse model output for {entity_id}: {last_error}")
    raise SchemaError(entity_id, last_error, raw_preview=text)


# ---------- total field coercers (return None when unusable) ----------

def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def clean_sub_topic(value: Any) -> str:
    """Strip leading hash/bullet markers and surrounding whitespace."""
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        return ""
    return MARKER_RE.sub('', str(value)).strip()


def _as_sub_topics(value: Any) -> Optional[List[str]]:
    if isinstance(value, str):
        separator_split = value.split(',') if ',' in value else HASHTAG_SPLIT_RE.split(value)
        value = separator_split
    if not isinstance(value, (list, tuple)):
        return None

    topics: List[str] = []
    for item in value:
        topic = clean_sub_topic(item)
        if topic and topic not in topics:
            topics.append(topic)
    return topics[:SUBTOPIC_COUNT] or None


def _as_mood(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    for mood in MOODS:
        if mood.lower() == lowered:
            return mood
    return None


def _as_intensity(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    intensity = int(round(value))
    if MIN_INTENSITY <= intensity <= MAX_INTENSITY:
        return intensity
    return None


def _as_color(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    match = COLOR_RE.match(value.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = ''.join(ch * 2 for ch in digits)
    return f"#{digits}"


def first_valid(data: Dict[str, Any], keys: Sequence[str], coerce: Callable[[Any], Any]) -> Any:
    """Value of the first candidate key that coerces to something usable."""
    for key in keys:
        if key in data:
            value = coerce(data[key])
            if value is not None:
                return value
    return None


def infer_mood(*texts: str) -> Optional[str]:
    """Keyword-match free text against the mood groups."""
    for text in texts:
        lowered = (text or "").lower()
        if not lowered:
            continue
        words = set(re.findall(r'[a-z]+', lowered))
        for mood, keywords in MOOD_KEYWORDS.items():
            if any(keyword in words or (len(keyword) > 3 and keyword in lowered) for keyword in keywords):
                return mood
    return None


class ResponseNormalizer:
    """Repairs model output into AnalysisRecord objects."""

    def __init__(self, languages: Sequence[str] = DEFAULT_LANGUAGES,
                 entities: Optional[Dict[str, EntityConfig]] = None):
        """
        Initialize normalizer.

        Args:
            languages: Language codes that must have a translation block
            entities: Optional entity lookup used for localized display names
        """
        self.languages = tuple(languages)
        self.entities = dict(entities or {})

    def normalize(self, entity_id: str, raw_text: str, entity: Optional[EntityConfig] = None,
                  updated_at: Optional[str] = None) -> AnalysisRecord:
        """
        Parse and repair raw model text.

        Raises:
            SchemaError: Only if the text cannot be parsed as a JSON object
        """
        data = parse_structured(entity_id, raw_text)
        return self.normalize_data(entity_id, data, entity=entity, updated_at=updated_at)

    def normalize_data(self, entity_id: str, data: Dict[str, Any], entity: Optional[EntityConfig] = None,
                       updated_at: Optional[str] = None) -> AnalysisRecord:
        """Repair an already-parsed mapping. Never raises for a dict input."""
        entity = entity or self.entities.get(entity_id)
        repairs: List[str] = []

        topic_word = first_valid(data, TOPIC_WORD_KEYS, _as_text)
        if topic_word is None:
            repairs.append('topicWord')
            topic_word = DEFAULT_TOPIC_WORD

        sub_topics = first_valid(data, SUB_TOPIC_KEYS, _as_sub_topics)
        if sub_topics is None:
            repairs.append('subTopics')
            sub_topics = []

        reason = first_valid(data, REASON_KEYS, _as_text)
        if reason is None:
            repairs.append('reason')
            reason = DEFAULT_REASON

        mood = first_valid(data, MOOD_KEYS, _as_mood)
        if mood is None:
            repairs.append('mood')
            mood = infer_mood(topic_word, reason) or DEFAULT_MOOD

        intensity = first_valid(data, INTENSITY_KEYS, _as_intensity)
        if intensity is None:
            repairs.append('intensity')
            intensity = DEFAULT_INTENSITY

        color = first_valid(data, COLOR_KEYS, _as_color)
        if color is None:
            repairs.append('color')
            color = DEFAULT_COLOR

        display_name = _as_text(data.get('displayName')) or _as_text(data.get('country'))
        if display_name is None:
            display_name = entity.display_name if entity else localized_display_name(None, entity_id, 'en')

        translations, missing = self._normalize_translations(
            entity_id, entity, data.get('translations'), topic_word, sub_topics, reason,
        )
        if missing:
            repairs.append(f"translations[{','.join(missing)}]")

        if not updated_at:
            updated_at = _as_text(data.get('updatedAt')) or ""

        if repairs:
            logger.warning(f"Repaired fields for {entity_id}: {', '.join(repairs)}")

        return AnalysisRecord(
            entity_id=entity_id,
            updated_at=updated_at,
            mood=mood,
            topic_word=topic_word,
            sub_topics=sub_topics,
            reason=reason,
            intensity=intensity,
            color=color,
            display_name=display_name,
            translations=translations,
        )

    def _normalize_translations(self, entity_id: str, entity: Optional[EntityConfig], raw: Any,
                                topic_word: str, sub_topics: List[str],
                                reason: str) -> Tuple[Dict[str, Translation], List[str]]:
        """Build one Translation per supported language, synthesizing missing blocks."""
        raw = raw if isinstance(raw, dict) else {}
        translations: Dict[str, Translation] = {}
        missing: List[str] = []

        for language in self.languages:
            block = raw.get(language)
            if not isinstance(block, dict):
                missing.append(language)
                block = {}

            translations[language] = Translation(
                topic_word=first_valid(block, TOPIC_WORD_KEYS, _as_text) or topic_word,
                sub_topics=first_valid(block, SUB_TOPIC_KEYS, _as_sub_topics) or list(sub_topics),
                reason=first_valid(block, REASON_KEYS, _as_text) or reason,
                display_name_localized=(
                    first_valid(block, DISPLAY_NAME_KEYS, _as_text)
                    or localized_display_name(entity, entity_id, language)
                ),
            )

        return translations, missing


def normalize(entity_id: str, raw_text: str, entity: Optional[EntityConfig] = None,
              updated_at: Optional[str] = None, languages: Sequence[str] = DEFAULT_LANGUAGES) -> AnalysisRecord:
    """Convenience wrapper around ResponseNormalizer.normalize."""
    return ResponseNormalizer(languages).normalize(entity_id, raw_text, entity=entity, updated_at=updated_at)


__all__ = ['ResponseNormalizer', 'normalize', 'parse_structured', 'infer_mood']
