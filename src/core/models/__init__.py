#!/usr/bin/env python3
"""
Core data models for the mood pulse pipeline.

Contains all data structures used throughout the application.
"""

from .entity import EntityConfig, HeadlineSet
from .record import AnalysisRecord, Translation, MOODS, DEFAULT_MOOD

__all__ = ['EntityConfig', 'HeadlineSet', 'AnalysisRecord', 'Translation', 'MOODS', 'DEFAULT_MOOD']
