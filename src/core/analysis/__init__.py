#!/usr/bin/env python3
"""
Analysis components for mood records.

Provides the prompt builder and the response normalizer that repairs model
output into the strict record schema.
"""

from .prompts import MoodAnalysisPrompts
from .normalizer import ResponseNormalizer, normalize

__all__ = ['MoodAnalysisPrompts', 'ResponseNormalizer', 'normalize']
