#!/usr/bin/env python3
"""
Text sanitization utilities for model output processing.

Handles common issues in generated text that break JSON parsing: Markdown
code fences, typographic quotation marks and trailing commas.
"""

import re
import logging

logger = logging.getLogger(__name__)

# Typographic quotation marks that can break JSON parsing
QUOTES_MAP = {
    "״": '"',  # Gershayim
    "׳": "'",  # Geresh
    "“": '"',  # Left double quotation mark
    "”": '"',  # Right double quotation mark
    "„": '"',  # Double low-9 quotation mark
    "‘": "'",  # Left single quotation mark
    "’": "'",  # Right single quotation mark
    "＂": '"',  # Fullwidth quotation mark
}

QUOTES_TRANSLATION = str.maketrans(QUOTES_MAP)

CODE_FENCE_RE = re.compile(r'```[a-zA-Z0-9_-]*')
TRAILING_COMMA_RE = re.compile(r',\s*([}\]])')


def normalize_quotes(text: str) -> str:
    """
    Normalize typographic quotation marks to ASCII equivalents.

    Args:
        text: Input text that may contain typographic quotes

    Returns:
        Text with normalized ASCII quotes
    """
    if not text:
        return text

    return text.translate(QUOTES_TRANSLATION)


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fence markers such as ```json and ```."""
    if not text:
        return text

    return CODE_FENCE_RE.sub('', text).strip()


def remove_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing brace or bracket."""
    if not text:
        return text

    return TRAILING_COMMA_RE.sub(r'\1', text)


def extract_json_object(text: str) -> str:
    """Return the span from the first '{' to the last '}', or the text unchanged."""
    if not text:
        return text

    start = text.find('{')
    end = text.rfind('}')
    if start == -1 or end <= start:
        return text
    return text[start:end + 1]


def preprocess_llm_response(raw_response: str) -> str:
    """
    Preprocess model output before JSON parsing.

    Args:
        raw_response: Raw generated text

    Returns:
        Text with code fences removed and surrounding whitespace stripped
    """
    if not raw_response:
        return raw_response

    processed = strip_code_fences(raw_response)

    if processed != raw_response.strip():
        logger.info("Stripped code fences from LLM response")
        logger.debug(
            "Original length: %d, processed length: %d",
            len(raw_response),
            len(processed),
        )

    return processed
