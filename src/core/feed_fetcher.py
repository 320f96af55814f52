#!/usr/bin/env python3
"""
Feed fetcher for headline extraction.

Retrieves raw feed text for one entity and extracts a bounded list of
headline strings. Markup is treated as untrusted text: extraction runs an
ordered list of lenient extractors and keeps the first non-empty result.
"""

import html
import logging
import re
from typing import Callable, List, Optional, Sequence

import feedparser
import requests

from .exceptions import FetchError
from .models.entity import HeadlineSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_HEADLINES = 15

ITEM_RE = re.compile(r'<item\b[^>]*>(.*?)</item>', re.IGNORECASE | re.DOTALL)
TITLE_RE = re.compile(r'<title\b[^>]*>(.*?)</title>', re.IGNORECASE | re.DOTALL)
CDATA_RE = re.compile(r'<!\[CDATA\[(.*?)\]\]>', re.DOTALL)
TAG_RE = re.compile(r'<[^>]+>')
WHITESPACE_RE = re.compile(r'\s+')
SOURCE_SEPARATOR = ' - '


def clean_title(raw: str) -> str:
    """Strip CDATA, tags, entities and the trailing " - Source" suffix."""
    if not raw:
        return ""
    text = CDATA_RE.sub(r'\1', raw)
    text = TAG_RE.sub('', text)
    text = html.unescape(text)
    text = WHITESPACE_RE.sub(' ', text).strip()
    if SOURCE_SEPARATOR in text:
        head, _source = text.rsplit(SOURCE_SEPARATOR, 1)
        if head.strip():
            text = head.strip()
    return text


def extract_item_titles(text: str) -> List[str]:
    """Titles of <item> blocks (RSS 2.0)."""
    titles = []
    for block in ITEM_RE.findall(text):
        match = TITLE_RE.search(block)
        if match:
            titles.append(match.group(1))
    return titles


def extract_feedparser_titles(text: str) -> List[str]:
    """Entry titles as seen by feedparser (Atom <entry> feeds and odd RSS)."""
    try:
        feed = feedparser.parse(text)
    except Exception as e:  # noqa: BLE001
        logger.debug(f"feedparser could not parse feed body: {e}")
        return []

    if feed.bozo:
        logger.debug(f"Feed parsing warning: {feed.bozo_exception}")

    return [entry.get('title', '') for entry in feed.get('entries', [])]


def extract_bare_titles(text: str) -> List[str]:
    """Every <title> fragment except the first, which names the channel."""
    return TITLE_RE.findall(text)[1:]


# Tried in order; the first extractor yielding at least one headline wins
EXTRACTORS: Sequence[Callable[[str], List[str]]] = (
    extract_item_titles,
    extract_feedparser_titles,
    extract_bare_titles,
)


def extract_headlines(text: str, max_headlines: int = DEFAULT_MAX_HEADLINES) -> HeadlineSet:
    """Extract up to max_headlines cleaned headlines from raw feed text."""
    if not text:
        return []

    for extractor in EXTRACTORS:
        headlines = [clean_title(title) for title in extractor(text)]
        headlines = [headline for headline in headlines if headline]
        if headlines:
            logger.debug(f"{extractor.__name__} produced {len(headlines)} headlines")
            return headlines[:max_headlines]

    return []


class FeedFetcher:
    """Fetches a feed over HTTP and returns its headline set."""

    def __init__(self, timeout: int = 10, max_headlines: int = DEFAULT_MAX_HEADLINES,
                 user_agent: str = 'Mozilla/5.0 (compatible; MoodPulse/1.0)',
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.max_headlines = max_headlines
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent
        })

    def fetch(self, url: str) -> HeadlineSet:
        """
        Fetch a feed and extract its headlines.

        Args:
            url: Feed URL

        Returns:
            Ordered headlines, at most max_headlines long

        Raises:
            FetchError: On transport errors, non-2xx responses or zero headlines
        """
        try:
            logger.info(f"Fetching feed from: {url}")
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch feed {url}: {e}")
            raise FetchError(url, "unreachable", e)

        headlines = extract_headlines(response.text, self.max_headlines)
        if not headlines:
            raise FetchError(url, "empty")

        logger.info(f"Extracted {len(headlines)} headlines from {url}")
        return headlines
