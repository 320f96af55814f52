#!/usr/bin/env python3
"""
Gemini integration for per-entity mood analysis.

Sends headlines plus entity context to the generateContent endpoint and
returns the generated text unparsed. Owns the retry/backoff policy against
the API's per-minute quota.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import requests

from core.analysis.prompts import MoodAnalysisPrompts
from core.exceptions import ApiCallError, AnalysisError, ConfigError
from core.models.entity import EntityConfig, HeadlineSet
from .rate_limit import BackoffPolicy, Classification, TRANSIENT, backoff_seconds, classify

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"


def extract_generated_text(body: Any) -> Optional[str]:
    """Return candidates[0].content.parts[*].text joined, or None if the shape is wrong."""
    if not isinstance(body, dict):
        return None
    candidates = body.get('candidates')
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get('content')
    if not isinstance(content, dict):
        return None
    parts = content.get('parts')
    if not isinstance(parts, list):
        return None
    texts = [part.get('text') for part in parts if isinstance(part, dict) and isinstance(part.get('text'), str)]
    if not texts:
        return None
    return ''.join(texts)


class GeminiClient:
    """Client for the Gemini generateContent REST API with retry/backoff."""

    def __init__(self, api_key: Optional[str],
                 model: str = DEFAULT_MODEL,
                 api_base: str = DEFAULT_API_BASE,
                 temperature: float = 0.2,
                 timeout: int = 60,
                 max_attempts: int = 3,
                 backoff: Optional[BackoffPolicy] = None,
                 languages: Sequence[str] = ('en', 'ko', 'zh'),
                 session: Optional[requests.Session] = None,
                 sleep: Optional[Callable[[float], Awaitable[None]]] = None,
                 llm_logger=None):
        """
        Initialize Gemini client.

        Args:
            api_key: API key, required
            max_attempts: Total attempts per analysis, including the first
            sleep: Awaitable used for backoff waits (asyncio.sleep by default)
            llm_logger: Optional LLMLogger receiving prompts and responses

        Raises:
            ConfigError: If the API key is missing
        """
        if not api_key:
            raise ConfigError('GEMINI_API_KEY', "API key not provided")

        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip('/')
        self.temperature = temperature
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self.backoff = backoff or BackoffPolicy()
        self.languages = tuple(languages)
        self.session = session or requests.Session()
        self._sleep = sleep or asyncio.sleep
        self.llm_logger = llm_logger

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def build_request(self, prompt: str) -> Dict[str, Any]:
        """Request body for generateContent."""
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature},
        }

    def _post(self, payload: Dict[str, Any]) -> str:
        """Perform one blocking call; raise ApiCallError on any failure."""
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers={
                    'Content-Type': 'application/json',
                    'x-goog-api-key': self.api_key,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiCallError(f"Request to {self.model} failed: {e}")

        body_text = response.text or ""
        try:
            body_json = response.json()
        except ValueError:
            body_json = None

        if response.status_code // 100 != 2:
            raise ApiCallError(
                f"Gemini API error {response.status_code}",
                status_code=response.status_code,
                body_text=body_text,
                body_json=body_json,
            )

        text = extract_generated_text(body_json)
        if text is None:
            raise ApiCallError(
                "Gemini response lacks generated content",
                status_code=response.status_code,
                body_text=body_text,
                body_json=body_json,
            )
        return text

    async def generate(self, prompt: str, label: str = "request") -> str:
        """
        Send a prompt, retrying per the backoff policy.

        Raises:
            AnalysisError: After retries are exhausted or on a fatal error
        """
        payload = self.build_request(prompt)
        last_error: Optional[ApiCallError] = None
        classification = Classification(TRANSIENT)
        attempt = 0

        while attempt < self.max_attempts:
            attempt += 1
            try:
                logger.info(f"Making Gemini API call for {label} (attempt {attempt}/{self.max_attempts})")
                text = await asyncio.to_thread(self._post, payload)
                logger.info(f"Gemini API call successful for {label} ({len(text)} chars)")
                return text
            except ApiCallError as e:
                last_error = e
                classification = classify(e)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed for {label}: "
                    f"{e.message} ({classification.kind})"
                )

            delay = backoff_seconds(classification, self.backoff)
            if delay is None:
                logger.error(f"Not retrying {label}: {classification.kind} error")
                break
            if attempt < self.max_attempts:
                logger.info(f"Waiting {delay:g}s before retrying {label}")
                await self._sleep(delay)

        raise AnalysisError(label, classification.kind, attempt, last_error)

    async def analyze(self, entity: EntityConfig, headlines: HeadlineSet) -> str:
        """
        Analyze one entity's headlines.

        Returns:
            Raw generated text (may still contain code fences)

        Raises:
            AnalysisError: After retries are exhausted
        """
        prompt = MoodAnalysisPrompts.get_analysis_prompt(entity, headlines, self.languages)
        text = await self.generate(prompt, label=entity.id)

        if self.llm_logger:
            self.llm_logger.log_llm_interaction(entity.id, prompt, text)

        return text

    def test_connection(self) -> bool:
        """Send a tiny prompt once, without retries."""
        try:
            self._post(self.build_request("Reply with the word OK."))
            logger.info("Gemini API connection test successful")
            return True
        except ApiCallError as e:
            logger.error(f"Gemini API connection test failed: {e}")
            return False
