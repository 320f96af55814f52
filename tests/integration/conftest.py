import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Also add the project root to handle absolute imports
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import requests  # noqa: E402

from core.exceptions import AnalysisError  # noqa: E402
from core.models.entity import EntityConfig  # noqa: E402


def rss_feed(channel: str, titles: List[str]) -> str:
    items = "".join(
        f"<item><title><![CDATA[{title}]]></title><link>https://example.com/{i}</link></item>"
        for i, title in enumerate(titles)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel>'
        f"<title>{channel}</title>{items}</channel></rss>"
    )


def model_output(mood: str = "Conflict", topic_word: str = "Election", **overrides: Any) -> str:
    data: Dict[str, Any] = {
        "mood": mood,
        "topicWord": topic_word,
        "subTopics": ["Polls", "Debate", "Turnout"],
        "reason": "Campaign rhetoric dominates the headlines.",
        "intensity": 120,
        "color": "#FF4444",
        "translations": {
            "en": {"topicWord": topic_word, "subTopics": ["Polls", "Debate", "Turnout"],
                   "reason": "Campaign rhetoric dominates the headlines.", "displayNameLocalized": "South Korea"},
            "ko": {"topicWord": "선거", "subTopics": ["여론조사", "토론", "투표율"],
                   "reason": "선거 유세가 헤드라인을 장악했다.", "displayNameLocalized": "대한민국"},
            "zh": {"topicWord": "选举", "subTopics": ["民调", "辩论", "投票率"],
                   "reason": "竞选言论主导了头条。", "displayNameLocalized": "韩国"},
        },
    }
    data.update(overrides)
    return "```json\n" + json.dumps(data, ensure_ascii=False) + "\n```"


def gemini_body(text: str) -> Dict[str, Any]:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", json_body: Optional[Any] = None) -> None:
        self.status_code = status_code
        self._json = json_body
        self.text = text if text or json_body is None else json.dumps(json_body)

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, responses: Optional[List[Any]] = None, by_url: Optional[Dict[str, Any]] = None) -> None:
        self.responses = list(responses or [])
        self.by_url = dict(by_url or {})
        self.headers: Dict[str, str] = {}
        self.calls: List[Dict[str, Any]] = []

    def _next(self, url: str) -> FakeResponse:
        outcome = self.by_url[url] if url in self.by_url else self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append({"method": "GET", "url": url, "timeout": timeout})
        return self._next(url)

    def post(self, url: str, json: Any = None, headers: Optional[Dict[str, str]] = None,
             timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append({"method": "POST", "url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._next(url)


class SleepRecorder:
    """Async sleep replacement that records requested durations instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class StubAnalysisClient:
    """Returns scripted model text per entity; an Exception value is raised instead."""

    def __init__(self, outputs: Dict[str, Any]) -> None:
        self.outputs = outputs
        self.calls: List[str] = []

    async def analyze(self, entity: EntityConfig, headlines: List[str]) -> str:
        self.calls.append(entity.id)
        outcome = self.outputs[entity.id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def entities() -> List[EntityConfig]:
    return [
        EntityConfig("KR", "South Korea", "https://feeds.example.com/kr"),
        EntityConfig("US", "United States", "https://feeds.example.com/us"),
        EntityConfig("GOOGLE", "Google", "https://feeds.example.com/google",
                     {"en": "Google", "ko": "구글", "zh": "谷歌"}),
    ]


@pytest.fixture
def kr_entity(entities) -> EntityConfig:
    return entities[0]


@pytest.fixture
def analysis_failure() -> AnalysisError:
    return AnalysisError("US", "rate_limited", 3)


@pytest.fixture
def make_rss():
    return rss_feed


@pytest.fixture
def make_model_output():
    return model_output


@pytest.fixture
def make_gemini_body():
    return gemini_body


@pytest.fixture
def response_factory():
    def _factory(status_code: int = 200, text: str = "", json_body: Optional[Any] = None) -> FakeResponse:
        return FakeResponse(status_code, text, json_body)

    return _factory


@pytest.fixture
def session_factory():
    def _factory(responses: Optional[List[Any]] = None, by_url: Optional[Dict[str, Any]] = None) -> FakeSession:
        return FakeSession(responses, by_url)

    return _factory


@pytest.fixture
def stub_client_factory():
    def _factory(outputs: Dict[str, Any]) -> StubAnalysisClient:
        return StubAnalysisClient(outputs)

    return _factory
