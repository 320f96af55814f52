import asyncio
import json
from datetime import datetime

import pytest
import pytz

from core.analysis.normalizer import ResponseNormalizer
from core.exceptions import AnalysisError
from core.feed_fetcher import FeedFetcher
from core.orchestrator import Orchestrator
from core.store import MoodStore
from core.time_slots import TimeSlotAligner
from integrations.gemini_client import GeminiClient

NOW = pytz.timezone("Asia/Seoul").localize(datetime(2026, 10, 18, 13, 47))
SLOT = "2026-10-18T12:00:00+09:00"
LABEL = "2026-10-18T12-00-00+0900"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def feeds(session_factory, response_factory, make_rss, entities):
    def _factory(**status_by_id):
        by_url = {}
        for entity in entities:
            status = status_by_id.get(entity.id, 200)
            body = make_rss(entity.display_name, [f"{entity.display_name} headline - Wire"]) if status == 200 else "error"
            by_url[entity.feed_url] = response_factory(status, body)
        return FeedFetcher(session=session_factory(by_url=by_url))

    return _factory


@pytest.fixture
def build(tmp_path, sleep_recorder, entities):
    def _factory(fetcher, client, clock=None, **kwargs):
        normalizer = ResponseNormalizer(entities={entity.id: entity for entity in entities})
        return Orchestrator(
            fetcher=fetcher,
            client=client,
            normalizer=normalizer,
            store=MoodStore(tmp_path, normalizer=normalizer),
            aligner=TimeSlotAligner(),
            sleep=sleep_recorder,
            clock=clock or FakeClock(),
            **kwargs,
        )

    return _factory


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_end_to_end_run_writes_all_artifacts(tmp_path, feeds, build, stub_client_factory,
                                             make_model_output, entities, sleep_recorder):
    """Test a full run produces latest, historical and combined files."""
    client = stub_client_factory({
        "KR": make_model_output("Conflict", "Election"),
        "US": make_model_output("Greed", "Rally"),
        "GOOGLE": make_model_output("Innovation", "Gemini"),
    })
    orchestrator = build(feeds(), client)

    result = asyncio.run(orchestrator.run(entities, now=NOW))

    assert result.exit_code == 0
    assert set(result.updated) == {"KR", "US", "GOOGLE"}
    assert client.calls == ["KR", "US", "GOOGLE"]
    assert result.updated_at == SLOT

    latest = read_json(tmp_path / "US.json")
    assert latest["mood"] == "Greed"
    assert latest["updatedAt"] == SLOT
    assert (tmp_path / "history" / f"GOOGLE_{LABEL}.json").exists()

    combined = read_json(tmp_path / "mood.json")
    assert set(combined) == {"KR", "US", "GOOGLE"}
    assert combined["GOOGLE"]["displayName"] == "Google"
    assert combined["KR"]["topicWord"] == "Election"

    # Paced between analysis calls, never before the first
    assert sleep_recorder.delays == [65.0, 65.0]


def test_failed_entity_keeps_prior_record(tmp_path, feeds, build, stub_client_factory,
                                          make_model_output, entities):
    """Test an analysis failure never blanks out previously good data."""
    first = build(feeds(), stub_client_factory({
        "KR": make_model_output(topic_word="Before"),
        "US": make_model_output(topic_word="Previous"),
        "GOOGLE": make_model_output(topic_word="Search"),
    }))
    asyncio.run(first.run(entities, now=NOW))
    prior_us = read_json(tmp_path / "mood.json")["US"]

    second = build(feeds(), stub_client_factory({
        "KR": make_model_output(topic_word="After"),
        "US": AnalysisError("US", "rate_limited", 3),
        "GOOGLE": "this is not json",
    }))
    result = asyncio.run(second.run(entities, now=NOW))

    assert result.exit_code == 1
    assert set(result.failed) == {"US", "GOOGLE"}
    combined = read_json(tmp_path / "mood.json")
    assert combined["US"] == prior_us
    assert combined["GOOGLE"]["topicWord"] == "Search"
    assert combined["KR"]["topicWord"] == "After"


def test_fetch_skip_without_prior_data_fails_run(tmp_path, feeds, build, stub_client_factory,
                                                  make_model_output, entities, sleep_recorder):
    """Test an unreachable feed with nothing stored yet skips the entity and fails the run."""
    client = stub_client_factory({
        "KR": make_model_output(),
        "GOOGLE": make_model_output("Innovation", "Cloud"),
    })
    orchestrator = build(feeds(US=503), client)

    result = asyncio.run(orchestrator.run(entities, now=NOW))

    assert result.exit_code == 1
    assert result.skipped == {"US": "unreachable"}
    assert result.missing == {"US": "unreachable"}
    assert result.failed == {}
    assert client.calls == ["KR", "GOOGLE"]
    assert sleep_recorder.delays == [65.0]
    assert set(read_json(tmp_path / "mood.json")) == {"KR", "GOOGLE"}
    assert not (tmp_path / "US.json").exists()


def test_fetch_skip_with_prior_data_preserves_it_and_succeeds(tmp_path, feeds, build, stub_client_factory,
                                                              make_model_output, entities):
    """Test an unreachable feed keeps the stored record and does not fail the run."""
    outputs = {
        "KR": make_model_output(),
        "US": make_model_output(topic_word="Previous"),
        "GOOGLE": make_model_output("Innovation", "Cloud"),
    }
    asyncio.run(build(feeds(), stub_client_factory(outputs)).run(entities, now=NOW))
    prior_us = read_json(tmp_path / "mood.json")["US"]

    client = stub_client_factory(outputs)
    result = asyncio.run(build(feeds(US=503), client).run(entities, now=NOW))

    assert result.exit_code == 0
    assert result.skipped == {"US": "unreachable"}
    assert result.missing == {}
    assert client.calls == ["KR", "GOOGLE"]
    assert read_json(tmp_path / "mood.json")["US"] == prior_us


class FailingHistoryStore(MoodStore):
    def __init__(self, *args, failing_id, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing_id = failing_id

    def write_history(self, record, label):
        if record.entity_id == self.failing_id:
            raise OSError("disk full")
        return super().write_history(record, label)


def test_snapshot_write_error_fails_only_that_entity(tmp_path, feeds, build, stub_client_factory,
                                                     make_model_output, entities):
    """Test a filesystem error for one entity still runs the rest and writes the combined store."""
    client = stub_client_factory({entity.id: make_model_output() for entity in entities})
    orchestrator = build(feeds(), client)
    orchestrator.store = FailingHistoryStore(tmp_path, normalizer=orchestrator.normalizer, failing_id="KR")

    result = asyncio.run(orchestrator.run(entities, now=NOW))

    assert result.exit_code == 1
    assert "disk full" in result.failed["KR"]
    assert client.calls == ["KR", "US", "GOOGLE"]
    assert set(result.updated) == {"US", "GOOGLE"}
    assert set(read_json(tmp_path / "mood.json")) == {"US", "GOOGLE"}


def test_single_entity_is_not_paced(feeds, build, stub_client_factory, make_model_output,
                                    kr_entity, sleep_recorder):
    orchestrator = build(feeds(), stub_client_factory({"KR": make_model_output()}))

    asyncio.run(orchestrator.run([kr_entity], now=NOW))

    assert sleep_recorder.delays == []


def test_pacing_waits_only_the_remaining_interval(feeds, build, make_model_output, entities, sleep_recorder):
    """Test time already spent in the previous call counts toward the spacing."""
    clock = FakeClock()

    class SlowClient:
        async def analyze(self, entity, headlines):
            clock.now += 20
            return make_model_output()

    orchestrator = build(feeds(), SlowClient(), clock=clock)

    asyncio.run(orchestrator.run(entities[:2], now=NOW))

    assert sleep_recorder.delays == [45.0]


def test_no_pacing(feeds, build, stub_client_factory, make_model_output, entities, sleep_recorder):
    client = stub_client_factory({entity.id: make_model_output() for entity in entities})
    orchestrator = build(feeds(), client, pacing_seconds=0)

    result = asyncio.run(orchestrator.run(entities, now=NOW))

    assert result.exit_code == 0
    assert sleep_recorder.delays == []


def test_deadline_stops_starting_new_entities(feeds, build, make_model_output, entities):
    clock = FakeClock()

    class SlowClient:
        async def analyze(self, entity, headlines):
            clock.now += 100
            return make_model_output()

    orchestrator = build(feeds(), SlowClient(), clock=clock, pacing_seconds=0, deadline_seconds=60)

    result = asyncio.run(orchestrator.run(entities, now=NOW))

    assert set(result.updated) == {"KR"}
    assert result.failed == {"US": "deadline exceeded", "GOOGLE": "deadline exceeded"}
    assert result.exit_code == 1


def test_partial_run_keeps_other_tracked_entities(tmp_path, feeds, build, stub_client_factory,
                                                  make_model_output, entities):
    outputs = {entity.id: make_model_output(topic_word=entity.id) for entity in entities}
    asyncio.run(build(feeds(), stub_client_factory(outputs)).run(entities, now=NOW))

    orchestrator = build(feeds(), stub_client_factory({"KR": make_model_output(topic_word="Fresh")}))
    result = asyncio.run(orchestrator.run(entities[:1], now=NOW, tracked_ids=[e.id for e in entities]))

    assert set(result.store) == {"KR", "US", "GOOGLE"}
    combined = read_json(tmp_path / "mood.json")
    assert combined["KR"]["topicWord"] == "Fresh"
    assert combined["US"]["topicWord"] == "US"


def test_removed_entity_is_pruned(tmp_path, feeds, build, stub_client_factory, make_model_output, entities):
    outputs = {entity.id: make_model_output() for entity in entities}
    asyncio.run(build(feeds(), stub_client_factory(outputs)).run(entities, now=NOW))

    result = asyncio.run(build(feeds(), stub_client_factory(outputs)).run(entities[:2], now=NOW))

    assert set(result.store) == {"KR", "US"}
    assert set(read_json(tmp_path / "mood.json")) == {"KR", "US"}


def test_run_with_gemini_client_retries_inside_paced_loop(feeds, build, session_factory, response_factory,
                                                          make_gemini_body, make_model_output, entities,
                                                          sleep_recorder):
    """Test backoff and pacing share the awaited sleep and the run still succeeds."""
    quota = response_factory(429, json_body={"error": {"status": "RESOURCE_EXHAUSTED", "details": [
        {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "10s"}]}})
    api_session = session_factory([
        response_factory(200, json_body=make_gemini_body(make_model_output())),
        quota,
        response_factory(200, json_body=make_gemini_body(make_model_output("Greed", "Rally"))),
    ])
    client = GeminiClient(api_key="test-key", session=api_session, sleep=sleep_recorder)
    orchestrator = build(feeds(), client)

    result = asyncio.run(orchestrator.run(entities[:2], now=NOW))

    assert result.exit_code == 0
    assert result.updated["US"].mood == "Greed"
    assert sleep_recorder.delays == [65.0, 15.0]
