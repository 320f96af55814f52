import json

import pytest

from cli_router import CLIRouter
from core.analysis.normalizer import ResponseNormalizer
from core.config import ConfigManager
from core.container import Container
from core.feed_fetcher import FeedFetcher
from core.time_slots import TimeSlotAligner


@pytest.fixture
def container_factory(session_factory, response_factory, make_rss, entities, tmp_path):
    def _factory(environ, client=None):
        feed_session = session_factory(by_url={
            entity.feed_url: response_factory(200, make_rss(entity.display_name, ["Headline - Wire"]))
            for entity in entities
        })
        config = ConfigManager(environ=dict({"PULSE_OUTPUT_DIR": str(tmp_path)}, **environ)).get_config()
        normalizer = ResponseNormalizer(entities={entity.id: entity for entity in entities})

        container = Container()
        container.register_instance('config', config)
        container.register_instance('entities', entities)
        container.register_instance('feed_fetcher', FeedFetcher(session=feed_session))
        container.register_instance('normalizer', normalizer)
        container.register_instance('aligner', TimeSlotAligner())
        container.register_instance('llm_logger', None)
        if client is not None:
            container.register_instance('analysis_client', client)
        container.feed_session = feed_session
        return container

    return _factory


def test_pulse_run_without_api_key_exits_before_network(container_factory, stub_client_factory):
    """Test a missing credential aborts with exit code 2 and no HTTP traffic."""
    client = stub_client_factory({})
    container = container_factory({}, client)

    exit_code = CLIRouter(container).route_command(["pulse", "run", "--no-pacing"])

    assert exit_code == 2
    assert container.feed_session.calls == []
    assert client.calls == []


def test_pulse_run_end_to_end(container_factory, stub_client_factory, make_model_output, entities, tmp_path, capsys):
    client = stub_client_factory({entity.id: make_model_output() for entity in entities})
    container = container_factory({"GEMINI_API_KEY": "test-key"}, client)

    exit_code = CLIRouter(container).route_command([
        "pulse", "run", "--no-pacing", "--now", "2026-10-18T13:47:00+09:00",
    ])

    assert exit_code == 0
    combined = json.loads((tmp_path / "mood.json").read_text(encoding="utf-8"))
    assert set(combined) == {"KR", "US", "GOOGLE"}
    assert combined["KR"]["updatedAt"] == "2026-10-18T12:00:00+09:00"
    assert "3 updated, 0 skipped, 0 failed" in capsys.readouterr().out


def test_pulse_run_reports_failure_exit_code(container_factory, stub_client_factory, make_model_output,
                                             analysis_failure, tmp_path):
    client = stub_client_factory({"KR": make_model_output(), "US": analysis_failure})
    container = container_factory({"GEMINI_API_KEY": "test-key"}, client)

    exit_code = CLIRouter(container).route_command([
        "pulse", "run", "--no-pacing", "--entities", "KR", "US", "--output-dir", str(tmp_path / "out"),
    ])

    assert exit_code == 1
    assert (tmp_path / "out" / "KR.json").exists()


def test_pulse_run_unknown_entity_is_config_error(container_factory, stub_client_factory):
    container = container_factory({"GEMINI_API_KEY": "test-key"}, stub_client_factory({}))

    assert CLIRouter(container).route_command(["pulse", "run", "--entities", "XX"]) == 2


def test_pulse_slot_prints_aligned_timestamp(container_factory, capsys):
    container = container_factory({})

    exit_code = CLIRouter(container).route_command(["pulse", "slot", "--now", "2026-10-18T23:10:00+09:00"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "2026-10-18T20:00:00+09:00" in out
    assert "2026-10-18T20-00-00+0900" in out


def test_store_show_and_history(container_factory, stub_client_factory, make_model_output, entities, capsys):
    client = stub_client_factory({entity.id: make_model_output("Greed", "Rally") for entity in entities})
    container = container_factory({"GEMINI_API_KEY": "test-key"}, client)
    router = CLIRouter(container)
    router.route_command(["pulse", "run", "--no-pacing", "--now", "2026-10-18T13:47:00+09:00"])
    capsys.readouterr()

    assert router.route_command(["store", "show"]) == 0
    out = capsys.readouterr().out
    assert "GOOGLE" in out
    assert "Greed" in out

    assert router.route_command(["store", "history", "--entity", "KR"]) == 0
    assert "KR_2026-10-18T12-00-00+0900.json" in capsys.readouterr().out


def test_health_check(container_factory, tmp_path, capsys):
    assert CLIRouter(container_factory({"GEMINI_API_KEY": "k"})).route_command(["health", "check"]) == 0
    assert "HEALTHY" in capsys.readouterr().out

    assert CLIRouter(container_factory({})).route_command(["health", "check"]) == 1
    assert "GEMINI_API_KEY: missing" in capsys.readouterr().out


def test_missing_subcommand_returns_error(container_factory):
    assert CLIRouter(container_factory({})).route_command(["pulse"]) == 1


def test_default_container_builds_analysis_client_from_config():
    """Test the default wiring passes retry and model settings to the client."""
    from core.container import get_container, reset_container
    from integrations.gemini_client import GeminiClient

    reset_container()
    try:
        container = get_container()
        container.register_instance('config', ConfigManager(environ={
            "GEMINI_API_KEY": "test-key",
            "GEMINI_MODEL": "gemini-test",
            "PULSE_MAX_ATTEMPTS": "5",
            "PULSE_RATE_LIMIT_MARGIN": "2",
        }).get_config())

        client = container.get('analysis_client')

        assert isinstance(client, GeminiClient)
        assert client.model == "gemini-test"
        assert client.max_attempts == 5
        assert client.backoff.rate_limit_margin == 2.0
        assert client.llm_logger is None
        assert container.get('aligner') is container.get('aligner')
    finally:
        reset_container()


def test_default_container_without_key_refuses_client():
    from core.container import get_container, reset_container
    from core.exceptions import ConfigError

    reset_container()
    try:
        container = get_container()
        container.register_instance('config', ConfigManager(environ={}).get_config())

        with pytest.raises(ConfigError):
            container.get('analysis_client')
    finally:
        reset_container()
