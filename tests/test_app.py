"""Tests for casaflow.app - config loading and service wiring"""

import pytest

from conftest import RecordingDispatcher, ScriptedLLMClient, text_response

from casaflow.app import CasaFlow, _load_config, validate_config
from casaflow.dispatcher import LocalToolDispatcher
from casaflow.errors import ConfigurationError
from casaflow.llm import ModelTier

BASE_CONFIG = {
    "database": "postgresql://localhost/casaflow",
    "llm": {"provider": "anthropic", "strong_model": "claude-sonnet", "api_key": "sk-test"},
}


class FakeDatabase:
    """Satisfies Store construction without a connection pool."""

    def __init__(self):
        self.initialized = 0
        self.closed = 0

    async def initialize(self):
        self.initialized += 1

    async def close(self):
        self.closed += 1


def _config(**overrides):
    cfg = {**BASE_CONFIG, "llm": dict(BASE_CONFIG["llm"])}
    cfg.update(overrides)
    return cfg


def _app(cfg=None, **kwargs):
    kwargs.setdefault("database", FakeDatabase())
    kwargs.setdefault("llm_clients", {ModelTier.STRONG: ScriptedLLMClient([text_response("hi")])})
    return CasaFlow(cfg or _config(), **kwargs)


# =========================================================================
# Config loading
# =========================================================================


class TestLoadConfig:

    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CASAFLOW_TEST_DSN", "postgresql://db/prod")
        monkeypatch.setenv("CASAFLOW_TEST_KEY", "sk-from-env")
        path = tmp_path / "config.yaml"
        path.write_text(
            "database: ${CASAFLOW_TEST_DSN}\n"
            "llm:\n"
            "  provider: anthropic\n"
            "  strong_model: claude-sonnet\n"
            "  api_key: ${CASAFLOW_TEST_KEY}\n"
        )

        cfg = _load_config(str(path))

        assert cfg["database"] == "postgresql://db/prod"
        assert cfg["llm"]["api_key"] == "sk-from-env"

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CASAFLOW_TEST_MISSING", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("database: ${CASAFLOW_TEST_MISSING}\n")

        with pytest.raises(ConfigurationError, match="CASAFLOW_TEST_MISSING"):
            _load_config(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert _load_config(str(path)) == {}

    def test_app_from_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "database: postgresql://localhost/casaflow\n"
            "llm:\n"
            "  provider: ollama\n"
            "  strong_model: llama3\n"
        )
        app = CasaFlow(str(path))
        assert app.config["llm"]["provider"] == "ollama"
        assert not app.initialized


class TestValidateConfig:

    def test_valid(self):
        validate_config(_config())

    def test_missing_database(self):
        cfg = _config()
        del cfg["database"]
        with pytest.raises(ConfigurationError, match="database"):
            validate_config(cfg)

    @pytest.mark.parametrize("missing", ["provider", "strong_model"])
    def test_missing_llm_field(self, missing):
        cfg = _config()
        del cfg["llm"][missing]
        with pytest.raises(ConfigurationError, match="llm.provider"):
            validate_config(cfg)

    def test_constructor_validates(self):
        with pytest.raises(ConfigurationError):
            CasaFlow({"llm": {"provider": "anthropic", "strong_model": "x"}})

    def test_config_is_a_copy(self):
        app = _app()
        app.config["database"] = "changed"
        assert app.config["database"] == BASE_CONFIG["database"]

    def test_auth_section(self):
        app = _app(_config(auth={"service_key": "svc"}))
        assert app.auth_config == {"service_key": "svc"}
        assert _app().auth_config == {}


class TestCredentials:

    def test_missing_key(self):
        cfg = _config()
        del cfg["llm"]["api_key"]
        with pytest.raises(ConfigurationError, match="anthropic"):
            CasaFlow(cfg).require_llm_credentials()

    def test_keyless_provider(self):
        CasaFlow(_config(llm={"provider": "ollama", "strong_model": "llama3"})).require_llm_credentials()

    def test_injected_clients(self):
        cfg = _config()
        del cfg["llm"]["api_key"]
        _app(cfg).require_llm_credentials()


# =========================================================================
# Initialization
# =========================================================================


class TestInitialization:

    @pytest.mark.asyncio
    async def test_wiring(self):
        database = FakeDatabase()
        dispatcher = RecordingDispatcher()
        app = _app(database=database, dispatcher=dispatcher)

        await app.initialize()
        await app.initialize()

        assert app.initialized
        assert database.initialized == 1
        assert app.store.db is database
        assert app.gate is not None
        assert app.chat_service is not None
        assert app.orchestrator is not None
        assert app.workflows is not None
        assert app.scheduler is None
        assert len(app.registry) > 0
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_local_dispatcher_without_endpoint(self):
        app = _app()
        await app.initialize()
        assert isinstance(app._dispatcher, LocalToolDispatcher)
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_missing_key_fails_initialization(self):
        cfg = _config()
        del cfg["llm"]["api_key"]
        app = CasaFlow(cfg, database=FakeDatabase())
        with pytest.raises(ConfigurationError):
            await app.initialize()
        assert not app.initialized

    @pytest.mark.asyncio
    async def test_scheduler_enabled(self):
        app = _app(_config(scheduler={"enabled": True, "schedules": {"daily": "0 6 * * *"}}))
        await app.initialize()
        try:
            assert app.scheduler.running
            assert set(app.scheduler.next_runs) == {"instant", "daily", "weekly", "monthly"}
            assert app.scheduler.next_runs["daily"].hour == 6
        finally:
            await app.shutdown()
        assert not app.scheduler.running


class TestShutdown:

    @pytest.mark.asyncio
    async def test_closes_database(self):
        database = FakeDatabase()
        app = _app(database=database)
        await app.initialize()

        await app.shutdown()

        assert database.closed == 1
        assert not app.initialized

    @pytest.mark.asyncio
    async def test_noop_before_initialize(self):
        database = FakeDatabase()
        app = _app(database=database)
        await app.shutdown()
        assert database.closed == 0
