"""
CasaFlow Application - single entry point for the property-management agent.

Usage:
    from casaflow import CasaFlow

    app = CasaFlow("config.yaml")

    # Owner chat
    reply = await app.chat("owner-1", "Which of my tenants are behind on rent?")

    # Scheduled run (what the cron endpoint calls)
    summary = await app.run_orchestrator("instant")
"""

import logging
import os
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Providers litellm can reach without a key of ours
_KEYLESS_PROVIDERS = ("ollama",)


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


def validate_config(cfg: dict) -> None:
    if not cfg.get("database"):
        raise ConfigurationError("Missing required config field: 'database'")
    llm_cfg = cfg.get("llm") or {}
    if not llm_cfg.get("provider") or not llm_cfg.get("strong_model"):
        raise ConfigurationError("Missing required config fields: 'llm.provider' and 'llm.strong_model'")


def _section(cfg: dict, name: str) -> Dict[str, Any]:
    value = cfg.get(name)
    return value if isinstance(value, dict) else {}


class CasaFlow:
    """
    CasaFlow application entry point.

    Sync constructor reads and validates config; async initialization
    (database pool, LLM clients, service wiring) is deferred to the first
    call that needs it.

    Args:
        config: Path to a YAML configuration file, or an already-loaded dict.
        dispatcher: Tool dispatcher override. By default tools are POSTed to
            ``dispatcher.endpoint``.
        llm_clients: ``ModelTier -> client`` override for the gateway.
        database: Database override (already initialized or not).
    """

    def __init__(
        self,
        config: Union[str, dict],
        dispatcher=None,
        llm_clients: Optional[Dict[Any, Any]] = None,
        database=None,
    ):
        self._config = _load_config(config) if isinstance(config, str) else dict(config)
        validate_config(self._config)
        self._initialized = False

        self._dispatcher = dispatcher
        self._llm_clients = llm_clients
        self._database = database

        # Will be set during lazy initialization
        self.store = None
        self.registry = None
        self.gateway = None
        self.gate = None
        self.background = None
        self.chat_service = None
        self.orchestrator = None
        self.workflows = None
        self.scheduler = None

    @property
    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    @property
    def auth_config(self) -> Dict[str, Any]:
        return _section(self._config, "auth")

    @property
    def initialized(self) -> bool:
        return self._initialized

    def require_llm_credentials(self) -> None:
        """Raise ConfigurationError when no LLM API key is available."""
        llm_cfg = self._config["llm"]
        if self._llm_clients or llm_cfg["provider"] in _KEYLESS_PROVIDERS:
            return
        if not llm_cfg.get("api_key"):
            raise ConfigurationError(f"No API key configured for LLM provider '{llm_cfg['provider']}'")

    async def _ensure_initialized(self) -> None:
        """Lazy initialization - runs once on first use."""
        if self._initialized:
            return

        from .audit_logger import AuditLogger
        from .background import BackgroundTasks
        from .batch.scanners import ProactiveScanner
        from .batch.scheduler import BatchReviewScheduler
        from .db import Database, Store
        from .dispatcher import HttpToolDispatcher, LocalToolDispatcher
        from .events.processor import EventQueueProcessor
        from .gate import AutonomyGate
        from .learning import HttpLearningClient
        from .llm import LLMConfig, LLMGateway, LiteLLMClient, ModelRouter, ModelTier
        from .notifications import HttpNotifier
        from .orchestrator import AgenticLoop, DirectiveRunner, LoopConfig
        from .orchestrator.chat import ChatConfig, ChatService
        from .orchestrator.service import OrchestratorService
        from .registry import ToolRegistry
        from .scheduler import DEFAULT_SCHEDULES, OrchestratorScheduler
        from .trajectory import TrajectoryConfig, TrajectoryRecorder
        from .workflows.engine import WorkflowEngine

        cfg = self._config
        llm_cfg = cfg["llm"]
        orch_cfg = _section(cfg, "orchestrator")
        self.require_llm_credentials()

        # 1. LLM clients, one per tier
        if self._llm_clients is None:
            provider = llm_cfg["provider"]
            clients = {}
            for tier, model in (
                (ModelTier.STRONG, llm_cfg["strong_model"]),
                (ModelTier.FAST, llm_cfg.get("fast_model")),
            ):
                if not model:
                    continue
                clients[tier] = LiteLLMClient(
                    config=LLMConfig(model=model, api_key=llm_cfg.get("api_key"), base_url=llm_cfg.get("base_url")),
                    provider_name=provider,
                )
            self._llm_clients = clients
            logger.info(
                f"LLM clients: provider={provider}, strong={llm_cfg['strong_model']}, "
                f"fast={llm_cfg.get('fast_model') or llm_cfg['strong_model']}"
            )
        self.gateway = LLMGateway(
            self._llm_clients,
            max_retries=int(llm_cfg.get("max_retries", 2)),
            retry_base_delay=float(llm_cfg.get("retry_base_delay", 3.0)),
        )

        # 2. Database
        if self._database is None:
            self._database = Database(dsn=cfg["database"])
        await self._database.initialize()
        self.store = Store(self._database)

        # 3. Tools, side-effect services
        self.registry = ToolRegistry()
        if self._dispatcher is None:
            disp_cfg = _section(cfg, "dispatcher")
            if disp_cfg.get("endpoint"):
                self._dispatcher = HttpToolDispatcher(
                    disp_cfg["endpoint"],
                    service_key=disp_cfg.get("service_key"),
                    timeout=float(disp_cfg.get("timeout", 30.0)),
                )
            else:
                logger.warning("No dispatcher endpoint configured; every tool call will report unknown_tool")
                self._dispatcher = LocalToolDispatcher()
        notify_cfg = _section(cfg, "notifications")
        notifier = HttpNotifier(notify_cfg.get("endpoint"), service_key=notify_cfg.get("service_key"))
        learn_cfg = _section(cfg, "learning")
        learning = HttpLearningClient(learn_cfg.get("endpoint"), service_key=learn_cfg.get("service_key"))

        audit = AuditLogger()
        self.background = BackgroundTasks()

        # 4. Gate + loop
        self.gate = AutonomyGate(
            self.registry,
            self.store,
            self._dispatcher,
            audit=audit,
            learning=learning,
            background=self.background,
            tool_timeout=float(orch_cfg.get("tool_timeout", 30.0)),
        )
        loop = AgenticLoop(
            self.gateway,
            self.gate,
            config=LoopConfig(
                max_iterations=int(orch_cfg.get("max_iterations", 10)),
                tool_concurrency=int(orch_cfg.get("concurrency", 3)),
                max_tokens=int(llm_cfg.get("max_tokens", 2048)),
            ),
            audit=audit,
        )
        router = ModelRouter()
        runner = DirectiveRunner(self.store, loop, self.registry, audit=audit)

        # 5. Entry points
        concurrency = int(orch_cfg.get("concurrency", 3))
        self.workflows = WorkflowEngine(
            self.store, runner, router=router,
            retry_delay=timedelta(minutes=int(orch_cfg.get("workflow_retry_minutes", 30))),
        )
        events = EventQueueProcessor(
            self.store, runner, router=router,
            batch_limit=int(orch_cfg.get("event_batch_limit", 20)),
            concurrency=concurrency,
            max_attempts=int(orch_cfg.get("event_max_attempts", 3)),
        )
        batch = BatchReviewScheduler(
            self.store, runner, self.workflows,
            scanner=ProactiveScanner(self.store, self.workflows),
            notifier=notifier,
            router=router,
            property_limit=int(orch_cfg.get("property_limit", 50)),
            concurrency=concurrency,
        )
        self.orchestrator = OrchestratorService(
            events, self.workflows, batch,
            background=self.background,
            audit=audit,
            max_runtime_seconds=float(orch_cfg.get("max_runtime_seconds", 110.0)),
        )
        self.chat_service = ChatService(
            self.store, loop, self.gate, self.registry,
            recorder=TrajectoryRecorder(self.store, TrajectoryConfig.from_dict(_section(cfg, "trajectory"))),
            router=router,
            learning=learning,
            background=self.background,
            config=ChatConfig(max_tokens=int(llm_cfg.get("chat_max_tokens", 4096))),
        )

        # 6. Optional in-process cron
        sched_cfg = _section(cfg, "scheduler")
        if sched_cfg.get("enabled"):
            schedules = {**DEFAULT_SCHEDULES, **(sched_cfg.get("schedules") or {})}
            self.scheduler = OrchestratorScheduler(self.orchestrator, schedules)
            await self.scheduler.start()

        self._initialized = True
        logger.info(f"CasaFlow initialized ({len(self.registry)} tools)")

    async def initialize(self) -> None:
        await self._ensure_initialized()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chat(self, user_id: str, message: str, conversation_id: Optional[str] = None):
        await self._ensure_initialized()
        return await self.chat_service.handle_message(user_id, message, conversation_id)

    async def resolve_pending_action(
        self,
        user_id: str,
        action_type: str,
        pending_action_id: str,
        conversation_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        await self._ensure_initialized()
        return await self.chat_service.handle_pending_action(
            user_id, action_type, pending_action_id, conversation_id, message,
        )

    async def list_pending_actions(self, user_id: str) -> List[Any]:
        await self._ensure_initialized()
        return await self.chat_service.list_pending(user_id)

    async def run_orchestrator(
        self,
        mode: str = "instant",
        user_id: Optional[str] = None,
        property_id: Optional[str] = None,
        max_properties: Optional[int] = None,
    ):
        await self._ensure_initialized()
        return await self.orchestrator.run(mode, user_id, property_id, max_properties)

    async def enqueue_event(self, event) -> str:
        await self._ensure_initialized()
        return await self.store.events.enqueue(event)

    async def start_workflow(self, user_id: str, workflow_type: str, **kwargs):
        await self._ensure_initialized()
        return await self.workflows.create_workflow(user_id, workflow_type, **kwargs)

    async def shutdown(self) -> None:
        """Shut down the application, closing all connections."""
        if not self._initialized:
            return
        try:
            if self.scheduler:
                await self.scheduler.stop()
            if self.background:
                await self.background.drain()
            if self._dispatcher:
                await self._dispatcher.close()
            if self._database:
                await self._database.close()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")
        finally:
            self._initialized = False
            logger.info("CasaFlow shut down")
