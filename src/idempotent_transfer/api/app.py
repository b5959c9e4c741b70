"""FastAPI application exposing the transfer endpoint.

Routes:
    POST /transfer  idempotent transfer (Idempotency-Key header required)
    GET  /health    liveness
    GET  /metrics   Prometheus exposition

The process entry point owns the lifecycle of every store handle: the
lifespan builds them from TransferConfig, checks connectivity, starts the
in-memory sweeper when needed, and closes everything on shutdown. Tests can
pass prebuilt ServiceComponents instead, in which case the caller owns them.

Examples:
    Running under uvicorn::

        uvicorn idempotent_transfer.api.app:create_app --factory

    Embedding with prebuilt components::

        components = ServiceComponents.build(config)
        app = create_app(config, components=components)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from idempotent_transfer import __version__
from idempotent_transfer.config import TransferConfig
from idempotent_transfer.core.cleanup import start_cleanup_task, stop_cleanup_task
from idempotent_transfer.core.fault import HeaderFaultInjector
from idempotent_transfer.core.orchestrator import TransferOrchestrator
from idempotent_transfer.exceptions import InfrastructureError, SimulatedCrashError
from idempotent_transfer.observability.logging import get_logger, request_context
from idempotent_transfer.observability.metrics import render_latest
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.storage.memory import MemoryEphemeralStore
from idempotent_transfer.storage.redis import RedisEphemeralStore
from idempotent_transfer.utils.headers import IDEMPOTENCY_KEY_HEADER

logger = get_logger(__name__)


class ServiceComponents:
    """Store handles and the orchestrator built on top of them.

    Attributes:
        ledger: Durable ledger store.
        ephemeral: Lock + response cache store.
        orchestrator: TransferOrchestrator wired to both.
    """

    def __init__(
        self,
        ledger: SQLLedgerStore,
        ephemeral: MemoryEphemeralStore | RedisEphemeralStore,
        orchestrator: TransferOrchestrator,
    ) -> None:
        self.ledger = ledger
        self.ephemeral = ephemeral
        self.orchestrator = orchestrator

    @classmethod
    def build(cls, config: TransferConfig) -> "ServiceComponents":
        ledger = SQLLedgerStore.from_url(config.database_url, config.database_timeout_seconds)

        ephemeral: MemoryEphemeralStore | RedisEphemeralStore
        if config.ephemeral_store == "redis":
            ephemeral = RedisEphemeralStore.from_url(config.redis_url, config.redis_timeout_seconds)
        else:
            ephemeral = MemoryEphemeralStore()

        orchestrator = TransferOrchestrator(
            ledger=ledger,
            locks=ephemeral,
            cache=ephemeral,
            config=config,
            fault_injector=HeaderFaultInjector(config.chaos_mode, config.chaos_header),
        )
        return cls(ledger, ephemeral, orchestrator)

    async def close(self) -> None:
        await self.ephemeral.close()
        self.ledger.close()


async def _check_connectivity(components: ServiceComponents) -> None:
    try:
        await components.ledger.ping()
        logger.info("database.connected")
    except InfrastructureError as e:
        logger.error("database.unreachable", error=e.message)

    if isinstance(components.ephemeral, RedisEphemeralStore):
        try:
            await components.ephemeral.ping()
            logger.info("redis.connected")
        except InfrastructureError as e:
            logger.error("redis.unreachable", error=e.message)


def create_app(
    config: TransferConfig | None = None,
    components: ServiceComponents | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Service configuration; read from the environment if omitted.
        components: Prebuilt store handles. When omitted they are built in
            the lifespan and closed on shutdown.
    """
    config = config or TransferConfig.from_env()
    owns_components = components is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        nonlocal components
        if components is None:
            components = ServiceComponents.build(config)
            components.ledger.init_schema()
            app.state.components = components
            app.state.orchestrator = components.orchestrator
        await _check_connectivity(components)

        sweeper = None
        if isinstance(components.ephemeral, MemoryEphemeralStore):
            sweeper = await start_cleanup_task(
                components.ephemeral, config.cleanup_interval_seconds
            )

        logger.info(
            "service.started",
            ephemeral_store=config.ephemeral_store,
            chaos_mode=config.chaos_mode,
            lock_ttl_seconds=config.lock_ttl_seconds,
        )
        try:
            yield
        finally:
            if sweeper is not None:
                await stop_cleanup_task(sweeper)
            if owns_components:
                await components.close()
                components = None
            logger.info("service.stopped")

    app = FastAPI(title="Idempotent Transfer API", version=__version__, lifespan=lifespan)
    app.state.config = config
    if components is not None:
        app.state.components = components
        app.state.orchestrator = components.orchestrator

    @app.exception_handler(SimulatedCrashError)
    async def simulated_crash_handler(request: Request, exc: SimulatedCrashError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message},
        )

    @app.post("/transfer")
    async def transfer(request: Request) -> Response:
        orchestrator: TransferOrchestrator = request.app.state.orchestrator
        key = request.headers.get(IDEMPOTENCY_KEY_HEADER)
        body = await request.body()
        with request_context(key=key, path=request.url.path):
            result = await orchestrator.execute(
                body=body,
                idempotency_key=key,
                headers=dict(request.headers),
            )
        return Response(content=result.body, status_code=result.status, headers=result.headers)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        payload, content_type = render_latest()
        return Response(content=payload, media_type=content_type)

    return app
