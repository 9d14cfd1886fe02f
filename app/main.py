# app/main.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.domain.roulette.coordinator import SYSTEM_ACTOR, SYSTEM_ACTOR_ID, GameCoordinator
from app.domain.roulette.queue import PendingQueue
from app.logging_setup import configure_logging
from app.settings import Settings, get_settings
from app.store.models import AuditLogEntry
from app.store.redis_repo import RedisResultStore
from app.transport.admin import router as admin_router
from app.transport.api import router as api_router
from app.util.timeutil import now_ms

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, *, store=None, clock: Callable[[], int] = now_ms) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    allowed_origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def _startup() -> None:
        app.state.redis = None
        result_store = store
        if result_store is None:
            r: Optional[Redis] = None
            if settings.REDIS_URL:
                r = Redis.from_url(settings.REDIS_URL, decode_responses=False)
                try:
                    await r.ping()
                except RedisError as e:
                    logger.warning("Redis ping failed at startup (%s); results will be retried per spin", e)
            else:
                logger.warning("REDIS_URL not set; spin results and audit logs will not be persisted")
            app.state.redis = r
            result_store = RedisResultStore(r, audit_max_entries=settings.AUDIT_LOG_MAX_ENTRIES, clock=clock)

        app.state.store = result_store
        app.state.queue = PendingQueue(max_size=settings.MAX_QUEUE_SIZE)
        app.state.coordinator = GameCoordinator.from_settings(
            settings, store=result_store, queue=app.state.queue, clock=clock
        )
        app.state.coordinator.start_activity_monitor()

        await result_store.append_audit(
            AuditLogEntry(
                actor_id=SYSTEM_ACTOR_ID,
                actor_name=SYSTEM_ACTOR,
                action="server_start",
                details=f"{settings.APP_NAME} listening on {settings.HOST}:{settings.PORT}",
                success=True,
            )
        )
        logger.info(
            "Game coordinator ready: round=%dms spin=%dms+%dms admins=%d",
            settings.ROUND_DURATION_MS,
            settings.SPIN_ANIMATION_MS,
            settings.SPIN_BUFFER_MS,
            len(settings.ADMINS),
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.coordinator.shutdown()
        r: Optional[Redis] = app.state.redis
        if r is not None:
            await r.aclose()

    @app.get("/health")
    async def health():
        r: Optional[Redis] = app.state.redis
        if r is None:
            return {"ok": True, "redis": "not configured"}
        try:
            pong = await r.ping()
        except RedisError as e:
            return {"ok": False, "redis": str(e)}
        return {"ok": True, "redis": str(pong)}

    app.include_router(api_router)
    app.include_router(admin_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("app.main:app", host=_settings.HOST, port=_settings.PORT)
