# -*- coding: utf-8 -*-
"""
LiveMetro FastAPI Application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.dependencies import registry
from api.rate_limit import create_limiter
from api.routers import commute, congestion, delays, notifications, patterns
from livemetro import __version__
from livemetro.config import Settings
from livemetro.errors import LiveMetroError

logger = logging.getLogger(__name__)

settings = Settings.from_env()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """IP별 분당 요청 제한 미들웨어 (기본 60회)"""
    def __init__(self, app, requests_per_minute: int = 60, redis_url=None):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.limiter = create_limiter(redis_url)

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if await self.limiter.hit(client_ip, self.requests_per_minute, window=60):
            return JSONResponse(
                status_code=429,
                content={"detail": "요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요."},
            )
        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 테스트에서 미리 load()한 레지스트리는 그대로 사용
    if not registry.loaded:
        registry.load(settings)
    registry.start()
    try:
        yield
    finally:
        await registry.close()


app = FastAPI(title="LiveMetro", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=settings.rate_limit_per_minute,
    redis_url=settings.redis_url,
)

app.include_router(commute.router, prefix="/api", tags=["commute"])
app.include_router(patterns.router, prefix="/api", tags=["patterns"])
app.include_router(notifications.router, prefix="/api", tags=["notifications"])
app.include_router(delays.router, prefix="/api", tags=["delays"])
app.include_router(congestion.router, prefix="/api", tags=["congestion"])


@app.exception_handler(LiveMetroError)
async def livemetro_error_handler(request: Request, exc: LiveMetroError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get(
    "/health",
    summary="서비스 상태 확인",
    description="서비스 로드 여부, 저장소 종류, 지연 폴러 상태를 반환합니다.",
    response_description="status(healthy/unavailable), version, store, delay_polling",
)
async def health():
    if not registry.loaded:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "detail": "Services not loaded"},
        )
    poller = registry.poller
    return {
        "status": "healthy",
        "version": __version__,
        "store": registry.settings.store,
        "delay_polling": poller is not None and poller.running,
    }
