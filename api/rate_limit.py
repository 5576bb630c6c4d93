"""
IP별 요청 제한 백엔드.

- InMemoryLimiter (기본): 단일 워커용 고정 윈도우 카운터
- RedisLimiter (선택): REDIS_URL 설정 시, INCR + EXPIRE로 다중 워커 간 카운터 공유
"""
import logging
import threading
import time
from typing import Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    async def hit(self, key: str, limit: int, window: int) -> bool:
        """요청 1회를 기록하고, 윈도우 내 limit을 넘었으면 True (차단)."""
        ...


class InMemoryLimiter:
    def __init__(self) -> None:
        self._counters: Dict[str, Tuple[int, int]] = {}  # key -> (window index, count)
        self._lock = threading.Lock()

    async def hit(self, key: str, limit: int, window: int) -> bool:
        bucket = int(time.time() // window)
        with self._lock:
            current, count = self._counters.get(key, (bucket, 0))
            if current != bucket:
                count = 0
                # 지난 윈도우 카운터 정리
                self._counters = {k: v for k, v in self._counters.items() if v[0] == bucket}
            count += 1
            self._counters[key] = (bucket, count)
        return count > limit


class RedisLimiter:
    def __init__(self, redis_url: str, prefix: str = "livemetro:rate") -> None:
        try:
            import redis.asyncio as aioredis  # type: ignore[import-untyped]
        except ImportError:
            raise ImportError(
                "Redis 요청 제한에는 redis 패키지가 필요합니다. 설치: pip install 'livemetro[redis]'"
            )
        self._redis = aioredis.from_url(redis_url, decode_responses=True)
        self._prefix = prefix

    async def hit(self, key: str, limit: int, window: int) -> bool:
        bucket = int(time.time() // window)
        redis_key = f"{self._prefix}:{key}:{bucket}"
        pipe = self._redis.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window)
        count, _ = await pipe.execute()
        return int(count) > limit


def create_limiter(redis_url: Optional[str] = None) -> RateLimiter:
    if redis_url:
        try:
            return RedisLimiter(redis_url)  # type: ignore[return-value]
        except ImportError as e:
            logger.warning("%s 인메모리 요청 제한으로 전환합니다.", e)
    return InMemoryLimiter()  # type: ignore[return-value]
