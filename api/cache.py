# -*- coding: utf-8 -*-
"""
캐시 관리 모듈
- 대시보드 주간 예측용 LRU 캐시 (TTL 5분, 최대 500개)
- 통근 기록 추가/삭제, 패턴 재분석 시 사용자 단위 무효화
- 저장소 장애 시 만료된 항목도 "이전 예측"으로 표시할 수 있도록 LRU 제거 전까지 보관
- Thread-safe: RLock으로 동시 접근 보호
"""
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple


class PredictionCache:
    """
    주간 예측 LRU 캐시 (thread-safe)
    - 캐시 키: (user_id, date) 튜플
    - TTL: 5분 (300초). allow_stale=True면 TTL을 무시한다
    """

    def __init__(self, max_size: int = 500, ttl_seconds: int = 300):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.cache: OrderedDict[Tuple[str, str], Dict[str, Any]] = OrderedDict()  # {key: {value, timestamp}}
        self._lock = threading.RLock()

    def get(self, user_id: str, day: str, allow_stale: bool = False) -> Optional[List[Any]]:
        with self._lock:
            key = (user_id, day)
            entry = self.cache.get(key)
            if entry is None:
                return None
            if not allow_stale and time.time() - entry["timestamp"] > self.ttl_seconds:
                return None
            self.cache.move_to_end(key)
            return entry["value"]

    def set(self, user_id: str, day: str, value: List[Any]) -> None:
        with self._lock:
            key = (user_id, day)
            if key in self.cache:
                self.cache.move_to_end(key)
            elif len(self.cache) >= self.max_size:
                self.cache.popitem(last=False)
            self.cache[key] = {"value": value, "timestamp": time.time()}

    def invalidate_user(self, user_id: str) -> None:
        with self._lock:
            for key in [k for k in self.cache if k[0] == user_id]:
                del self.cache[key]

    def invalidate(self) -> None:
        with self._lock:
            self.cache.clear()
