"""
pytest 설정 파일
"""
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# 테스트 요청이 IP별 제한에 걸리지 않도록 (api.app import 전에 설정)
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ.pop("REDIS_URL", None)

from livemetro.utils import KST  # noqa: E402


class FakeClock:
    """주입용 시계. 테스트에서 now를 직접 옮긴다."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeArrivalSource:
    """역 이름 → 도착정보 목록 (또는 예외)"""

    def __init__(self, arrivals=None):
        self.arrivals = arrivals or {}
        self.calls = []

    async def get_realtime_arrival(self, station_name):
        self.calls.append(station_name)
        result = self.arrivals.get(station_name, [])
        if isinstance(result, Exception):
            raise result
        return result


def arrival(line_id, msg2="", msg3="", train_line="상행"):
    return {
        "subwayId": f"100{line_id}",
        "trainLineNm": f"{line_id}호선 {train_line}",
        "arvlMsg2": msg2,
        "arvlMsg3": msg3,
    }


@pytest.fixture
def clock():
    """2025-03-10 (월) 07:00 KST"""
    return FakeClock(datetime(2025, 3, 10, 7, 0, tzinfo=KST))


@pytest.fixture
def store():
    from livemetro.store import InMemoryStore
    return InMemoryStore()


@pytest.fixture
def log_service(store, clock):
    from livemetro.commute_log import CommuteLogService
    return CommuteLogService(store, clock=clock)


@pytest.fixture
def analyzer(log_service, store, clock):
    from livemetro.pattern_analysis import PatternAnalyzer
    return PatternAnalyzer(log_service, store, clock=clock)


@pytest.fixture
def arrival_source():
    return FakeArrivalSource()


@pytest.fixture
def test_client(store, clock, arrival_source):
    """인메모리 저장소/가짜 도착정보/고정 시계로 구성한 FastAPI 테스트 클라이언트"""
    from api.app import app
    from api.dependencies import registry
    from livemetro.config import Settings

    registry.load(Settings(), store=store, arrival_source=arrival_source, clock=clock)
    with TestClient(app) as client:
        yield client
