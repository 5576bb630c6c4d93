# -*- coding: utf-8 -*-
"""
Delay Detection
===============
실시간 도착정보 API의 도착 메시지(arvlMsg2/arvlMsg3)에서 지연 키워드를 찾아
노선별 지연 정보를 만든다.

- 노선마다 대표 역 하나의 도착정보를 조회한다 (노선 간 병렬, all-settled).
- 한 노선의 조회 실패는 다른 노선의 분석을 막지 않는다.
- DelayPoller는 고정 간격으로 조회하며, 이전 주기가 끝나지 않았으면 이번 주기를 건너뛴다.
"""
import asyncio
import logging
import re
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol

from livemetro.utils import now_kst

logger = logging.getLogger(__name__)

DELAY_KEYWORDS = [
    "지연",
    "운행지연",
    "서행",
    "운행중지",
    "운행중단",
    "장애",
    "고장",
    "사고",
    "점검",
]

# 키워드 → 지연 원인 (앞에서부터 첫 일치)
DELAY_REASONS = [
    ("고장", "열차 고장"),
    ("사고", "사고 발생"),
    ("점검", "시설 점검"),
    ("혼잡", "역 혼잡"),
]
DEFAULT_REASON = "운행 지연"
DEFAULT_DELAY_MINUTES = 5

DELAY_MINUTES_RE = re.compile(r"(\d+)\s*분\s*(지연|서행)")

# 노선별 대표 역 (지연 감지용)
LINE_REPRESENTATIVE_STATIONS: Dict[str, str] = {
    "1": "서울역",
    "2": "강남",
    "3": "교대",
    "4": "동대문역사문화공원",
    "5": "광화문",
    "6": "삼각지",
    "7": "건대입구",
    "8": "잠실",
    "9": "여의도",
}

MIN_POLL_INTERVAL_SECONDS = 30.0
POLL_ERROR_MESSAGE = "지연 정보를 가져오는데 실패했습니다"


@dataclass(frozen=True)
class DelayDetection:
    is_delayed: bool
    delay_minutes: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class DelayInfo:
    line_id: str
    line_name: str
    delay_minutes: int
    reason: Optional[str]
    detected_at: datetime
    source: str = "realtime"  # realtime | report


@dataclass(frozen=True)
class DelayScan:
    delays: List[DelayInfo] = field(default_factory=list)
    failed_lines: List[str] = field(default_factory=list)


class ArrivalSource(Protocol):
    async def get_realtime_arrival(self, station_name: str) -> List[dict]:
        ...


def detect_delay(message: str) -> DelayDetection:
    """도착 메시지 문자열에서 지연 여부/지연 시간/원인을 추출한다."""
    if not any(keyword in message for keyword in DELAY_KEYWORDS):
        return DelayDetection(is_delayed=False)

    match = DELAY_MINUTES_RE.search(message)
    delay_minutes = int(match.group(1)) if match else DEFAULT_DELAY_MINUTES

    reason = next((label for keyword, label in DELAY_REASONS if keyword in message), DEFAULT_REASON)
    return DelayDetection(is_delayed=True, delay_minutes=delay_minutes, reason=reason)


def detect_delay_from_arrival(arrival: dict) -> DelayDetection:
    message = f"{arrival.get('arvlMsg2') or ''} {arrival.get('arvlMsg3') or ''}"
    return detect_delay(message)


def line_name(line_id: str, subway_id: Optional[str] = None) -> str:
    """subwayId 형식 '1002' → '2호선'"""
    if subway_id and re.fullmatch(r"100\d", subway_id):
        return f"{subway_id[-1]}호선"
    return f"{line_id}호선"


def is_line_arrival(arrival: dict, line_id: str) -> bool:
    return (
        arrival.get("subwayId") == f"100{line_id}"
        or f"{line_id}호선" in (arrival.get("trainLineNm") or "")
    )


class DelayDetector:
    def __init__(self, source: ArrivalSource, clock: Callable[[], datetime] = now_kst):
        self.source = source
        self.clock = clock

    async def detect_line(self, line_id: str) -> Optional[DelayInfo]:
        """한 노선의 대표 역 도착정보에서 첫 번째 지연을 찾는다."""
        station = LINE_REPRESENTATIVE_STATIONS.get(line_id)
        if station is None:
            return None

        arrivals = await self.source.get_realtime_arrival(station)
        for arrival in arrivals:
            if not is_line_arrival(arrival, line_id):
                continue
            detection = detect_delay_from_arrival(arrival)
            if detection.is_delayed:
                return DelayInfo(
                    line_id=line_id,
                    line_name=line_name(line_id, arrival.get("subwayId")),
                    delay_minutes=detection.delay_minutes,
                    reason=detection.reason,
                    detected_at=self.clock(),
                )
        return None

    async def fetch_delays(self, line_ids: Optional[List[str]] = None) -> DelayScan:
        """노선별 병렬 조회 (all-settled). 지연 시간이 큰 순으로 정렬."""
        line_ids = list(line_ids or LINE_REPRESENTATIVE_STATIONS)
        results = await asyncio.gather(
            *(self.detect_line(line_id) for line_id in line_ids),
            return_exceptions=True,
        )

        delays: List[DelayInfo] = []
        failed: List[str] = []
        for line_id, result in zip(line_ids, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to fetch delays for line %s: %s", line_id, result)
                failed.append(line_id)
            elif result is not None:
                delays.append(result)

        delays.sort(key=lambda d: d.delay_minutes, reverse=True)
        return DelayScan(delays=delays, failed_lines=failed)

    async def get_line_delays(self, line_ids: List[str]) -> List[DelayInfo]:
        return (await self.fetch_delays(line_ids)).delays


class DelayPoller:
    """
    고정 간격 지연 감지 폴러.
    start()/stop()으로 소유자(화면, 앱 lifespan)의 수명에 묶이며,
    조회 중에 도래한 주기는 건너뛴다 (동시 조회 1개).
    """

    def __init__(self, detector: DelayDetector, line_ids: Optional[List[str]] = None,
                 interval_seconds: float = 60.0, clock: Callable[[], datetime] = now_kst):
        if interval_seconds < MIN_POLL_INTERVAL_SECONDS:
            logger.warning("Polling interval %.0fs is below minimum, using %.0fs",
                           interval_seconds, MIN_POLL_INTERVAL_SECONDS)
            interval_seconds = MIN_POLL_INTERVAL_SECONDS
        self.detector = detector
        self.line_ids = list(line_ids or LINE_REPRESENTATIVE_STATIONS)
        self.interval_seconds = interval_seconds
        self.clock = clock

        self.delays: List[DelayInfo] = []
        self.failed_lines: List[str] = []
        self.error: Optional[str] = None
        self.last_updated: Optional[datetime] = None
        self.skipped_cycles = 0

        self._inflight = False
        self._timer: Optional[asyncio.Task] = None
        self._cycles: set = set()

    @property
    def loading(self) -> bool:
        return self._inflight

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def poll_once(self) -> bool:
        """한 주기 실행. 이전 주기가 진행 중이면 건너뛰고 False 반환."""
        if self._inflight:
            self.skipped_cycles += 1
            logger.debug("Delay poll skipped: previous cycle still running")
            return False

        self._inflight = True
        self.error = None
        try:
            scan = await self.detector.fetch_delays(self.line_ids)
            self.delays = scan.delays
            self.failed_lines = scan.failed_lines
            self.last_updated = self.clock()
        except Exception:
            # 이전 지연 목록은 유지한다
            logger.exception("Error detecting delays")
            self.error = POLL_ERROR_MESSAGE
        finally:
            self._inflight = False
        return True

    async def refresh(self) -> bool:
        return await self.poll_once()

    async def get_line_delays(self, line_ids: List[str]) -> List[DelayInfo]:
        """마지막 주기에서 감지된 지연 중 해당 노선만"""
        return [d for d in self.delays if d.line_id in line_ids]

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.create_task(self._run())
        logger.info("Delay poller started: lines=%s interval=%.0fs", self.line_ids, self.interval_seconds)

    async def stop(self) -> None:
        tasks = list(self._cycles)
        if self._timer is not None:
            tasks.append(self._timer)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._timer = None
        self._cycles.clear()
        self._inflight = False
        logger.info("Delay poller stopped")

    async def _run(self) -> None:
        while True:
            self._spawn_cycle()
            await asyncio.sleep(self.interval_seconds)

    def _spawn_cycle(self) -> None:
        task = asyncio.create_task(self.poll_once())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
