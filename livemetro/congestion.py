# -*- coding: utf-8 -*-
"""
Congestion Report Service
=========================
크라우드소싱 칸별 혼잡도 제보와 열차별 요약.

칸별 집계:
    level_weight = {low: 1, moderate: 2, high: 3, crowded: 4}
    time_weight  = max(0.1, 1 - age_min / REPORT_EXPIRATION_MINUTES)
    avg          = Σ level_weight·time_weight / Σ time_weight
    level        = low (≤1.5) / moderate (≤2.5) / high (≤3.5) / crowded
"""
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from livemetro.errors import ValidationError
from livemetro.store import DocumentStore
from livemetro.utils import now_kst

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "congestionReports"
SUMMARY_COLLECTION = "congestionSummary"

TRAIN_CAR_COUNT = 10
REPORT_EXPIRATION_MINUTES = 10
REPORT_COOLDOWN_MINUTES = 3

CONGESTION_LEVELS = ("low", "moderate", "high", "crowded")
LEVEL_WEIGHTS: Dict[str, int] = {"low": 1, "moderate": 2, "high": 3, "crowded": 4}
LEVEL_NAMES_KO: Dict[str, str] = {
    "low": "여유",
    "moderate": "보통",
    "high": "혼잡",
    "crowded": "매우 혼잡",
}
DIRECTIONS = ("up", "down")


def level_from_weight(avg_weight: float) -> str:
    if avg_weight <= 1.5:
        return "low"
    if avg_weight <= 2.5:
        return "moderate"
    if avg_weight <= 3.5:
        return "high"
    return "crowded"


@dataclass(frozen=True)
class CongestionReportInput:
    train_id: str
    line_id: str
    station_id: str
    direction: str
    car_number: int
    congestion_level: str


@dataclass(frozen=True)
class CongestionReport:
    id: str
    train_id: str
    line_id: str
    station_id: str
    direction: str
    car_number: int
    congestion_level: str
    reporter_id: str
    timestamp: datetime
    expires_at: datetime

    def to_doc(self) -> dict:
        doc = asdict(self)
        doc.pop("id")
        doc["timestamp"] = self.timestamp.isoformat()
        doc["expires_at"] = self.expires_at.isoformat()
        return doc

    @classmethod
    def from_doc(cls, report_id: str, doc: dict) -> "CongestionReport":
        data = dict(doc)
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        data["expires_at"] = datetime.fromisoformat(data["expires_at"])
        return cls(id=report_id, **data)


@dataclass(frozen=True)
class CarCongestion:
    car_number: int
    congestion_level: str
    report_count: int
    last_updated: Optional[datetime]


@dataclass(frozen=True)
class TrainCongestionSummary:
    id: str
    train_id: str
    line_id: str
    direction: str
    cars: List[CarCongestion]
    overall_level: str
    report_count: int
    last_updated: datetime

    def to_doc(self) -> dict:
        doc = asdict(self)
        doc.pop("id")
        doc["last_updated"] = self.last_updated.isoformat()
        for car in doc["cars"]:
            car["last_updated"] = car["last_updated"].isoformat() if car["last_updated"] else None
        return doc

    @classmethod
    def from_doc(cls, summary_id: str, doc: dict) -> "TrainCongestionSummary":
        data = dict(doc)
        data["last_updated"] = datetime.fromisoformat(data["last_updated"])
        data["cars"] = [
            CarCongestion(
                car_number=car["car_number"],
                congestion_level=car["congestion_level"],
                report_count=car["report_count"],
                last_updated=datetime.fromisoformat(car["last_updated"]) if car["last_updated"] else None,
            )
            for car in doc["cars"]
        ]
        return cls(id=summary_id, **data)


def summary_id(line_id: str, direction: str, train_id: str) -> str:
    return f"{line_id}_{direction}_{train_id}"


def calculate_overall_congestion(cars: Iterable[CarCongestion]) -> str:
    """제보 수 가중 평균으로 열차 전체 혼잡도를 계산한다."""
    total_weight = 0
    total_reports = 0
    for car in cars:
        total_weight += LEVEL_WEIGHTS[car.congestion_level] * car.report_count
        total_reports += car.report_count
    if total_reports == 0:
        return "low"
    return level_from_weight(total_weight / total_reports)


def aggregate_car_congestion(reports: Iterable[CongestionReport], now: datetime) -> List[CarCongestion]:
    """제보를 칸별 혼잡도로 집계한다. 최근 제보일수록 가중치가 크다."""
    by_car: Dict[int, List[CongestionReport]] = {}
    for report in reports:
        by_car.setdefault(report.car_number, []).append(report)

    cars = [CarCongestion(car_number=n, congestion_level="low", report_count=0, last_updated=None)
            for n in range(1, TRAIN_CAR_COUNT + 1)]

    for car_number, car_reports in by_car.items():
        if not 1 <= car_number <= TRAIN_CAR_COUNT:
            continue
        weighted_sum = 0.0
        total_weight = 0.0
        for report in car_reports:
            age_minutes = (now - report.timestamp).total_seconds() / 60
            time_weight = max(0.1, 1 - age_minutes / REPORT_EXPIRATION_MINUTES)
            weighted_sum += LEVEL_WEIGHTS[report.congestion_level] * time_weight
            total_weight += time_weight
        avg_level = weighted_sum / total_weight if total_weight > 0 else 1

        cars[car_number - 1] = CarCongestion(
            car_number=car_number,
            congestion_level=level_from_weight(avg_level),
            report_count=len(car_reports),
            last_updated=max(r.timestamp for r in car_reports),
        )
    return cars


class CongestionService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = now_kst):
        self.store = store
        self.clock = clock

    async def submit_report(self, user_id: str, data: CongestionReportInput) -> CongestionReport:
        if not 1 <= data.car_number <= TRAIN_CAR_COUNT:
            raise ValidationError(f"칸 번호는 1~{TRAIN_CAR_COUNT} 사이여야 합니다.")
        if data.congestion_level not in CONGESTION_LEVELS:
            raise ValidationError(f"잘못된 혼잡도입니다: {data.congestion_level}")
        if data.direction not in DIRECTIONS:
            raise ValidationError(f"잘못된 방향입니다: {data.direction}")
        if await self.has_recent_report(user_id, data.train_id, data.car_number):
            raise ValidationError(f"같은 칸은 {REPORT_COOLDOWN_MINUTES}분 후에 다시 제보할 수 있습니다.")

        now = self.clock()
        report = CongestionReport(
            id=uuid.uuid4().hex,
            train_id=data.train_id,
            line_id=data.line_id,
            station_id=data.station_id,
            direction=data.direction,
            car_number=data.car_number,
            congestion_level=data.congestion_level,
            reporter_id=user_id,
            timestamp=now,
            expires_at=now + timedelta(minutes=REPORT_EXPIRATION_MINUTES),
        )
        await self.store.set(REPORTS_COLLECTION, report.id, report.to_doc())
        await self._update_summary(data.line_id, data.direction, data.train_id)
        return report

    async def get_train_congestion(self, line_id: str, direction: str,
                                   train_id: str) -> Optional[TrainCongestionSummary]:
        sid = summary_id(line_id, direction, train_id)
        doc = await self.store.get(SUMMARY_COLLECTION, sid)
        return TrainCongestionSummary.from_doc(sid, doc) if doc else None

    async def get_line_congestion(self, line_id: str, max_results: int = 50) -> List[TrainCongestionSummary]:
        docs = await self.store.list(SUMMARY_COLLECTION)
        summaries = [
            TrainCongestionSummary.from_doc(sid, doc)
            for sid, doc in docs.items()
            if doc.get("line_id") == line_id
        ]
        summaries.sort(key=lambda s: s.last_updated, reverse=True)
        return summaries[:max_results]

    async def get_station_reports(self, station_id: str, max_results: int = 20) -> List[CongestionReport]:
        reports = await self._active_reports()
        return [r for r in reports if r.station_id == station_id][:max_results]

    async def has_recent_report(self, user_id: str, train_id: str, car_number: int) -> bool:
        cooldown_start = self.clock() - timedelta(minutes=REPORT_COOLDOWN_MINUTES)
        docs = await self.store.list(REPORTS_COLLECTION)
        for report_id, doc in docs.items():
            report = CongestionReport.from_doc(report_id, doc)
            if (report.reporter_id == user_id and report.train_id == train_id
                    and report.car_number == car_number and report.timestamp >= cooldown_start):
                return True
        return False

    async def get_car_congestion_from_reports(self, line_id: str, direction: str,
                                              train_id: str) -> List[CarCongestion]:
        reports = [
            r for r in await self._active_reports()
            if r.train_id == train_id and r.line_id == line_id and r.direction == direction
        ]
        return aggregate_car_congestion(reports[:100], self.clock())

    async def get_line_level(self, line_id: str) -> Optional[str]:
        """가장 최근 갱신된 열차 요약의 전체 혼잡도 (요약이 없거나 만료되면 None)"""
        summaries = await self.get_line_congestion(line_id, max_results=1)
        if not summaries:
            return None
        latest = summaries[0]
        if self.clock() - latest.last_updated > timedelta(minutes=REPORT_EXPIRATION_MINUTES):
            return None
        return latest.overall_level

    async def cleanup_expired_reports(self) -> int:
        now = self.clock()
        docs = await self.store.list(REPORTS_COLLECTION)
        deleted = 0
        for report_id, doc in docs.items():
            if datetime.fromisoformat(doc["expires_at"]) < now:
                if await self.store.delete(REPORTS_COLLECTION, report_id):
                    deleted += 1
        if deleted:
            logger.info("Expired congestion reports removed: %d", deleted)
        return deleted

    async def _active_reports(self) -> List[CongestionReport]:
        now = self.clock()
        docs = await self.store.list(REPORTS_COLLECTION)
        reports = [CongestionReport.from_doc(report_id, doc) for report_id, doc in docs.items()]
        reports = [r for r in reports if r.expires_at >= now]
        reports.sort(key=lambda r: r.timestamp, reverse=True)
        return reports

    async def _update_summary(self, line_id: str, direction: str, train_id: str) -> None:
        cars = await self.get_car_congestion_from_reports(line_id, direction, train_id)
        summary = TrainCongestionSummary(
            id=summary_id(line_id, direction, train_id),
            train_id=train_id,
            line_id=line_id,
            direction=direction,
            cars=cars,
            overall_level=calculate_overall_congestion(cars),
            report_count=sum(car.report_count for car in cars),
            last_updated=self.clock(),
        )
        await self.store.set(SUMMARY_COLLECTION, summary.id, summary.to_doc())
