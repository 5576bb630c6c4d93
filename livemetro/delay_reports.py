# -*- coding: utf-8 -*-
"""
Delay Report Service
====================
사용자 지연 제보(크라우드소싱) 저장/조회.
스마트 알림의 지연 신호로 노선별 최대 예상 지연 시간을 제공한다.
"""
import logging
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from livemetro.delay_detection import DEFAULT_DELAY_MINUTES, DelayInfo, line_name
from livemetro.errors import NotFoundError, ValidationError
from livemetro.store import DocumentStore
from livemetro.utils import now_kst

logger = logging.getLogger(__name__)

COLLECTION_NAME = "delayReports"
MAX_REPORT_AGE_HOURS = 4  # 이보다 오래된 제보는 비활성으로 간주

REPORT_TYPE_LABELS: Dict[str, str] = {
    "delay": "지연",
    "accident": "사고",
    "crowded": "혼잡",
    "door_issue": "출입문 고장",
    "signal_issue": "신호 장애",
    "stopped": "운행 중단",
    "other": "기타",
}
SEVERITIES = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class DelayReportInput:
    line_id: str
    station_id: str
    station_name: str
    report_type: str = "delay"
    severity: str = "medium"
    description: Optional[str] = None
    estimated_delay_minutes: Optional[int] = None


@dataclass(frozen=True)
class DelayReport:
    id: str
    user_id: str
    line_id: str
    station_id: str
    station_name: str
    report_type: str
    severity: str
    timestamp: datetime
    description: Optional[str] = None
    estimated_delay_minutes: Optional[int] = None
    upvotes: int = 0
    active: bool = True

    def to_doc(self) -> dict:
        doc = asdict(self)
        doc.pop("id")
        doc["timestamp"] = self.timestamp.isoformat()
        return doc

    @classmethod
    def from_doc(cls, report_id: str, doc: dict) -> "DelayReport":
        data = dict(doc)
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        return cls(id=report_id, **data)


class DelayReportService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = now_kst):
        self.store = store
        self.clock = clock

    async def submit_report(self, user_id: str, data: DelayReportInput) -> DelayReport:
        if data.report_type not in REPORT_TYPE_LABELS:
            raise ValidationError(f"잘못된 제보 유형입니다: {data.report_type}")
        if data.severity not in SEVERITIES:
            raise ValidationError(f"잘못된 심각도입니다: {data.severity}")
        if data.estimated_delay_minutes is not None and data.estimated_delay_minutes < 0:
            raise ValidationError("예상 지연 시간은 0분 이상이어야 합니다.")

        report = DelayReport(
            id=uuid.uuid4().hex,
            user_id=user_id,
            line_id=data.line_id,
            station_id=data.station_id,
            station_name=data.station_name,
            report_type=data.report_type,
            severity=data.severity,
            description=data.description,
            estimated_delay_minutes=data.estimated_delay_minutes,
            timestamp=self.clock(),
        )
        await self.store.set(COLLECTION_NAME, report.id, report.to_doc())
        logger.info("Delay report submitted: line=%s type=%s", report.line_id, report.report_type)
        return report

    async def get_active_reports(self, max_results: int = 50) -> List[DelayReport]:
        """활성 상태이고 4시간 이내인 제보 (최신순)"""
        cutoff = self.clock() - timedelta(hours=MAX_REPORT_AGE_HOURS)
        docs = await self.store.list(COLLECTION_NAME)
        reports = [DelayReport.from_doc(report_id, doc) for report_id, doc in docs.items()]
        reports = [r for r in reports if r.active and r.timestamp >= cutoff]
        reports.sort(key=lambda r: r.timestamp, reverse=True)
        return reports[:max_results]

    async def get_line_reports(self, line_id: str, max_results: int = 20) -> List[DelayReport]:
        reports = await self.get_active_reports(max_results=100)
        return [r for r in reports if r.line_id == line_id][:max_results]

    async def upvote_report(self, report_id: str) -> DelayReport:
        report = await self._get(report_id)
        updated = replace(report, upvotes=report.upvotes + 1)
        await self.store.set(COLLECTION_NAME, report_id, updated.to_doc())
        return updated

    async def deactivate_report(self, report_id: str) -> None:
        report = await self._get(report_id)
        await self.store.set(COLLECTION_NAME, report_id, replace(report, active=False).to_doc())

    async def get_line_delays(self, line_ids: List[str]) -> List[DelayInfo]:
        """노선별 최대 예상 지연 시간 (제보가 있는 노선만).

        예상 시간이 없는 제보는 DEFAULT_DELAY_MINUTES로 본다.
        """
        reports = await self.get_active_reports(max_results=100)
        by_line: Dict[str, List[DelayReport]] = {}
        for report in reports:
            if report.line_id in line_ids:
                by_line.setdefault(report.line_id, []).append(report)

        delays = []
        for line_id, line_reports in by_line.items():
            worst = max(line_reports, key=_estimated_minutes)
            delays.append(DelayInfo(
                line_id=line_id,
                line_name=line_name(line_id),
                delay_minutes=_estimated_minutes(worst),
                reason=REPORT_TYPE_LABELS[worst.report_type],
                detected_at=line_reports[0].timestamp,
                source="report",
            ))
        delays.sort(key=lambda d: d.delay_minutes, reverse=True)
        return delays

    async def _get(self, report_id: str) -> DelayReport:
        doc = await self.store.get(COLLECTION_NAME, report_id)
        if doc is None:
            raise NotFoundError("지연 제보를 찾을 수 없습니다.")
        return DelayReport.from_doc(report_id, doc)


def _estimated_minutes(report: DelayReport) -> int:
    if report.estimated_delay_minutes is None:
        return DEFAULT_DELAY_MINUTES
    return report.estimated_delay_minutes
