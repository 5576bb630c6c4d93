# -*- coding: utf-8 -*-
"""
Commute domain models
=====================
통근 기록, 요일별 통근 패턴, 예측, 스마트 알림 설정/알림 데이터 모델.

문서 저장소에는 dict 형태로 저장되며 각 모델은 to_doc()/from_doc()으로 변환한다.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import ClassVar, Dict, List, Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_LOGS_FOR_PATTERN = 3        # 패턴 생성에 필요한 요일별 최소 기록 수
ANALYSIS_WINDOW = 60            # 분석에 사용하는 최근 기록 수
MAX_LOG_AGE_DAYS = 30           # 분석에 사용하는 기록의 최대 보관 일수
DEFAULT_ALERT_MINUTES_BEFORE = 15
MIN_PREDICTION_CONFIDENCE = 0.5
DELAY_ALERT_THRESHOLD_MINUTES = 5


@dataclass(frozen=True)
class CommuteLogInput:
    station_id: Optional[str] = None
    day_of_week: Optional[str] = None
    station_name: str = ""
    line_id: str = ""
    direction: str = ""
    departure_time: Optional[str] = None  # 기본값: 현재 시각
    arrival_station_id: str = ""
    arrival_station_name: str = ""
    arrival_time: Optional[str] = None
    was_delayed: bool = False
    delay_minutes: Optional[int] = None
    is_manual: bool = True


@dataclass(frozen=True)
class CommuteLog:
    id: str
    user_id: str
    station_id: str
    line_id: str
    direction: str
    day_of_week: str
    departure_time: str  # HH:mm
    date: str            # YYYY-MM-DD
    timestamp: datetime
    station_name: str = ""
    arrival_station_id: str = ""
    arrival_station_name: str = ""
    arrival_time: Optional[str] = None
    was_delayed: bool = False
    delay_minutes: Optional[int] = None
    is_manual: bool = True

    def to_doc(self) -> dict:
        doc = asdict(self)
        doc.pop("id")
        doc.pop("user_id")
        doc["timestamp"] = self.timestamp.isoformat()
        return doc

    @classmethod
    def from_doc(cls, log_id: str, user_id: str, doc: dict) -> "CommuteLog":
        data = dict(doc)
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        return cls(id=log_id, user_id=user_id, **data)


@dataclass(frozen=True)
class CommutePattern:
    user_id: str
    day_of_week: str
    typical_departure_time: str
    std_dev_minutes: float
    station_id: str
    line_id: str
    confidence: float  # 0-1
    sample_count: int
    last_updated: datetime
    station_name: str = ""
    direction: str = ""

    def to_doc(self) -> dict:
        doc = asdict(self)
        doc.pop("user_id")
        doc["last_updated"] = self.last_updated.isoformat()
        return doc

    @classmethod
    def from_doc(cls, user_id: str, doc: dict) -> "CommutePattern":
        data = dict(doc)
        data["last_updated"] = datetime.fromisoformat(data["last_updated"])
        return cls(user_id=user_id, **data)


@dataclass(frozen=True)
class PredictedCommute:
    date: str
    day_of_week: str
    predicted_departure_time: str
    station_id: str
    line_id: str
    confidence: float
    suggested_alert_time: str  # 보통 출발 15분 전
    station_name: str = ""


@dataclass(frozen=True)
class SmartNotificationSettings:
    user_id: str
    enabled: bool = False
    alert_minutes_before: int = DEFAULT_ALERT_MINUTES_BEFORE
    check_delays_for: List[str] = field(default_factory=list)
    include_weekends: bool = False
    custom_alert_times: Dict[str, str] = field(default_factory=dict)  # {dow: HH:mm}

    def to_doc(self) -> dict:
        doc = asdict(self)
        doc.pop("user_id")
        return doc

    @classmethod
    def from_doc(cls, user_id: str, doc: dict) -> "SmartNotificationSettings":
        return cls(user_id=user_id, **doc)


@dataclass(frozen=True)
class ScheduleEntry:
    date: str
    day_of_week: str
    alert_time: Optional[str]
    source: Optional[str]  # "custom" | "prediction" | None


# ---------------------------------------------------------------------------
# Smart notification variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SmartNotification:
    id: str
    date: str
    day_of_week: str
    alert_time: str
    title: str
    message: str

    kind: ClassVar[str] = "base"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class CommuteReminder(SmartNotification):
    kind: ClassVar[str] = "commute_reminder"


@dataclass(frozen=True)
class DelayWarning(SmartNotification):
    affected_lines: List[str] = field(default_factory=list)
    max_delay_minutes: int = 0
    reason: Optional[str] = None

    kind: ClassVar[str] = "delay_warning"


@dataclass(frozen=True)
class CongestionWarning(SmartNotification):
    line_id: str = ""
    congestion_level: str = ""

    kind: ClassVar[str] = "congestion_warning"
