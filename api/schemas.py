from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


VALID_DOW = Literal["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]


# --- Commute Log Schemas ---

class CommuteLogRequest(BaseModel):
    station_id: str = Field(min_length=1, max_length=20)
    day_of_week: VALID_DOW
    station_name: str = Field("", max_length=30)
    line_id: str = Field("", max_length=10)
    direction: str = Field("", max_length=20)
    departure_time: Optional[str] = None  # None이면 현재 시각 (형식 검증은 서비스에서)
    arrival_station_id: str = Field("", max_length=20)
    arrival_station_name: str = Field("", max_length=30)
    arrival_time: Optional[str] = None
    was_delayed: bool = False
    delay_minutes: Optional[int] = Field(None, ge=0, le=600)
    is_manual: bool = True


class CommuteLogUpdateRequest(BaseModel):
    arrival_time: Optional[str] = None
    was_delayed: Optional[bool] = None
    delay_minutes: Optional[int] = Field(None, ge=0, le=600)


class AutoLogRequest(BaseModel):
    station_id: str = Field(min_length=1, max_length=20)
    station_name: str = Field("", max_length=30)
    line_id: str = Field(max_length=10)
    commute_type: Literal["departure", "arrival"]


class CommuteLogItem(BaseModel):
    id: str
    user_id: str
    station_id: str
    station_name: str
    line_id: str
    direction: str
    day_of_week: str
    departure_time: str
    date: str
    timestamp: datetime
    arrival_station_id: str = ""
    arrival_station_name: str = ""
    arrival_time: Optional[str] = None
    was_delayed: bool = False
    delay_minutes: Optional[int] = None
    is_manual: bool = True


class CleanupResponse(BaseModel):
    deleted: int


# --- Pattern / Prediction Schemas ---

class CommutePatternItem(BaseModel):
    user_id: str
    day_of_week: str
    typical_departure_time: str
    std_dev_minutes: float
    station_id: str
    station_name: str = ""
    line_id: str
    direction: str = ""
    confidence: float  # 0.0-1.0
    sample_count: int
    last_updated: datetime


class PredictedCommuteItem(BaseModel):
    date: str
    day_of_week: str
    predicted_departure_time: str
    station_id: str
    station_name: str = ""
    line_id: str
    confidence: float
    suggested_alert_time: str


# --- Smart Notification Schemas ---

class SmartNotificationSettingsItem(BaseModel):
    user_id: str
    enabled: bool
    alert_minutes_before: int
    check_delays_for: List[str]
    include_weekends: bool
    custom_alert_times: Dict[str, str]  # {dow: HH:mm}


class SmartNotificationSettingsUpdate(BaseModel):
    alert_minutes_before: Optional[int] = Field(None, ge=0, le=180)
    check_delays_for: Optional[List[str]] = None
    include_weekends: Optional[bool] = None


class CustomAlertTimeRequest(BaseModel):
    alert_time: str  # HH:mm (형식 검증은 서비스에서 → 400)


class ScheduleEntryItem(BaseModel):
    date: str
    day_of_week: str
    alert_time: Optional[str] = None
    source: Optional[Literal["custom", "prediction"]] = None


class _NotificationBase(BaseModel):
    id: str
    date: str
    day_of_week: str
    alert_time: str
    title: str
    message: str


class CommuteReminderItem(_NotificationBase):
    kind: Literal["commute_reminder"] = "commute_reminder"


class DelayWarningItem(_NotificationBase):
    kind: Literal["delay_warning"] = "delay_warning"
    affected_lines: List[str]
    max_delay_minutes: int
    reason: Optional[str] = None


class CongestionWarningItem(_NotificationBase):
    kind: Literal["congestion_warning"] = "congestion_warning"
    line_id: str
    congestion_level: str


SmartNotificationItem = Annotated[
    Union[CommuteReminderItem, DelayWarningItem, CongestionWarningItem],
    Field(discriminator="kind"),
]


class TodayNotificationResponse(BaseModel):
    notification: Optional[SmartNotificationItem] = None


class ShouldShowResponse(BaseModel):
    show: bool


# --- Dashboard (fan-out) ---

class DashboardResponse(BaseModel):
    patterns: List[CommutePatternItem] = []
    predictions: List[PredictedCommuteItem] = []
    settings: Optional[SmartNotificationSettingsItem] = None
    stale: bool = False  # True면 캐시된 예측을 표시 중
    error: Optional[str] = None


# --- Delay Schemas ---

class DelayInfoItem(BaseModel):
    line_id: str
    line_name: str
    delay_minutes: int
    reason: Optional[str] = None
    detected_at: datetime
    source: str


class DelayStatusResponse(BaseModel):
    delays: List[DelayInfoItem]
    failed_lines: List[str] = []
    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None


class DelayDetectRequest(BaseModel):
    message: str = Field(max_length=500)


class DelayDetectResponse(BaseModel):
    is_delayed: bool
    delay_minutes: int
    reason: Optional[str] = None


class DelayReportRequest(BaseModel):
    line_id: str = Field(max_length=10)
    station_id: str = Field(max_length=20)
    station_name: str = Field(max_length=30)
    report_type: Literal["delay", "accident", "crowded", "door_issue",
                         "signal_issue", "stopped", "other"] = "delay"
    severity: Literal["low", "medium", "high", "critical"] = "medium"
    description: Optional[str] = Field(None, max_length=500)
    estimated_delay_minutes: Optional[int] = Field(None, ge=0, le=600)


class DelayReportItem(BaseModel):
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


# --- Congestion Schemas ---

class CongestionReportRequest(BaseModel):
    train_id: str = Field(max_length=20)
    line_id: str = Field(max_length=10)
    station_id: str = Field(max_length=20)
    direction: Literal["up", "down"]
    car_number: int = Field(ge=1, le=10)
    congestion_level: Literal["low", "moderate", "high", "crowded"]


class CongestionReportItem(BaseModel):
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


class CarCongestionItem(BaseModel):
    car_number: int
    congestion_level: str
    report_count: int
    last_updated: Optional[datetime] = None


class TrainCongestionItem(BaseModel):
    id: str
    train_id: str
    line_id: str
    direction: str
    cars: List[CarCongestionItem]
    overall_level: str
    report_count: int
    last_updated: datetime
