"""
서비스 레지스트리.
앱 시작 시 load()로 저장소/외부 API 클라이언트/서비스를 명시적으로 조립하고,
종료 시 close()로 폴러와 저장소를 정리한다. 테스트는 store/arrival_source/clock을 주입한다.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from api.cache import PredictionCache
from livemetro.commute_log import CommuteLogService
from livemetro.config import Settings
from livemetro.congestion import CongestionService
from livemetro.delay_detection import ArrivalSource, DelayDetector, DelayPoller
from livemetro.delay_reports import DelayReportService
from livemetro.pattern_analysis import PatternAnalyzer
from livemetro.seoul_api import SeoulSubwayClient
from livemetro.smart_notification import SmartNotificationScheduler
from livemetro.store import DocumentStore, create_store
from livemetro.utils import now_kst

logger = logging.getLogger(__name__)


class ServiceRegistry:
    def __init__(self):
        self.settings: Optional[Settings] = None
        self.store: Optional[DocumentStore] = None
        self.logs: Optional[CommuteLogService] = None
        self.analyzer: Optional[PatternAnalyzer] = None
        self.scheduler: Optional[SmartNotificationScheduler] = None
        self.detector: Optional[DelayDetector] = None
        self.poller: Optional[DelayPoller] = None
        self.delay_reports: Optional[DelayReportService] = None
        self.congestion: Optional[CongestionService] = None
        self.prediction_cache = PredictionCache()

    @property
    def loaded(self) -> bool:
        return self.store is not None

    def load(
        self,
        settings: Optional[Settings] = None,
        store: Optional[DocumentStore] = None,
        arrival_source: Optional[ArrivalSource] = None,
        clock: Callable[[], datetime] = now_kst,
    ):
        self.settings = settings or Settings.from_env()
        self.store = store or create_store(
            self.settings.store, self.settings.db_path, self.settings.redis_url
        )
        source = arrival_source or SeoulSubwayClient(
            api_key=self.settings.seoul_api_key,
            base_url=self.settings.seoul_api_base_url,
        )

        self.logs = CommuteLogService(self.store, clock=clock)
        self.analyzer = PatternAnalyzer(self.logs, self.store, clock=clock)
        self.delay_reports = DelayReportService(self.store, clock=clock)
        self.congestion = CongestionService(self.store, clock=clock)
        self.detector = DelayDetector(source, clock=clock)

        realtime_signal = self.detector
        if self.settings.delay_polling:
            self.poller = DelayPoller(
                self.detector, interval_seconds=self.settings.delay_poll_interval, clock=clock
            )
            realtime_signal = self.poller

        self.scheduler = SmartNotificationScheduler(
            self.store,
            self.analyzer,
            delay_signals=[self.delay_reports, realtime_signal],
            congestion_signal=self.congestion,
            clock=clock,
        )
        self.prediction_cache.invalidate()
        logger.info("Services loaded (store=%s, polling=%s)", self.settings.store, self.settings.delay_polling)

    def start(self):
        """이벤트 루프 안에서 호출: 폴러 시작"""
        if self.poller is not None:
            self.poller.start()

    async def close(self):
        if self.poller is not None:
            await self.poller.stop()
            self.poller = None
        if self.store is not None:
            await self.store.close()
        self.store = None

    def _require(self, service):
        if service is None or not self.loaded:
            raise RuntimeError("Services not loaded")
        return service

    def get_logs(self) -> CommuteLogService:
        return self._require(self.logs)

    def get_analyzer(self) -> PatternAnalyzer:
        return self._require(self.analyzer)

    def get_scheduler(self) -> SmartNotificationScheduler:
        return self._require(self.scheduler)

    def get_detector(self) -> DelayDetector:
        return self._require(self.detector)

    def get_delay_reports(self) -> DelayReportService:
        return self._require(self.delay_reports)

    def get_congestion(self) -> CongestionService:
        return self._require(self.congestion)


registry = ServiceRegistry()
