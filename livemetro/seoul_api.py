"""서울 열린데이터광장 실시간 지하철 도착정보 API 클라이언트."""

import asyncio
import json
import logging
from typing import List
from urllib.error import URLError
from urllib.parse import quote
from urllib.request import urlopen

from livemetro.errors import RemoteUnavailable
from livemetro.utils import normalize_station_name

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://swopenapi.seoul.go.kr/api/subway"


class SeoulSubwayClient:
    """realtimeStationArrival 조회. 응답의 arvlMsg2/arvlMsg3는 지연 감지에 쓰인다."""

    def __init__(self, api_key="", base_url=DEFAULT_BASE_URL, timeout_seconds=10):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        if not self.api_key:
            logger.warning("SEOUL_SUBWAY_API_KEY가 설정되지 않았습니다. 실시간 도착정보를 조회할 수 없습니다.")

    def _arrival_url(self, station_name):
        station = quote(normalize_station_name(station_name))
        return f"{self.base_url}/{self.api_key}/json/realtimeStationArrival/0/10/{station}"

    def fetch_realtime_arrival(self, station_name) -> List[dict]:
        """동기 조회. 네트워크/API 오류는 RemoteUnavailable로 올린다."""
        if not self.api_key:
            raise RemoteUnavailable("실시간 도착정보 API 키가 설정되지 않았습니다.")

        url = self._arrival_url(station_name)
        try:
            with urlopen(url, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
            data = json.loads(raw)
        except (URLError, OSError, ValueError) as e:
            raise RemoteUnavailable(f"실시간 도착정보를 가져오는데 실패했습니다: {e}") from e

        error = data.get("errorMessage")
        if error and error.get("code") == "INFO-200":  # 해당하는 데이터가 없음
            return []
        if error and error.get("code") not in (None, "INFO-000"):
            raise RemoteUnavailable(
                f"실시간 도착정보를 가져오는데 실패했습니다: {error.get('message')} (Code: {error.get('code')})"
            )
        return data.get("realtimeArrivalList") or []

    async def get_realtime_arrival(self, station_name) -> List[dict]:
        return await asyncio.to_thread(self.fetch_realtime_arrival, station_name)
