# -*- coding: utf-8 -*-
"""
Seoul Realtime Arrival API Checker
==================================
서울 실시간 지하철 도착정보 API 연결을 확인하고, 노선별 대표 역의 도착 메시지에
지연 키워드가 있는지 출력한다.

사용법:
  python scripts/check_realtime_api.py                 # 전체 노선 대표 역
  python scripts/check_realtime_api.py --station 강남   # 특정 역
  python scripts/check_realtime_api.py --lines 1,2     # 특정 노선
"""
import argparse
import os
import sys
from pathlib import Path
from urllib.parse import quote

import requests
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from livemetro.delay_detection import (  # noqa: E402
    LINE_REPRESENTATIVE_STATIONS,
    detect_delay_from_arrival,
    is_line_arrival,
)
from livemetro.seoul_api import DEFAULT_BASE_URL  # noqa: E402
from livemetro.utils import normalize_station_name  # noqa: E402


def fetch_arrivals(base_url, api_key, station):
    url = f"{base_url.rstrip('/')}/{api_key}/json/realtimeStationArrival/0/10/{quote(normalize_station_name(station))}"
    response = requests.get(url, timeout=10)
    response.raise_for_status()
    data = response.json()
    error = data.get("errorMessage") or {}
    if error.get("code") not in (None, "INFO-000", "INFO-200"):
        raise RuntimeError(f"{error.get('message')} (Code: {error.get('code')})")
    return data.get("realtimeArrivalList") or []


def print_station(base_url, api_key, station, line_id=None):
    print(f"\n[{station}]" + (f" {line_id}호선" if line_id else ""))
    try:
        arrivals = fetch_arrivals(base_url, api_key, station)
    except (requests.RequestException, RuntimeError) as e:
        print(f"  [ERROR] {e}")
        return False

    if line_id:
        arrivals = [a for a in arrivals if is_line_arrival(a, line_id)]
    if not arrivals:
        print("  도착 정보 없음")
        return True

    for arrival in arrivals:
        detection = detect_delay_from_arrival(arrival)
        status = f"지연 {detection.delay_minutes}분 ({detection.reason})" if detection.is_delayed else "정상"
        print(f"  {arrival.get('trainLineNm', '')}: {arrival.get('arvlMsg2', '')} / "
              f"{arrival.get('arvlMsg3', '')} -> {status}")
    return True


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description="서울 실시간 도착정보 API 점검")
    parser.add_argument("--station", help="조회할 역 이름")
    parser.add_argument("--lines", help="대표 역을 조회할 노선 (쉼표 구분)")
    args = parser.parse_args()

    api_key = os.getenv("SEOUL_SUBWAY_API_KEY", "")
    base_url = os.getenv("SEOUL_SUBWAY_API_BASE_URL", DEFAULT_BASE_URL)
    if not api_key:
        print("[ERROR] SEOUL_SUBWAY_API_KEY가 설정되지 않았습니다.")
        sys.exit(1)

    print("=" * 60)
    print("서울 실시간 도착정보 API 점검")
    print("=" * 60)

    if args.station:
        ok = print_station(base_url, api_key, args.station)
    else:
        lines = args.lines.split(",") if args.lines else list(LINE_REPRESENTATIVE_STATIONS)
        results = [
            print_station(base_url, api_key, LINE_REPRESENTATIVE_STATIONS[line], line)
            for line in lines if line in LINE_REPRESENTATIVE_STATIONS
        ]
        ok = all(results)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
