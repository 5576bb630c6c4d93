"""
FastAPI 엔드포인트 테스트
"""
from unittest.mock import patch

from conftest import arrival
from livemetro.errors import RemoteUnavailable


def _log_payload(**overrides):
    payload = {
        "station_id": "0222",
        "station_name": "강남",
        "line_id": "2",
        "day_of_week": "MON",
        "departure_time": "08:10",
    }
    payload.update(overrides)
    return payload


def _seed_monday_pattern(client, user_id="u1"):
    for _ in range(3):
        assert client.post(f"/api/users/{user_id}/commute-logs", json=_log_payload()).status_code == 201
    response = client.post(f"/api/users/{user_id}/patterns/analyze")
    assert response.status_code == 200
    return response.json()


class TestHealth:
    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] == "memory"
        assert data["delay_polling"] is False


class TestCommuteLogs:
    def test_create_and_list(self, test_client):
        response = test_client.post("/api/users/u1/commute-logs", json=_log_payload())
        assert response.status_code == 201
        log = response.json()
        assert log["date"] == "2025-03-10"
        assert log["departure_time"] == "08:10"

        response = test_client.get("/api/users/u1/commute-logs")
        assert [item["id"] for item in response.json()] == [log["id"]]

        response = test_client.get("/api/users/u1/commute-logs", params={"day_of_week": "TUE"})
        assert response.json() == []

    def test_invalid_time_returns_400_with_korean_detail(self, test_client):
        response = test_client.post("/api/users/u1/commute-logs", json=_log_payload(departure_time="8:10"))
        assert response.status_code == 400
        assert "HH:mm" in response.json()["detail"]

    def test_missing_day_of_week_rejected(self, test_client):
        payload = _log_payload()
        del payload["day_of_week"]
        response = test_client.post("/api/users/u1/commute-logs", json=payload)
        assert response.status_code == 422

    def test_update_and_delete(self, test_client):
        log_id = test_client.post("/api/users/u1/commute-logs", json=_log_payload()).json()["id"]

        response = test_client.patch(f"/api/users/u1/commute-logs/{log_id}",
                                     json={"arrival_time": "08:45", "was_delayed": True, "delay_minutes": 6})
        assert response.status_code == 200
        assert response.json()["arrival_time"] == "08:45"

        assert test_client.delete(f"/api/users/u1/commute-logs/{log_id}").status_code == 204
        response = test_client.get(f"/api/users/u1/commute-logs/{log_id}")
        assert response.status_code == 404
        assert response.json()["detail"] == "통근 기록을 찾을 수 없습니다."

    def test_auto_log(self, test_client):
        payload = {"station_id": "0222", "station_name": "강남", "line_id": "2", "commute_type": "departure"}
        first = test_client.post("/api/users/u1/commute-logs/auto", json=payload)
        assert first.status_code == 200
        assert first.json()["is_manual"] is False
        assert test_client.post("/api/users/u1/commute-logs/auto", json=payload).json() is None
        assert test_client.get("/api/users/u1/commute-logs/today").json()["id"] == first.json()["id"]


class TestPatternsAndPredictions:
    def test_analyze_and_predict(self, test_client):
        patterns = _seed_monday_pattern(test_client)
        assert [p["day_of_week"] for p in patterns] == ["MON"]
        assert patterns[0]["typical_departure_time"] == "08:10"

        today = test_client.get("/api/users/u1/predictions/today").json()
        assert today["suggested_alert_time"] == "07:55"

        week = test_client.get("/api/users/u1/predictions/week").json()
        assert [p["date"] for p in week] == ["2025-03-10"]

        assert test_client.get("/api/users/u1/patterns/TUE").json() is None
        assert test_client.get("/api/users/u1/patterns/MON").json()["sample_count"] == 3

    def test_prediction_without_pattern_is_null(self, test_client):
        assert test_client.get("/api/users/u1/predictions/today").json() is None

    def test_new_log_invalidates_week_cache(self, test_client):
        assert test_client.get("/api/users/u1/predictions/week").json() == []
        _seed_monday_pattern(test_client)
        assert len(test_client.get("/api/users/u1/predictions/week").json()) == 1


class TestDashboard:
    def test_dashboard_joins_sections(self, test_client):
        _seed_monday_pattern(test_client)
        data = test_client.get("/api/users/u1/dashboard").json()
        assert len(data["patterns"]) == 1
        assert len(data["predictions"]) == 1
        assert data["settings"]["enabled"] is False
        assert data["stale"] is False
        assert data["error"] is None

    def test_dashboard_serves_cached_predictions_when_store_unavailable(self, test_client, store):
        _seed_monday_pattern(test_client)
        test_client.get("/api/users/u1/dashboard")

        from api.dependencies import registry
        registry.prediction_cache.ttl_seconds = -1
        with patch.object(store, "list", side_effect=RemoteUnavailable("저장소에 연결할 수 없습니다")), \
                patch.object(store, "get", side_effect=RemoteUnavailable("저장소에 연결할 수 없습니다")):
            response = test_client.get("/api/users/u1/dashboard")
        registry.prediction_cache.ttl_seconds = 300

        assert response.status_code == 200
        data = response.json()
        assert data["stale"] is True
        assert data["predictions"][0]["predicted_departure_time"] == "08:10"
        assert data["patterns"] == []
        assert "이전 예측" in data["error"]

    def test_store_failure_on_plain_endpoint_returns_503(self, test_client, store):
        with patch.object(store, "list", side_effect=RemoteUnavailable("저장소에 연결할 수 없습니다")):
            response = test_client.get("/api/users/u1/patterns")
        assert response.status_code == 503
        assert response.json() == {"detail": "저장소에 연결할 수 없습니다"}


class TestSmartNotifications:
    def test_disabled_by_default(self, test_client):
        _seed_monday_pattern(test_client)
        settings = test_client.get("/api/users/u1/smart-notifications/settings").json()
        assert settings["enabled"] is False
        assert settings["alert_minutes_before"] == 15
        assert test_client.get("/api/users/u1/smart-notifications/today").json() == {"notification": None}

    def test_enable_and_today_notification(self, test_client):
        _seed_monday_pattern(test_client)
        assert test_client.post("/api/users/u1/smart-notifications/enable").json()["enabled"] is True

        notification = test_client.get("/api/users/u1/smart-notifications/today").json()["notification"]
        assert notification["kind"] == "commute_reminder"
        assert notification["alert_time"] == "07:55"

        show = test_client.get("/api/users/u1/smart-notifications/should-show", params={"current_time": "07:58"})
        assert show.json() == {"show": True}

    def test_delay_warning_from_realtime_arrivals(self, test_client, arrival_source):
        _seed_monday_pattern(test_client)
        test_client.post("/api/users/u1/smart-notifications/enable")
        arrival_source.arrivals["강남"] = [arrival("2", "열차 고장으로 12분 지연")]

        notification = test_client.get("/api/users/u1/smart-notifications/today").json()["notification"]
        assert notification["kind"] == "delay_warning"
        assert notification["max_delay_minutes"] == 12
        assert notification["affected_lines"] == ["2"]

    def test_custom_times_and_schedule(self, test_client):
        response = test_client.put("/api/users/u1/smart-notifications/custom-times/WED",
                                   json={"alert_time": "06:40"})
        assert response.json()["custom_alert_times"] == {"WED": "06:40"}

        schedule = test_client.get("/api/users/u1/smart-notifications/schedule").json()
        assert len(schedule) == 7
        wed = next(e for e in schedule if e["day_of_week"] == "WED")
        assert wed == {"date": "2025-03-12", "day_of_week": "WED", "alert_time": "06:40", "source": "custom"}

        response = test_client.put("/api/users/u1/smart-notifications/custom-times/WED",
                                   json={"alert_time": "6:40"})
        assert response.status_code == 400

        response = test_client.delete("/api/users/u1/smart-notifications/custom-times/WED")
        assert response.json()["custom_alert_times"] == {}

    def test_update_settings(self, test_client):
        response = test_client.put("/api/users/u1/smart-notifications/settings",
                                   json={"alert_minutes_before": 20, "include_weekends": True})
        assert response.status_code == 200
        data = response.json()
        assert data["alert_minutes_before"] == 20
        assert data["include_weekends"] is True
        assert data["enabled"] is False


class TestDelays:
    def test_delay_status_reports_failed_lines(self, test_client, arrival_source):
        arrival_source.arrivals["서울역"] = [arrival("1", "10분 지연")]
        arrival_source.arrivals["강남"] = RemoteUnavailable("실시간 도착정보를 가져오는데 실패했습니다")

        data = test_client.get("/api/delays", params={"lines": "1,2,3"}).json()
        assert [d["line_id"] for d in data["delays"]] == ["1"]
        assert data["failed_lines"] == ["2"]

    def test_detect_message(self, test_client):
        data = test_client.post("/api/delays/detect", json={"message": "선로 점검 3분 서행"}).json()
        assert data == {"is_delayed": True, "delay_minutes": 3, "reason": "시설 점검"}

    def test_delay_reports(self, test_client):
        payload = {"line_id": "2", "station_id": "0222", "station_name": "강남",
                   "report_type": "stopped", "severity": "high", "estimated_delay_minutes": 20}
        assert test_client.post("/api/delays/reports", json=payload).status_code == 422  # X-User-Id 없음

        response = test_client.post("/api/delays/reports", json=payload, headers={"X-User-Id": "u1"})
        assert response.status_code == 201
        report_id = response.json()["id"]

        assert test_client.post(f"/api/delays/reports/{report_id}/upvote").json()["upvotes"] == 1
        assert [r["id"] for r in test_client.get("/api/delays/reports").json()] == [report_id]
        assert test_client.delete(f"/api/delays/reports/{report_id}").status_code == 204
        assert test_client.get("/api/delays/reports").json() == []


class TestCongestion:
    def test_report_and_summary(self, test_client):
        payload = {"train_id": "T100", "line_id": "2", "station_id": "0222",
                   "direction": "up", "car_number": 4, "congestion_level": "crowded"}
        headers = {"X-User-Id": "u1"}
        assert test_client.post("/api/congestion/reports", json=payload, headers=headers).status_code == 201

        # 같은 칸 3분 쿨다운
        response = test_client.post("/api/congestion/reports", json=payload, headers=headers)
        assert response.status_code == 400

        summary = test_client.get("/api/congestion/lines/2/up/T100").json()
        assert summary["overall_level"] == "crowded"
        assert summary["cars"][3]["report_count"] == 1

        cars = test_client.get("/api/congestion/lines/2/up/T100/cars").json()
        assert len(cars) == 10
        assert len(test_client.get("/api/congestion/lines/2").json()) == 1
        assert len(test_client.get("/api/congestion/stations/0222/reports").json()) == 1
