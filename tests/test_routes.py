"""
Tests for the JSON endpoints.
"""

import json

import pytest

from db import db
from models import StudyPreference
from services.schedule_grid import HOURS_PER_DAY, TOTAL_SLOTS, slot_index


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


class TestBranchAndBoundEndpoint:
    URL = "/api/schedule/branch-and-bound"

    def test_returns_clock_hours(self, client):
        vector = [0] * TOTAL_SLOTS
        vector[1] = vector[2] = 5

        response = client.post(self.URL, json={"preferenceVector": vector, "requiredHours": 2})

        assert response.status_code == 200
        assert response.get_json() == {
            "timeSlots": [{"day": "Monday", "hour": 9}, {"day": "Monday", "hour": 10}]
        }

    def test_accepts_json_encoded_vector(self, client):
        vector = [0] * TOTAL_SLOTS
        vector[HOURS_PER_DAY + 5] = 3
        payload = {
            "preferenceVector": json.dumps(vector),
            "requiredHours": 1,
            "penalizeSingleHourBlocks": False,
        }

        response = client.post(self.URL, json=payload)

        assert response.get_json()["timeSlots"] == [{"day": "Tuesday", "hour": 13}]

    def test_not_enough_slots_is_empty_result(self, client):
        response = client.post(
            self.URL, json={"preferenceVector": [0] * TOTAL_SLOTS, "requiredHours": 5}
        )
        assert response.status_code == 200
        assert response.get_json() == {"timeSlots": []}

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({}, "No preference vector provided"),
            ({"preferenceVector": "[1, 2"}, "Invalid preference vector format"),
            ({"preferenceVector": []}, "Empty preference vector"),
            ({"preferenceVector": [1] * 10}, "Preference vector length mismatch"),
            ({"preferenceVector": [1] * TOTAL_SLOTS, "requiredHours": 0}, "Invalid required hours"),
            ({"preferenceVector": [1] * TOTAL_SLOTS, "requiredHours": "many"}, "requiredHours must be a number"),
        ],
    )
    def test_invalid_input_is_400(self, client, payload, message):
        response = client.post(self.URL, json=payload)
        assert response.status_code == 400
        assert response.get_json()["error"].startswith(message)


class TestPreferenceVectorEndpoint:
    URL = "/api/preferences/vector"

    def test_uses_stored_time_of_day(self, app, client):
        with app.app_context():
            db.session.add(StudyPreference(user_id="u1", preferred_time_of_day="EVENING"))
            db.session.commit()

        response = client.post(self.URL, json={"userId": "u1"})

        vector = response.get_json()["preferenceVector"]
        assert len(vector) == TOTAL_SLOTS
        assert vector[slot_index(0, 20)] == 9
        assert vector[slot_index(0, 8)] == 2

    def test_unknown_user_keeps_availability(self, client):
        availability = [1] * TOTAL_SLOTS
        availability[0] = 0

        response = client.post(self.URL, json={"availabilityVector": availability})

        assert response.get_json()["preferenceVector"] == availability

    def test_wrong_length_is_400(self, client):
        response = client.post(self.URL, json={"availabilityVector": [1, 1]})
        assert response.status_code == 400
        assert response.get_json()["field"] == "availabilityVector"


class TestStudySessionsEndpoint:
    URL = "/api/study-sessions"

    def test_sessions_only_on_available_days(self, client):
        days = (0, 2, 4, 5)
        vector = [0] * TOTAL_SLOTS
        for day in days:
            for hour in range(8, 13):
                vector[slot_index(day, hour)] = 9

        response = client.post(
            self.URL,
            json={"preferenceVector": vector, "courses": ["Math", "Art"], "maxHoursPerDay": 4},
        )

        data = response.get_json()
        assert response.status_code == 200
        assert data["availableDays"] == ["Monday", "Wednesday", "Friday", "Saturday"]
        assert len(data["sessions"]) == 16
        for session in data["sessions"]:
            assert session["day"] in data["availableDays"]
            assert session["course"] in ("Math", "Art")
            start = int(session["startTime"][:2])
            assert session["endTime"] == f"{start + 1:02d}:00"

    def test_stored_courses_are_used(self, app, client):
        with app.app_context():
            db.session.add(StudyPreference(user_id="u1", courses='["Biology"]'))
            db.session.commit()

        response = client.post(
            self.URL, json={"preferenceVector": [1] * TOTAL_SLOTS, "userId": "u1"}
        )

        sessions = response.get_json()["sessions"]
        assert sessions
        assert {s["course"] for s in sessions} == {"Biology"}

    def test_no_available_days(self, client):
        response = client.post(self.URL, json={"preferenceVector": [0] * TOTAL_SLOTS})
        assert response.get_json() == {"sessions": [], "availableDays": [], "fitness": None}

    def test_too_few_slots_is_empty_result(self, client):
        vector = [0] * TOTAL_SLOTS
        for hour in range(9, 12):
            vector[slot_index(0, hour)] = 5

        response = client.post(self.URL, json={"preferenceVector": vector, "courses": ["A"]})

        assert response.status_code == 200
        assert response.get_json() == {"sessions": [], "availableDays": ["Monday"], "fitness": None}


class TestReviewEndpoints:
    def test_create_list_and_delete(self, client):
        response = client.post(
            "/api/reviews",
            json={
                "userId": "u1",
                "courseId": "C1",
                "lectureId": "L1",
                "score": 90,
                "quizDate": "2024-01-01T10:00:00Z",
            },
        )
        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["review"]["studyCount"] == 1

        response = client.get("/api/reviews/u1")
        reviews = response.get_json()["reviews"]
        assert [r["lectureId"] for r in reviews] == ["L1"]
        assert reviews[0]["timing"].startswith("overdue")

        response = client.get("/api/reviews/u1?due=1")
        assert len(response.get_json()["reviews"]) == 1

        response = client.delete("/api/reviews/u1?lectureId=L1")
        assert response.get_json() == {"success": True, "deleted": 1}
        assert client.get("/api/reviews/u1").get_json() == {"reviews": []}

    def test_missing_lecture_is_400(self, client):
        response = client.post("/api/reviews", json={"userId": "u1", "score": 50})
        assert response.status_code == 400
        assert response.get_json()["field"] == "lectureId"

    def test_bad_quiz_date_is_400(self, client):
        response = client.post(
            "/api/reviews",
            json={"userId": "u1", "lectureId": "L1", "score": 50, "quizDate": "yesterday"},
        )
        assert response.status_code == 400

    def test_half_life_breakdown(self, client):
        response = client.get(
            "/api/reviews/half-life?score=90&studyDuration=60&taskComplexity=3"
        )
        data = response.get_json()
        assert data["halfLife"] == pytest.approx(14.5575)
        assert data["baseHalfLife"] == pytest.approx(9.0)

    @pytest.mark.parametrize("study_count", ["0", "-1"])
    def test_half_life_rejects_study_count_below_one(self, client, study_count):
        response = client.get(
            f"/api/reviews/half-life?score=90&previousHalfLife=5&studyCount={study_count}"
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "studyCount"
