"""
Tests for Reminders API
"""

import pytest
from datetime import timedelta
from fastapi import status
from fastapi.testclient import TestClient

from tests.helpers import at


@pytest.fixture
def lunch_history(make_medicine, make_log, test_patient, today):
    medicine = make_medicine(test_patient, "Amlodipine", times=["12:30", "18:00"])
    for offset, delay in enumerate([1, 4, 2, 5, 3]):
        make_log(medicine, at(today - timedelta(days=offset), 12, 30), delay=delay)
    return medicine


class TestAdaptiveReminders:

    @pytest.mark.api
    def test_single_time(self, client: TestClient, lunch_history, today):
        response = client.get(
            f"/api/v1/reminders/adaptive/{lunch_history.patient_id}/{lunch_history.id}",
            params={"scheduled_time": "12:30", "as_of": today.isoformat()}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "scheduled_time": "12:30",
            "adaptive_time": "12:33",
            "mean_delay": 3,
            "is_adaptive": True,
            "days_analyzed": 5,
        }

    @pytest.mark.api
    def test_bad_scheduled_time(self, client: TestClient, lunch_history):
        response = client.get(
            f"/api/v1/reminders/adaptive/{lunch_history.patient_id}/{lunch_history.id}",
            params={"scheduled_time": "lunch"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] is True

    @pytest.mark.api
    def test_all_times(self, client: TestClient, lunch_history, today):
        response = client.get(
            f"/api/v1/reminders/adaptive/{lunch_history.patient_id}/{lunch_history.id}/all",
            params={"as_of": today.isoformat()}
        )

        times = response.json()["times"]
        assert [t["adaptive_time"] for t in times] == ["12:33", "18:03"]

    @pytest.mark.api
    def test_all_times_unknown_medicine(self, client: TestClient, test_patient):
        response = client.get(f"/api/v1/reminders/adaptive/{test_patient.id}/999/all")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_all_times_wrong_patient(self, client: TestClient, lunch_history, make_user):
        other = make_user("Other Patient")
        response = client.get(f"/api/v1/reminders/adaptive/{other.id}/{lunch_history.id}/all")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_summary(self, client: TestClient, lunch_history, today):
        response = client.get(
            f"/api/v1/reminders/summary/{lunch_history.patient_id}",
            params={"as_of": today.isoformat()}
        )

        data = response.json()
        assert data["medicines_with_adaptive_timing"] == 1
        assert data["overall_average_delay"] == 3

    @pytest.mark.api
    def test_optimal(self, client: TestClient, lunch_history):
        response = client.get(f"/api/v1/reminders/optimal/{lunch_history.patient_id}/{lunch_history.id}")

        assert response.json()["times"] == ["12:33"]
