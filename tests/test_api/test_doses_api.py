"""
Tests for Doses API
"""

import pytest
from datetime import date
from fastapi import status
from fastapi.testclient import TestClient

from models import DoseStatus
from tests.helpers import at


@pytest.fixture
def pending_log(make_log, test_medicine):
    return make_log(test_medicine, at(date.today(), 8), status=DoseStatus.PENDING)


class TestDoseLifecycle:

    @pytest.mark.api
    def test_create(self, client: TestClient, test_medicine, today):
        response = client.post("/api/v1/doses/", json={
            "patient_id": test_medicine.patient_id,
            "medicine_id": test_medicine.id,
            "scheduled_time": at(today, 8).isoformat()
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["status"] == "pending"

    @pytest.mark.api
    def test_create_unknown_medicine(self, client: TestClient, test_patient, today):
        response = client.post("/api/v1/doses/", json={
            "patient_id": test_patient.id,
            "medicine_id": 999,
            "scheduled_time": at(today, 8).isoformat()
        })

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["status_code"] == 404

    @pytest.mark.api
    def test_taken_then_conflict(self, client: TestClient, pending_log):
        response = client.post(f"/api/v1/doses/{pending_log.id}/taken", json={"notes": "with breakfast"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "taken"
        assert response.json()["notes"] == "with breakfast"

        response = client.post(f"/api/v1/doses/{pending_log.id}/missed")
        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.api
    def test_taken_without_body(self, client: TestClient, pending_log):
        response = client.post(f"/api/v1/doses/{pending_log.id}/taken")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["taken_at"] is not None

    @pytest.mark.api
    def test_skipped(self, client: TestClient, pending_log):
        response = client.post(f"/api/v1/doses/{pending_log.id}/skipped")

        assert response.json()["notes"] == "Skipped by user"

    @pytest.mark.api
    def test_unknown_log(self, client: TestClient):
        response = client.post("/api/v1/doses/4242/missed")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_today(self, client: TestClient, pending_log):
        response = client.get(f"/api/v1/doses/today/{pending_log.patient_id}")

        data = response.json()
        assert data["total"] == 1
        assert data["logs"][0]["id"] == pending_log.id


class TestHealth:

    @pytest.mark.api
    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["checks"]["database"]["status"] == "up"
