"""
Tests for Alerts API
"""

import pytest
from datetime import timedelta
from fastapi import status
from fastapi.testclient import TestClient

from models import DoseStatus
from tests.helpers import at


class TestCaregiverAlertsApi:

    @pytest.mark.api
    def test_alerts_sorted_critical_first(self, client: TestClient, test_patient, make_medicine, make_log, today):
        make_medicine(test_patient, "Metformin", stock=4)
        aspirin = make_medicine(test_patient, "Aspirin", stock=30)
        for offset in range(3):
            make_log(aspirin, at(today - timedelta(days=offset), 8), status=DoseStatus.MISSED)

        response = client.get(
            f"/api/v1/alerts/caregiver/{test_patient.id}",
            params={"as_of": today.isoformat()}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [a["severity"] for a in data["alerts"]] == ["critical", "critical", "warning"]
        assert data["alerts"][0]["type"] == "missed_3_times"
        assert data["missed_count"] == 1
        assert data["low_stock_count"] == 1
        assert data["low_adherence"] is True


class TestDoctorAlertsApi:

    @pytest.mark.api
    def test_doctor_view(self, client: TestClient, test_patient, test_doctor, test_medicine, make_log, link, today):
        link(test_patient, test_doctor)
        make_log(test_medicine, at(today, 8), status=DoseStatus.MISSED)

        response = client.get(
            f"/api/v1/alerts/doctor/{test_doctor.id}",
            params={"as_of": today.isoformat()}
        )

        data = response.json()
        assert data["doctor_id"] == test_doctor.id
        assert data["total_alerts"] == 1
        assert data["alerts"][0]["id"] == f"low_adherence_{test_patient.id}"
