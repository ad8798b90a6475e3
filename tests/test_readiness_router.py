# tests/test_readiness_router.py
from fastapi.testclient import TestClient

from callpilot.main import app

client = TestClient(app)


def test_empty_form_scores_zero_and_asks_for_script():
    response = client.post("/api/readiness", json={})
    assert response.status_code == 200

    data = response.json()
    assert data["score"] == 0
    assert "Generate or craft" in data["insight"]


def test_complete_form_is_excellent():
    response = client.post(
        "/api/readiness",
        json={
            "clientName": "Jordan",
            "businessName": "Summit Dental",
            "phoneNumber": "+15551231234",
            "preferredDate": "2024-12-01",
            "preferredTimeWindow": "between 2-4 PM",
            "appointmentGoal": "Schedule a follow-up cleaning for Maria Lopez",
            "notes": "She prefers Tuesdays.",
            "script": "Hi, this is Jordan calling from Summit Dental about a cleaning for Maria.",
        },
    )

    data = response.json()
    assert data["score"] >= 85
    assert "Excellent" in data["insight"]
