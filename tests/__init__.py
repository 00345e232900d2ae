"""
MediTrack Test Suite
====================

Test Structure:
- test_services/: Window aggregation, adherence, medicine and dose services
- test_actions/: Reminder, alert and trend engines
- test_tools/: Notification registry
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    pytest
    pytest tests/test_api/
    pytest -m "unit"
"""

# Test configuration
TEST_DATABASE_URL = "sqlite:///:memory:"

__all__ = [
    "TEST_DATABASE_URL",
]
