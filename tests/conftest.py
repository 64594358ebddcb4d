"""Pytest configuration and fixtures."""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from goal_engine.main import app


@pytest_asyncio.fixture
async def app_client():
    """
    Create an async HTTP client bound to the application.

    The engine keeps no state between requests, so no setup or cleanup
    is needed around each test.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
def schedule_payload():
    """Raw Mon/Tue/Wed schedule specification for 2024-01-08..2024-01-22."""
    return {
        "type": "schedule",
        "title": "Morning run",
        "originalText": "Run Mon, Tue and Wed at 7",
        "timezone": "Asia/Seoul",
        "period": {"start": "2024-01-08", "end": "2024-01-22"},
        "schedule": {
            "rules": [{"weekdays": [1, 2, 3], "time": "07:00"}],
        },
        "verification": {"signals": ["time", "location"]},
        "successCriteria": {"targetRate": 80},
        "version": 1,
    }


@pytest.fixture
def frequency_payload():
    """Raw 3-per-week frequency specification."""
    return {
        "type": "frequency",
        "title": "Read",
        "period": {"start": "2024-01-01", "end": "2024-01-31"},
        "frequency": {"targetPerWeek": 3},
        "verification": {"signals": ["manual", "photo"]},
    }


@pytest.fixture
def milestone_payload():
    """Raw milestone specification."""
    return {
        "type": "milestone",
        "title": "Ship the side project",
        "period": {"start": "2024-02-01", "end": "2024-04-30"},
        "milestone": {
            "milestones": [
                {"key": "m1", "label": "Prototype"},
                {"key": "m2", "label": "Beta", "targetDate": "2024-03-15"},
                {"key": "m3", "label": "Launch"},
            ],
            "currentState": "Idea only",
        },
        "verification": {"signals": ["time", "manual"]},
    }
