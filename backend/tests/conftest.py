import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend modules are importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from main import app
from models import MeetupCreate
from roster import RosterManager
from store import InMemoryMeetupStore


def future_slot(days: int = 3, hours: int = 2):
	start = (datetime.now(timezone.utc) + timedelta(days=days)).replace(hour=18, minute=0, second=0, microsecond=0)
	return start, start + timedelta(hours=hours)


@pytest.fixture
def meetup_payload():
	"""Request body for a valid beach meetup; tests override fields as needed."""
	starts_at, ends_at = future_slot()
	return {
		"title": "Evening Beach Volleyball",
		"description": "Casual doubles, bring water",
		"max_players": 8,
		"court_type": "beach",
		"location": {"latitude": 33.7701, "longitude": -118.1937},
		"address": "Alamitos Beach, Long Beach, CA",
		"starts_at": starts_at.isoformat(),
		"ends_at": ends_at.isoformat(),
		"host_name": "Travis",
	}


@pytest.fixture
def make_payload(meetup_payload):
	def _make(**overrides):
		return MeetupCreate(**{**meetup_payload, **overrides})
	return _make


@pytest.fixture
def store():
	return InMemoryMeetupStore()


@pytest.fixture
def roster(store):
	return RosterManager(store)


@pytest_asyncio.fixture
async def api_client(roster):
	app.state.roster = roster
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
