# backend/constants.py
"""Application constants - single source of truth for configuration values."""

COURT_TYPES = [
    {"id": "beach", "name": "Beach", "icon": "beach_access"},
    {"id": "indoor", "name": "Indoor", "icon": "home"},
    {"id": "grass", "name": "Grass", "icon": "grass"},
]

COURT_TYPE_IDS = tuple(court["id"] for court in COURT_TYPES)

STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"

# Host counts as the first player, so a meetup needs room for at least one more
MAX_PLAYERS_DEFAULT = 8
MAX_PLAYERS_MIN = 2
MAX_PLAYERS_MAX = 50

MEETUP_TITLE_MIN_LENGTH = 3
MEETUP_TITLE_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 200
ADDRESS_MAX_LENGTH = 200
CANCELLATION_REASON_MAX_LENGTH = 200

PLAYER_NAME_MAX_LENGTH = 30
USER_ID_MAX_LENGTH = 128

MEETUP_LIST_LIMIT_DEFAULT = 20
MEETUP_LIST_LIMIT_MAX = 100
