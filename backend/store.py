"""Meetup persistence.

The roster manager only needs fetch-by-id and a write conditioned on the
version it read. Both stores below provide that as a compare-and-set: a write
whose ``expected_version`` no longer matches the stored record fails with
``VersionConflict`` and changes nothing.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from psycopg2.extras import Json
from starlette.concurrency import run_in_threadpool

from constants import STATUS_ACTIVE, MEETUP_LIST_LIMIT_DEFAULT
from database import get_db, init_db, meetup_from_row, meetup_to_params
from errors import MeetupNotFound, VersionConflict
from models import Meetup

logger = logging.getLogger(__name__)


class MeetupStore(ABC):
    """Persistence capability injected into the roster manager."""

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def insert_meetup(self, meetup: Meetup) -> Meetup:
        ...

    @abstractmethod
    async def fetch_meetup(self, meetup_id: str) -> Meetup:
        """Return the current state of a meetup or raise MeetupNotFound."""

    @abstractmethod
    async def write_meetup(self, meetup_id: str, meetup: Meetup, expected_version: Optional[int] = None) -> Meetup:
        """Persist ``meetup`` and return it with its new version.

        With ``expected_version`` set, the write only happens if the stored
        version still matches; otherwise VersionConflict is raised.
        """

    @abstractmethod
    async def list_active_meetups(self, limit: int = MEETUP_LIST_LIMIT_DEFAULT) -> list[Meetup]:
        ...

    @abstractmethod
    async def list_hosted_meetups(self, user_id: str) -> list[Meetup]:
        ...

    @abstractmethod
    async def list_joined_meetups(self, user_id: str) -> list[Meetup]:
        """Meetups where ``user_id`` holds an approved slot, hosted ones included."""


class InMemoryMeetupStore(MeetupStore):
    """Process-local store, used for development and tests."""

    def __init__(self):
        self._meetups: dict[str, Meetup] = {}
        self._lock = asyncio.Lock()

    async def insert_meetup(self, meetup: Meetup) -> Meetup:
        async with self._lock:
            if meetup.id in self._meetups:
                raise ValueError(f"Meetup {meetup.id} already exists")
            self._meetups[meetup.id] = meetup.model_copy(deep=True)
        return meetup.model_copy(deep=True)

    async def fetch_meetup(self, meetup_id: str) -> Meetup:
        meetup = self._meetups.get(meetup_id)
        if meetup is None:
            raise MeetupNotFound(meetup_id)
        return meetup.model_copy(deep=True)

    async def write_meetup(self, meetup_id: str, meetup: Meetup, expected_version: Optional[int] = None) -> Meetup:
        async with self._lock:
            current = self._meetups.get(meetup_id)
            if current is None:
                raise MeetupNotFound(meetup_id)
            if expected_version is not None and current.version != expected_version:
                raise VersionConflict(meetup_id)
            stored = meetup.model_copy(update={"version": current.version + 1}, deep=True)
            self._meetups[meetup_id] = stored
        return stored.model_copy(deep=True)

    async def list_active_meetups(self, limit: int = MEETUP_LIST_LIMIT_DEFAULT) -> list[Meetup]:
        active = [m for m in self._meetups.values() if m.status == STATUS_ACTIVE]
        return [m.model_copy(deep=True) for m in _newest_first(active)[:limit]]

    async def list_hosted_meetups(self, user_id: str) -> list[Meetup]:
        hosted = [m for m in self._meetups.values() if m.host_id == user_id]
        return [m.model_copy(deep=True) for m in _newest_first(hosted)]

    async def list_joined_meetups(self, user_id: str) -> list[Meetup]:
        joined = [m for m in self._meetups.values() if user_id in m.approved_players]
        return [m.model_copy(deep=True) for m in _newest_first(joined)]


def _newest_first(meetups: list[Meetup]) -> list[Meetup]:
    return sorted(meetups, key=lambda m: m.created_at, reverse=True)


class PostgresMeetupStore(MeetupStore):
    """Meetups table in PostgreSQL, accessed through psycopg2 on the threadpool."""

    async def open(self) -> None:
        await run_in_threadpool(init_db)
        logger.info("Meetup store ready (postgres)")

    async def close(self) -> None:
        logger.info("Meetup store closed (postgres)")

    async def insert_meetup(self, meetup: Meetup) -> Meetup:
        return await run_in_threadpool(self._insert, meetup)

    async def fetch_meetup(self, meetup_id: str) -> Meetup:
        return await run_in_threadpool(self._fetch, meetup_id)

    async def write_meetup(self, meetup_id: str, meetup: Meetup, expected_version: Optional[int] = None) -> Meetup:
        return await run_in_threadpool(self._write, meetup_id, meetup, expected_version)

    async def list_active_meetups(self, limit: int = MEETUP_LIST_LIMIT_DEFAULT) -> list[Meetup]:
        return await run_in_threadpool(
            self._select_many,
            "SELECT * FROM meetups WHERE status = %s ORDER BY created_at DESC LIMIT %s",
            (STATUS_ACTIVE, limit),
        )

    async def list_hosted_meetups(self, user_id: str) -> list[Meetup]:
        return await run_in_threadpool(
            self._select_many,
            "SELECT * FROM meetups WHERE host_id = %s ORDER BY created_at DESC",
            (user_id,),
        )

    async def list_joined_meetups(self, user_id: str) -> list[Meetup]:
        return await run_in_threadpool(
            self._select_many,
            "SELECT * FROM meetups WHERE approved_players @> %s ORDER BY created_at DESC",
            (Json([user_id]),),
        )

    def _insert(self, meetup: Meetup) -> Meetup:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO meetups (
                    id, host_id, host_name, title, description, court_type,
                    latitude, longitude, address, starts_at, ends_at,
                    max_players, current_players, approved_players, waitlist,
                    status, cancellation_reason, created_at, updated_at, version
                )
                VALUES (
                    %(id)s, %(host_id)s, %(host_name)s, %(title)s, %(description)s, %(court_type)s,
                    %(latitude)s, %(longitude)s, %(address)s, %(starts_at)s, %(ends_at)s,
                    %(max_players)s, %(current_players)s, %(approved_players)s, %(waitlist)s,
                    %(status)s, %(cancellation_reason)s, %(created_at)s, %(updated_at)s, %(version)s
                )
                RETURNING *
            """, meetup_to_params(meetup))
            return meetup_from_row(cursor.fetchone())

    def _fetch(self, meetup_id: str) -> Meetup:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM meetups WHERE id = %s", (meetup_id,))
            row = cursor.fetchone()
            if not row:
                raise MeetupNotFound(meetup_id)
            return meetup_from_row(row)

    def _write(self, meetup_id: str, meetup: Meetup, expected_version: Optional[int]) -> Meetup:
        params = meetup_to_params(meetup)
        params["id"] = meetup_id
        params["expected_version"] = expected_version

        query = """
            UPDATE meetups SET
                current_players = %(current_players)s,
                approved_players = %(approved_players)s,
                waitlist = %(waitlist)s,
                status = %(status)s,
                cancellation_reason = %(cancellation_reason)s,
                updated_at = %(updated_at)s,
                version = version + 1
            WHERE id = %(id)s
        """
        if expected_version is not None:
            query += " AND version = %(expected_version)s"
        query += " RETURNING *"

        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            row = cursor.fetchone()
            if row:
                return meetup_from_row(row)

            cursor.execute("SELECT version FROM meetups WHERE id = %s", (meetup_id,))
            if not cursor.fetchone():
                raise MeetupNotFound(meetup_id)
            raise VersionConflict(meetup_id)

    def _select_many(self, query: str, params: tuple) -> list[Meetup]:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [meetup_from_row(row) for row in cursor.fetchall()]


def build_store(kind: str) -> MeetupStore:
    if kind == "memory":
        return InMemoryMeetupStore()
    if kind == "postgres":
        return PostgresMeetupStore()
    raise ValueError(f"Unknown MEETUP_STORE '{kind}'. Must be 'postgres' or 'memory'")
