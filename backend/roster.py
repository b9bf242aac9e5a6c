"""Meetup roster state machine.

The transition functions are pure: they take the current ``Meetup`` and return
the next one, or the same object when the call is a no-op. ``RosterManager``
wraps each of them in a single read, a single transition and a single write
conditioned on the version that was read, so two callers racing on one meetup
cannot both commit a decision made from the same state. The loser gets
``VersionConflict`` and is expected to re-run the operation, which
``retry_on_conflict`` does for callers.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from constants import STATUS_ACTIVE, STATUS_CANCELLED, MEETUP_LIST_LIMIT_DEFAULT
from errors import (
    CannotRemoveHost, MeetupInactive, MeetupFull, NotAuthorized, NotWaitlisted, VersionConflict
)
from models import Meetup, MeetupCreate, UserMeetupsResponse
from store import MeetupStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_meetup_id() -> str:
    return secrets.token_urlsafe(8)


def _evolve(meetup: Meetup, **changes) -> Meetup:
    # Re-validate so the roster invariants are checked on every new state
    return Meetup.model_validate({**meetup.model_dump(), **changes})


def _require_active(meetup: Meetup) -> None:
    if not meetup.is_active:
        raise MeetupInactive(meetup.id)


# ============ TRANSITIONS ============

def new_meetup(meetup_id: str, payload: MeetupCreate, host_id: str, now: datetime) -> Meetup:
    """Initial state: active, host holds the first slot, nobody waiting."""
    return Meetup(
        id=meetup_id,
        host_id=host_id,
        host_name=payload.host_name,
        title=payload.title,
        description=payload.description,
        court_type=payload.court_type,
        location=payload.location,
        address=payload.address,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        max_players=payload.max_players,
        current_players=1,
        approved_players=[host_id],
        waitlist=[],
        status=STATUS_ACTIVE,
        created_at=now,
        updated_at=now,
        version=0,
    )


def request_join(meetup: Meetup, user_id: str, now: datetime) -> Meetup:
    _require_active(meetup)
    if user_id in meetup.waitlist or user_id in meetup.approved_players:
        return meetup
    return _evolve(meetup, waitlist=[*meetup.waitlist, user_id], updated_at=now)


def approve_player(meetup: Meetup, user_id: str, now: datetime) -> Meetup:
    _require_active(meetup)
    if user_id not in meetup.waitlist:
        raise NotWaitlisted(meetup.id)
    if meetup.current_players + 1 > meetup.max_players:
        raise MeetupFull(meetup.id)
    return _evolve(
        meetup,
        waitlist=[p for p in meetup.waitlist if p != user_id],
        approved_players=[*meetup.approved_players, user_id],
        current_players=meetup.current_players + 1,
        updated_at=now,
    )


def remove_player(meetup: Meetup, user_id: str, now: datetime) -> Meetup:
    """Take a player off the waitlist and the approved roster.

    A cancelled meetup keeps its roster as a historical snapshot, so removal
    there succeeds without changing anything: the caller gets the meetup back
    with the player still listed, and must not read the success as "removed".
    """
    if user_id == meetup.host_id:
        raise CannotRemoveHost(meetup.id)
    if not meetup.is_active:
        return meetup

    was_waitlisted = user_id in meetup.waitlist
    was_approved = user_id in meetup.approved_players
    if not was_waitlisted and not was_approved:
        return meetup

    changes = {
        "waitlist": [p for p in meetup.waitlist if p != user_id],
        "updated_at": now,
    }
    if was_approved:
        changes["approved_players"] = [p for p in meetup.approved_players if p != user_id]
        changes["current_players"] = meetup.current_players - 1
    return _evolve(meetup, **changes)


def cancel_meetup(meetup: Meetup, reason: str, now: datetime) -> Meetup:
    if meetup.status == STATUS_CANCELLED:
        return meetup
    return _evolve(meetup, status=STATUS_CANCELLED, cancellation_reason=reason, updated_at=now)


# ============ MANAGER ============

class RosterManager:
    """Applies roster transitions against a MeetupStore.

    ``actor_id`` is the calling user. When it is given, approving and
    cancelling are limited to the host, and removal to the host or the player
    being removed. ``None`` means a trusted caller.
    """

    def __init__(self, store: MeetupStore, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    @property
    def store(self) -> MeetupStore:
        return self._store

    async def create_meetup(self, payload: MeetupCreate, host_id: str) -> Meetup:
        meetup = new_meetup(generate_meetup_id(), payload, host_id, self._clock())
        created = await self._store.insert_meetup(meetup)
        logger.info("Meetup %s created by host %s (max_players=%d)", created.id, host_id, created.max_players)
        return created

    async def get_meetup(self, meetup_id: str) -> Meetup:
        return await self._store.fetch_meetup(meetup_id)

    async def list_active_meetups(self, limit: int = MEETUP_LIST_LIMIT_DEFAULT) -> list[Meetup]:
        return await self._store.list_active_meetups(limit)

    async def user_meetups(self, user_id: str) -> UserMeetupsResponse:
        hosted = await self._store.list_hosted_meetups(user_id)
        joined = await self._store.list_joined_meetups(user_id)
        return UserMeetupsResponse(
            hosted=hosted,
            joined=[m for m in joined if m.host_id != user_id],
        )

    async def request_join(self, meetup_id: str, user_id: str) -> Meetup:
        return await self._apply("request_join", meetup_id, request_join, user_id)

    async def approve_player(self, meetup_id: str, user_id: str, actor_id: Optional[str] = None) -> Meetup:
        return await self._apply(
            "approve_player", meetup_id, approve_player, user_id,
            allowed=lambda m: actor_id is None or actor_id == m.host_id,
        )

    async def remove_player(self, meetup_id: str, user_id: str, actor_id: Optional[str] = None) -> Meetup:
        return await self._apply(
            "remove_player", meetup_id, remove_player, user_id,
            allowed=lambda m: actor_id is None or actor_id in (m.host_id, user_id),
        )

    async def cancel_meetup(self, meetup_id: str, reason: str = "", actor_id: Optional[str] = None) -> Meetup:
        return await self._apply(
            "cancel_meetup", meetup_id, cancel_meetup, reason,
            allowed=lambda m: actor_id is None or actor_id == m.host_id,
        )

    async def _apply(self, name, meetup_id, transition, argument, allowed=None) -> Meetup:
        meetup = await self._store.fetch_meetup(meetup_id)
        if allowed is not None and not allowed(meetup):
            raise NotAuthorized(meetup_id)

        updated = transition(meetup, argument, self._clock())
        if updated is meetup:
            logger.debug("%s on meetup %s changed nothing", name, meetup_id)
            return meetup

        saved = await self._store.write_meetup(meetup_id, updated, expected_version=meetup.version)
        logger.info(
            "%s on meetup %s committed (version %d, players %d/%d, waitlist %d)",
            name, meetup_id, saved.version, saved.current_players, saved.max_players, len(saved.waitlist),
        )
        return saved


async def retry_on_conflict(operation: Callable[[], Awaitable[T]], attempts: int) -> T:
    """Run ``operation``, re-running it from scratch after a VersionConflict.

    The last conflict is raised once ``attempts`` runs have all lost the race.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except VersionConflict as exc:
            if attempt >= attempts:
                logger.warning("Meetup %s still conflicting after %d attempts", exc.meetup_id, attempt)
                raise
            logger.warning("Meetup %s changed concurrently, retrying (attempt %d/%d)", exc.meetup_id, attempt, attempts)
            attempt += 1
