"""Roster error taxonomy.

Every error carries the HTTP status it maps to, a stable ``code`` for clients
and a human readable message that is distinct per kind.
"""
from typing import Optional


class RosterError(Exception):
    status_code = 400
    code = "roster_error"
    default_message = "Roster operation failed"

    def __init__(self, meetup_id: str, message: Optional[str] = None):
        self.meetup_id = meetup_id
        self.message = message or self.default_message
        super().__init__(self.message)


class MeetupNotFound(RosterError):
    status_code = 404
    code = "not_found"
    default_message = "Meetup not found"


class MeetupInactive(RosterError):
    status_code = 409
    code = "inactive"
    default_message = "Meetup has been cancelled"


class NotWaitlisted(RosterError):
    status_code = 409
    code = "not_waitlisted"
    default_message = "Player is not on the waitlist"


class MeetupFull(RosterError):
    status_code = 409
    code = "meetup_full"
    default_message = "Meetup is full"


class CannotRemoveHost(RosterError):
    status_code = 400
    code = "cannot_remove_host"
    default_message = "The host cannot be removed from their own meetup"


class VersionConflict(RosterError):
    status_code = 409
    code = "version_conflict"
    default_message = "Meetup was changed by someone else, please retry"


class NotAuthorized(RosterError):
    status_code = 403
    code = "forbidden"
    default_message = "Not authorized to change this meetup"
