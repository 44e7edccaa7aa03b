"""Who a cart belongs to.

Every cart operation takes an explicit identity: a ``Guest`` (anonymous
session) or a ``User`` (signed-in account). Nothing is inferred from which
identifier happens to be present further down.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError


@dataclass(frozen=True)
class Guest:
    session_id: str


@dataclass(frozen=True)
class User:
    user_id: str


CartIdentity = Guest | User


def identity_from(session_id=None, user_id=None) -> CartIdentity:
    """Build an identity from raw request values; exactly one must be given."""
    if user_id and session_id:
        raise ValidationError({"identity": ["Provide either a user id or a session id, not both"]})
    if user_id:
        return User(user_id=str(user_id))
    if session_id:
        return Guest(session_id=str(session_id))
    raise ValidationError({"identity": ["A user id or a session id is required"]})
