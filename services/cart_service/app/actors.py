"""Requesting-party identity: an authenticated user or an anonymous guest."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import InvalidActorError


class ActorKind(str, Enum):
    USER = "USER"
    GUEST = "GUEST"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True, slots=True)
class Actor:
    kind: ActorKind
    id: str

    @classmethod
    def user(cls, user_id: str) -> Actor:
        return cls.from_ids(user_id=user_id)

    @classmethod
    def guest(cls, guest_id: str) -> Actor:
        return cls.from_ids(guest_id=guest_id)

    @classmethod
    def from_ids(cls, user_id: str | None = None, guest_id: str | None = None) -> Actor:
        """Build an actor from exactly one of ``user_id``/``guest_id``; blanks count as absent."""

        user = _clean(user_id)
        guest = _clean(guest_id)
        if user and guest:
            msg = "Provide either a user id or a guest id, not both"
            raise InvalidActorError(msg)
        if user:
            return cls(ActorKind.USER, user)
        if guest:
            return cls(ActorKind.GUEST, guest)
        msg = "A user id or a guest id is required"
        raise InvalidActorError(msg)

    @property
    def user_id(self) -> str | None:
        return self.id if self.kind is ActorKind.USER else None

    @property
    def guest_id(self) -> str | None:
        return self.id if self.kind is ActorKind.GUEST else None

    def __str__(self) -> str:
        return f"{self.kind.value.lower()}:{self.id}"
