"""Actor and session context stamped onto transaction records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from uuid import uuid4

SYSTEM_ACTOR = "system"


def new_session_id() -> str:
    return f"session_{uuid4().hex}"


@dataclass(frozen=True)
class ActorContext:
    """
    Who is acting, and in which client session.

    An actor without a ``user_id`` is the system actor.
    """

    session_id: str
    user_id: str | None = None
    email: str | None = None
    name: str | None = None

    @classmethod
    def system(cls, session_id: str | None = None) -> ActorContext:
        return cls(session_id=session_id or new_session_id())

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    @property
    def log_id(self) -> str:
        return self.user_id or SYSTEM_ACTOR

    def user_name(self) -> str:
        """Value stored in the transaction record's ``user_name`` column."""
        if self.is_system:
            return SYSTEM_ACTOR
        return json.dumps(
            {"id": self.user_id, "email": self.email, "name": self.name or self.email},
            sort_keys=True,
        )
