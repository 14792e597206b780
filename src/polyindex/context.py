"""Per-request caller identity, threaded explicitly through every operation."""

from __future__ import annotations

from dataclasses import dataclass

from polyindex.errors import AuthenticationRequired
from polyindex.models import User


@dataclass(frozen=True)
class RequestContext:
    caller: User | None = None
    # A session token resolved but its profile row is gone (e.g. mid account deletion).
    session_found: bool = False

    @property
    def caller_id(self) -> str | None:
        return self.caller.id if self.caller else None

    def require_caller(self) -> User:
        if self.caller is None:
            details = "User profile not found in database" if self.session_found else "No user session found"
            raise AuthenticationRequired(details=details)
        return self.caller


ANONYMOUS = RequestContext()
