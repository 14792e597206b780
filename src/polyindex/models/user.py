"""User profile."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class User(BaseModel):
    """Public profile of an account. Credentials live with the session store."""

    id: str
    email: str
    username: str
    created_at: datetime
    # Plan fields are kept for schema compatibility; nothing is gated on them.
    is_paid: bool = False
    stripe_customer_id: str | None = None
    subscription_id: str | None = None
    subscription_status: str | None = None
