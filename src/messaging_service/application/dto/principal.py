from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller; the JWT ``sub`` claim is the user id."""

    user_id: int
