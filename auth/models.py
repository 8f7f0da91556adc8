"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tasks/models.py -- dataclasses own domain shape; stores, workflows and
routes do the work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass
class User:
    """A registered account.

    email is stored lower-cased; the store normalizes it on every write and
    lookup. hashed_password never leaves the auth layer -- response models in
    api/models.py have no field for it.
    """

    email: str
    name: str
    hashed_password: str
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPayload:
    """Verified claims of a session token. iat/exp are UTC epoch seconds."""

    user_id: int
    email: str
    kind: TokenKind
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Principal:
    """The authenticated identity resolved from a request's access token."""

    user_id: int
    email: str
