"""
Caller identity handed to every workflow operation.

The engine never looks up the session itself; routers build a ``UserSession``
from the bearer token and pass it in, tests build one directly.
"""
from dataclasses import dataclass
from enum import Enum

from container_check.errors import Unauthorized


class Role(str, Enum):
    SECURITY = "SECURITY"
    CHECKER = "CHECKER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class UserSession:
    user_id: int
    name: str
    role: Role


def require_role(session: UserSession, *roles: Role) -> UserSession:
    if session is None or session.role not in roles:
        raise Unauthorized()
    return session


def require_owner(session: UserSession, owner_id: int) -> UserSession:
    if session is None or session.user_id != owner_id:
        raise Unauthorized("Only the user who submitted this record may change it")
    return session
