from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from revalidator.core.config import Settings, get_settings


class Role(str, Enum):
    """Roles ordered from least to most privileged."""

    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"

    def granted(self) -> tuple["Role", ...]:
        """This role together with every less privileged one."""

        members = list(Role)
        return tuple(reversed(members[: members.index(self) + 1]))


@dataclass(frozen=True, slots=True)
class User:
    """Caller of the revalidation API."""

    username: str
    roles: tuple[Role, ...]

    def has_role(self, role: Role) -> bool:
        return role in self.roles


ANONYMOUS = User(username="anonymous", roles=(Role.VIEWER,))

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_token(token: str, settings: Settings) -> User | None:
    """Look up a bearer token in the configured ``api_tokens`` table (token -> role)."""

    role_name = settings.api_tokens.get(token)
    if role_name is None:
        return None
    try:
        role = Role(role_name)
    except ValueError:
        return None
    return User(username=role.value, roles=role.granted())


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    if credentials is None:
        if not settings.allow_anonymous_read:
            raise HTTPException(status_code=401, detail="Authentication required")
        return ANONYMOUS

    user = resolve_token(credentials.credentials, settings)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return user


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency
