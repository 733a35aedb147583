"""Closed catalog of role values that may be assigned through passport.

The catalog always contains the ``no-access`` sentinel, which resolution
returns when nothing else matches.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import get_role_catalog_values
from .exceptions import ValidationError

NO_ACCESS_ROLE = "no-access"

DEFAULT_ROLES: Tuple[str, ...] = (
    "administrator",
    "editor",
    "author",
    "contributor",
    "subscriber",
    NO_ACCESS_ROLE,
)

# Higher wins when an identity holds several coarse roles.
DEFAULT_COARSE_ROLE_PRIORITIES = {
    "administrator": 5,
    "editor": 4,
    "author": 3,
    "contributor": 2,
    "subscriber": 1,
}


def default_coarse_role_priority(coarse_role_key: str) -> int:
    return DEFAULT_COARSE_ROLE_PRIORITIES.get(coarse_role_key, 0)


class RoleCatalog:
    """Ordered, closed set of assignable role values."""

    def __init__(self, roles: Iterable[str], *, no_access: str = NO_ACCESS_ROLE):
        ordered: List[str] = []
        for role in roles:
            if role is None:
                continue
            value = str(role).strip()
            if value and value not in ordered:
                ordered.append(value)
        if no_access not in ordered:
            ordered.append(no_access)
        self._roles: Tuple[str, ...] = tuple(ordered)
        self._members = frozenset(ordered)
        self.no_access = no_access

    def __contains__(self, role: object) -> bool:
        return role in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self._roles)

    def __len__(self) -> int:
        return len(self._roles)

    def __repr__(self) -> str:
        return f"RoleCatalog({list(self._roles)!r})"

    @property
    def roles(self) -> Tuple[str, ...]:
        return self._roles

    def is_valid(self, role: Optional[str]) -> bool:
        return isinstance(role, str) and role in self._members

    def validate(self, role: Optional[str]) -> str:
        """Return ``role`` stripped, or raise :class:`ValidationError`."""

        value = role.strip() if isinstance(role, str) else ""
        if not value:
            raise ValidationError("role must be provided", field="role")
        if value not in self._members:
            raise ValidationError(
                f"Unknown role {value!r}; allowed: {', '.join(self._roles)}",
                field="role",
            )
        return value

    def is_no_access(self, role: Optional[str]) -> bool:
        return role == self.no_access

    def label(self, role: str) -> str:
        if role == self.no_access:
            return "No Access"
        return role.replace("-", " ").replace("_", " ").title()

    def options(self) -> List[Tuple[str, str]]:
        """Return ``(value, label)`` pairs in catalog order."""

        return [(role, self.label(role)) for role in self._roles]


def load_role_catalog(roles: Optional[Sequence[str]] = None) -> RoleCatalog:
    """Build the catalog from ``roles`` or ``PASSPORT_ROLE_CATALOG``."""

    if roles is None:
        roles = get_role_catalog_values() or DEFAULT_ROLES
    return RoleCatalog(roles)


__all__ = [
    "DEFAULT_COARSE_ROLE_PRIORITIES",
    "DEFAULT_ROLES",
    "NO_ACCESS_ROLE",
    "RoleCatalog",
    "default_coarse_role_priority",
    "load_role_catalog",
]
