# backend/crossborder/services/roles.py
"""
Role selection and page-access rules.

A user may hold several roles at once; a session always acts as exactly one
of them (the "selected role"). When nothing valid was requested we fall back
to the most privileged role the user holds.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple
from urllib.parse import quote

from crossborder.models import Role

ROLE_PRIORITY = [Role.ADMIN.value, Role.DRIVER.value, Role.BLOG_EDITOR.value, Role.CLIENT.value]

DASHBOARDS = {
    Role.ADMIN.value: "/dashboard/admin",
    Role.DRIVER.value: "/dashboard/driver",
    Role.BLOG_EDITOR.value: "/dashboard/editor",
    Role.CLIENT.value: "/dashboard/client",
}

PROTECTED_PREFIXES = ("/dashboard", "/booking", "/profile")
LOGIN_PATH = "/login"


def primary_role(roles: Iterable[str]) -> Optional[str]:
    held = set(roles)
    for role in ROLE_PRIORITY:
        if role in held:
            return role
    return None


def select_role(roles: Iterable[str], requested: Optional[str]) -> Optional[str]:
    roles = list(roles)
    if requested and requested in roles:
        return requested
    return primary_role(roles)


def dashboard_path(role: Optional[str]) -> str:
    return DASHBOARDS.get(role or "", DASHBOARDS[Role.CLIENT.value])


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def is_protected(path: str) -> bool:
    return any(_matches(path, p) for p in PROTECTED_PREFIXES)


def has_route_access(
    roles: Iterable[str],
    selected_role: Optional[str],
    path: str,
) -> Tuple[bool, Optional[str]]:
    """
    Decide whether a session may open `path`.

    Returns (allowed, redirect). `redirect` is None when allowed.
    - anonymous users are sent to the login page for protected paths
    - ADMIN may open everything
    - other roles may open their own dashboard subtree plus non-dashboard pages
    """
    path = "/" + (path or "").strip().lstrip("/")
    roles = list(roles)

    if not is_protected(path):
        return True, None

    if not roles:
        return False, f"{LOGIN_PATH}?callbackUrl={quote(path, safe='')}"

    if Role.ADMIN.value in roles:
        return True, None

    if not _matches(path, "/dashboard"):
        return True, None

    if path == "/dashboard":
        return False, dashboard_path(selected_role or primary_role(roles))

    for role in roles:
        if _matches(path, DASHBOARDS[role]):
            return True, None

    return False, dashboard_path(selected_role or primary_role(roles))
