"""
auth/roles.py -- Role-permission evaluation.

A role grants its own name as an implicit permission, plus every entry of its
comma-delimited permission list. Comparison is case-insensitive and the
result depends only on the role and the requested string.
"""

from __future__ import annotations

from auth.models import Role


def parse_permissions(raw: str | None) -> frozenset[str]:
    """Split a stored permission string into a normalized set.

    "orders.read, Orders.Write,," -> {"orders.read", "orders.write"}
    """
    if not raw:
        return frozenset()
    return frozenset(p.strip().lower() for p in raw.split(",") if p.strip())


class RoleEvaluator:
    """Decide whether a role satisfies a requested permission."""

    def evaluate(self, role: Role | None, permission: str) -> bool:
        if role is None or not permission:
            return False
        wanted = permission.lower()
        if role.name.lower() == wanted:
            return True
        return wanted in parse_permissions(role.permissions)
