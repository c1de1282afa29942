#!/usr/bin/env python3
"""
AccessAdmin -- out-of-band role administration.

Roles are not created through the HTTP API. This CLI manages them directly
against the configured database and answers permission questions.

Usage:
  python main.py roles list
  python main.py roles create cashier --permissions "orders.read, payments.take"
  python main.py roles assign admin@example.com 3
  python main.py check admin@example.com orders.write
  python main.py --db sqlite:///other.db roles list

Environment variables:
  SECRET_KEY     Required unless DEBUG=true (see core/config.py).
  DATABASE_URL   SQLAlchemy URL of the account store.
"""

import argparse
import sys
from typing import Optional

from auth.controller import AccessController, normalize_email
from auth.errors import AccessError, StorageError
from auth.models import Role
from auth.roles import parse_permissions
from auth.store import SqlUserStore
from core.config import get_settings


def _cmd_roles_list(store: SqlUserStore, args: argparse.Namespace) -> int:
    for role in store.list_roles():
        perms = ", ".join(sorted(parse_permissions(role.permissions))) or "-"
        print(f"  {role.id:>4}  {role.name:<24} {perms}")
    return 0


def _cmd_roles_create(store: SqlUserStore, args: argparse.Namespace) -> int:
    name = args.name.strip()
    if not name:
        print("  [!] Role name must not be empty.")
        return 2
    permissions = ", ".join(sorted(parse_permissions(args.permissions)))
    try:
        role_id = store.create_role(Role(name=name, permissions=permissions))
    except StorageError:
        print(f"  [!] Could not create role '{name}' (does it already exist?).")
        return 1
    print(f"  Created role {role_id}: {name}")
    return 0


def _cmd_roles_assign(store: SqlUserStore, args: argparse.Namespace) -> int:
    try:
        email = normalize_email(args.email)
    except AccessError as e:
        print(f"  [!] {e.message}")
        return 2
    if store.get_role(args.role_id) is None:
        print(f"  [!] No role with id {args.role_id}.")
        return 1
    user_id = store.find_id_by_email(email)
    if user_id is None:
        print(f"  [!] No user registered as {email}.")
        return 1
    store.assign_role(user_id, args.role_id)
    print(f"  Assigned role {args.role_id} to {email}")
    return 0


def _cmd_check(store: SqlUserStore, args: argparse.Namespace) -> int:
    controller = AccessController.from_settings(get_settings(), store=store)
    granted = controller.check_permission(args.email, args.permission)
    print("  granted" if granted else "  denied")
    return 0 if granted else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="accessadmin",
        description="Role administration and permission checks for AccessAdmin.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", metavar="URL", help="SQLAlchemy database URL (default: DATABASE_URL setting)")
    sub = parser.add_subparsers(dest="command", required=True)

    roles = sub.add_parser("roles", help="List, create and assign roles")
    roles_sub = roles.add_subparsers(dest="roles_command", required=True)

    roles_list = roles_sub.add_parser("list", help="List all roles")
    roles_list.set_defaults(func=_cmd_roles_list)

    roles_create = roles_sub.add_parser("create", help="Create a role")
    roles_create.add_argument("name")
    roles_create.add_argument("--permissions", default="", help="Comma-separated permission list")
    roles_create.set_defaults(func=_cmd_roles_create)

    roles_assign = roles_sub.add_parser("assign", help="Assign a role to a user (replaces any existing role)")
    roles_assign.add_argument("email")
    roles_assign.add_argument("role_id", type=int)
    roles_assign.set_defaults(func=_cmd_roles_assign)

    check = sub.add_parser("check", help="Exit 0 if the user holds the permission, 1 otherwise")
    check.add_argument("email")
    check.add_argument("permission")
    check.set_defaults(func=_cmd_check)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = SqlUserStore(args.db or get_settings().database_url)
    try:
        return args.func(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
