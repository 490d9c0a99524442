#!/usr/bin/env python3
"""
Gatehouse -- administrative command line.

Usage:
  python main.py hash-password
  python main.py check-path /myAccount
  python main.py check-path /myAccount --authenticated
  python main.py create-user jane@example.com

Passwords are read from an interactive prompt (or stdin when piped), never
from the command line, so they do not land in shell history.

Configuration comes from the same environment variables as the API server
(HASH_COST, ACCESS_RULES, DEFAULT_POLICY, DATABASE_URL, ...).
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.access import AccessDecisionEngine, build_rule_set, normalize_path
from auth.components import build_components
from auth.errors import GatehouseError
from auth.models import AuthDecision
from auth.passwords import PasswordHasher
from core.config import get_settings


def _read_password(confirm: bool = False) -> str:
    """Prompt for a password, or read one line from stdin when it is not a TTY."""
    if not sys.stdin.isatty():
        return sys.stdin.readline().rstrip("\n")
    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Repeat password: ") != password:
        raise GatehouseError("Passwords do not match.")
    return password


def cmd_hash_password(args: argparse.Namespace) -> int:
    settings = get_settings()
    hasher = PasswordHasher(cost=settings.hash_cost, concurrency_cap=1)
    print(hasher.hash(_read_password(confirm=True)))
    return 0


def cmd_check_path(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = AccessDecisionEngine(
        build_rule_set(settings.access_rules),
        default_policy=AuthDecision(settings.default_policy),
    )
    path = normalize_path(args.path)
    rule = engine.match(path)
    decision = engine.decide(path, has_valid_credential=args.authenticated)
    if rule is not None:
        source = f"rule {rule.pattern} ({rule.requirement.value})"
    else:
        source = f"default policy ({engine.default_policy.value})"
    print(f"{path}: {decision.value} via {source}")
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    components = build_components(get_settings())
    try:
        record = components.registration_service.register(args.email, _read_password(confirm=True))
    finally:
        components.close()
    print(f"Created {record.identifier} (id={record.id}, role={record.role})")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="gatehouse",
        description="Gatehouse access rules and credential administration.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_hash = sub.add_parser("hash-password", help="Print the encoded hash of a password")
    p_hash.set_defaults(func=cmd_hash_password)

    p_check = sub.add_parser("check-path", help="Show the access decision for a request path")
    p_check.add_argument("path", help="Request path, e.g. /myAccount")
    p_check.add_argument(
        "--authenticated",
        action="store_true",
        help="Evaluate as a caller holding a valid credential",
    )
    p_check.set_defaults(func=cmd_check_path)

    p_create = sub.add_parser("create-user", help="Register a customer account")
    p_create.add_argument("email")
    p_create.set_defaults(func=cmd_create_user)

    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except GatehouseError as e:
        print(f"  [!] {e.message or e.code}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"  [!] Configuration error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
