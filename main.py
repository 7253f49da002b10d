#!/usr/bin/env python3
"""
Nexus client -- command line front end for the Nexus company tracker.

The CLI is a consumer of the session core: it reads session state through
SessionStore and makes every protected call through Gateway. The credential
is kept in local client storage, so a login survives between invocations.

Usage:
  python main.py login -u alice
  python main.py whoami
  python main.py companies list
  python main.py companies list --json
  python main.py companies add --name "Acme" --email ops@acme.test
  python main.py query "companies in Lisbon"
  python main.py logout

Environment variables:
  SITE_URL             Base URL of the WordPress site (default http://localhost:10003)
  PERSIST_CREDENTIAL   Set to false to keep the credential in memory only
  REQUEST_TIMEOUT      Seconds before a request is abandoned (default 10)
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
from typing import Optional

from auth.login import request_credential
from auth.session import SessionStore
from core.config import get_settings
from core.errors import ApiError, AuthInvalidError, LoginError, NetworkError
from core.models import Company, Session
from gateway.client import Gateway
from gateway.companies import create_company, list_companies
from gateway.query import submit_query

logger = logging.getLogger("nexus.cli")

_COMPANY_FIELDS = (
    "legal_name",
    "document_number",
    "email",
    "phone",
    "city",
    "state",
    "postal_code",
    "country",
    "website",
    "notes",
)


def _describe(session: Session) -> str:
    if session.identity is not None:
        return f"Logged in as {session.identity.display_name} (id {session.identity.id})."
    if session.error:
        return f"Not logged in. {session.error}"
    return "Not logged in."


def _print_companies(companies: list[Company]) -> None:
    if not companies:
        print("  No companies found.")
        return
    print(f"  {'ID':>5}  {'Name':<30} {'Email':<30} {'City':<20}")
    print("  " + "─" * 88)
    for c in companies:
        print(f"  {c.id:>5}  {c.name:<30.30} {(c.email or ''):<30.30} {(c.city or ''):<20.20}")


def _report_failure(error: Exception) -> int:
    if isinstance(error, AuthInvalidError):
        print("  [!] The server rejected your session. Please log in again.")
    elif isinstance(error, ApiError):
        print(f"  [!] API error: {error.message}")
    else:
        print(f"  [!] Network error: {error}")
    return 1


async def _open_session() -> SessionStore:
    """Construct the store and wait for the stored credential (if any) to resolve."""
    store = SessionStore.from_settings()
    store.start()
    await store.wait_until_settled()
    return store


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_login(args: argparse.Namespace) -> int:
    password: Optional[str] = args.password or getpass.getpass("Password: ")
    try:
        token = await asyncio.to_thread(request_credential, args.username, password)
    except LoginError as e:
        print(f"  [!] {e}")
        return 1
    except NetworkError as e:
        print(f"  [!] Could not reach the login endpoint: {e}")
        return 1

    store = await _open_session()
    try:
        store.login(token)
        session = await store.wait_until_settled()
        print(f"  {_describe(session)}")
        if session.is_authenticated and not store.persistent:
            print("  [!] Client storage unavailable -- this login ends with the process.")
        return 0 if session.is_authenticated else 1
    finally:
        store.close()


async def cmd_logout(args: argparse.Namespace) -> int:
    store = await _open_session()
    try:
        store.logout()
        print("  Logged out.")
        return 0
    finally:
        store.close()


async def cmd_whoami(args: argparse.Namespace) -> int:
    store = await _open_session()
    try:
        session = store.get_snapshot()
        print(f"  {_describe(session)}")
        return 0 if session.is_authenticated else 1
    finally:
        store.close()


async def cmd_companies(args: argparse.Namespace) -> int:
    store = await _open_session()
    gateway = Gateway.for_store(store)
    try:
        if not store.get_snapshot().is_authenticated:
            print(f"  {_describe(store.get_snapshot())} Run 'login' first.")
            return 1

        if args.action == "add":
            fields = {"name": args.name}
            fields.update({f: getattr(args, f) for f in _COMPANY_FIELDS if getattr(args, f)})
            company = await create_company(gateway, fields)
            print(f'  Company "{company.name}" created (id {company.id}).')
            return 0

        companies = await list_companies(gateway)
        if args.json:
            print(json.dumps([c.model_dump(by_alias=True) for c in companies], indent=2))
        else:
            _print_companies(companies)
        return 0
    except (AuthInvalidError, ApiError, NetworkError) as e:
        return _report_failure(e)
    finally:
        store.close()


async def cmd_query(args: argparse.Namespace) -> int:
    text = " ".join(args.text).strip()
    if not text:
        print("  [!] Nothing to ask.")
        return 1

    store = await _open_session()
    gateway = Gateway.for_store(store)
    try:
        if not store.get_snapshot().is_authenticated:
            print(f"  {_describe(store.get_snapshot())} Run 'login' first.")
            return 1
        answer = await submit_query(gateway, text)
        print(json.dumps(answer, indent=2))
        return 0
    except (AuthInvalidError, ApiError, NetworkError) as e:
        return _report_failure(e)
    finally:
        store.close()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexus",
        description="Command line client for the Nexus company tracker.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py login -u alice
  python main.py companies list
  python main.py query "which companies have no email?"
  SITE_URL=https://nexus.example.com python main.py whoami
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log session and request activity to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in with a username and password")
    login.add_argument("-u", "--username", required=True, help="Username or email")
    login.add_argument("-p", "--password", help="Password (prompted when omitted)")
    login.set_defaults(handler=cmd_login)

    sub.add_parser("logout", help="Forget the stored credential").set_defaults(handler=cmd_logout)
    sub.add_parser("whoami", help="Show the logged-in user").set_defaults(handler=cmd_whoami)

    companies = sub.add_parser("companies", help="List or add companies")
    actions = companies.add_subparsers(dest="action", required=True)
    listing = actions.add_parser("list", help="List companies")
    listing.add_argument("--json", action="store_true", help="Output structured JSON")
    add = actions.add_parser("add", help="Add a company")
    add.add_argument("--name", required=True)
    for field in _COMPANY_FIELDS:
        add.add_argument(f"--{field.replace('_', '-')}", dest=field, default=None)
    companies.set_defaults(handler=cmd_companies)

    query = sub.add_parser("query", help="Ask the server a question in plain language")
    query.add_argument("text", nargs="+", help="The question, e.g. companies added this month")
    query.set_defaults(handler=cmd_query)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose or get_settings().debug else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
