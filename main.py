#!/usr/bin/env python3
"""
payslip -- Employee self-service payroll receipts from the terminal.

Usage:
  python main.py login ana@example.com
  python main.py status
  python main.py unlock
  python main.py receipts --year 2025
  python main.py receipts --year 2025 --csv > recibos_2025.csv
  python main.py pdf 123 202501 1 --out ~/Downloads
  python main.py notify '{"employeeId": "123", "period": "202501", "type": "1"}'
  python main.py push-token <device-token>
  python main.py logout

Environment variables:
  CREDENTIAL_KEY   Fernet key encrypting the stored bearer token (required
                   unless DEBUG=true).
  DEVICE_PIN_HASH  bcrypt hash of the device PIN that unlocks a stored session.
                   Generate one with: python main.py hash-pin
  API_BASE_URL     Backend base URL.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from auth.biometrics import BiometricCapability, PinBiometrics, hash_pin
from auth.session import SessionManager
from auth.store import CredentialStore, ProfileStore, make_engine
from core.client import PayrollClient
from core.config import Settings, get_settings
from core.errors import PayslipError
from core.models import NavigationTarget
from notifications.events import NavigationBus
from notifications.push import PushTokenRegistry
from notifications.router import DeepLinkRouter
from receipts.service import ReceiptService, summarize, to_csv

logger = logging.getLogger("payslip.cli")


# ---------------------------------------------------------------------------
# Composition root
# ---------------------------------------------------------------------------


@dataclass
class App:
    settings: Settings
    client: PayrollClient
    session: SessionManager
    bus: NavigationBus
    router: DeepLinkRouter
    push: PushTokenRegistry
    receipts: ReceiptService


def build_app(settings: Settings, biometrics: Optional[BiometricCapability] = None) -> App:
    """Wire every component explicitly. Nothing in the project is a global."""
    engine = make_engine(settings.device_db_url)
    credentials = CredentialStore(engine, settings.credential_key)
    profiles = ProfileStore(engine)
    client = PayrollClient(settings.api_base_url, timeout=settings.request_timeout)
    push = PushTokenRegistry(client, credentials, push_token=settings.push_token)
    session = SessionManager(
        client,
        credentials,
        profiles,
        biometrics or PinBiometrics(settings.device_pin_hash),
        push_registrar=push,
    )
    bus = NavigationBus()
    router = DeepLinkRouter(session, bus)
    return App(
        settings=settings,
        client=client,
        session=session,
        bus=bus,
        router=router,
        push=push,
        receipts=ReceiptService(client, session),
    )


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def _ensure_unlocked(app: App) -> bool:
    """Unlock a stored session with biometrics if needed. Prints on failure."""
    if app.session.is_authenticated:
        return True
    if app.session.can_use_biometrics() and app.session.unlock_with_biometrics():
        return True
    if app.session.has_stored_session():
        print("  [!] Session is locked. Run 'unlock' or sign in again with 'login'.")
    else:
        print("  [!] Not signed in. Run 'login <email>' first.")
    return False


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_login(app: App, args: argparse.Namespace) -> int:
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    try:
        ok = app.session.login(args.email, password)
    except PayslipError as e:
        print(f"  [!] {e.user_message}")
        return 2
    if not ok:
        print(f"  [!] Login failed: {app.session.last_error or 'login already in progress'}")
        return 1
    print(f"  Signed in as {app.session.user.full_name}.")
    return 0


def cmd_unlock(app: App, args: argparse.Namespace) -> int:
    if not app.session.has_stored_session():
        print("  [!] No stored session on this device. Run 'login <email>'.")
        return 1
    if not app.session.can_use_biometrics():
        print("  [!] Biometric unlock is not available. Set DEVICE_PIN_HASH or sign in with 'login'.")
        return 1
    if not app.session.unlock_with_biometrics():
        print("  [!] Could not verify it's you. Try again or sign in with your password.")
        return 1
    print(f"  Unlocked. Welcome back, {app.session.user.full_name}.")
    return 0


def cmd_logout(app: App, args: argparse.Namespace) -> int:
    app.session.logout()
    print("  Signed out.")
    return 0


def cmd_status(app: App, args: argparse.Namespace) -> int:
    session = app.session
    print(f"  State:          {session.state.value}")
    print(f"  Stored session: {'yes' if session.has_stored_session() else 'no'}")
    print(f"  Biometrics:     {'available' if session.can_use_biometrics() else 'unavailable'}")
    if session.user is not None:
        user = session.user
        print(f"  Employee:       {user.full_name} [{user.initials}] #{user.id}")
        print(f"  Email:          {user.email}")
        print(f"  RFC / CURP:     {user.rfc} / {user.curp}")
    return 0


def cmd_receipts(app: App, args: argparse.Namespace) -> int:
    if not _ensure_unlocked(app):
        return 1
    receipts = app.receipts.list_receipts(args.year)
    if not receipts:
        print(f"  No receipts for {args.year}.")
        return 0
    if args.json:
        print(json.dumps([asdict(r) for r in receipts], indent=2, ensure_ascii=False))
        return 0
    if args.csv:
        sys.stdout.write(to_csv(receipts))
        return 0
    for r in receipts:
        print(f"  {r.period}  {r.period_label:<12} paid {r.payment_date:<12} net {_money(r.net):>14}")
    totals = summarize(receipts)
    print(
        f"\n  {totals.count} receipts  gross {_money(totals.gross)}  benefits {_money(totals.benefits)}"
        f"  deductions {_money(totals.deductions)}  net {_money(totals.net)}"
    )
    return 0


def cmd_pdf(app: App, args: argparse.Namespace) -> int:
    if not _ensure_unlocked(app):
        return 1
    target = NavigationTarget(employee_id=args.employee, period=args.period, receipt_type=args.type)
    path = app.receipts.download_pdf(target, Path(args.out or app.settings.download_dir).expanduser())
    print(f"  Saved {path}")
    return 0


def cmd_notify(app: App, args: argparse.Namespace) -> int:
    """Simulate tapping a push notification in this process."""
    try:
        payload = json.loads(args.payload)
    except ValueError as e:
        print(f"  [!] Payload is not valid JSON: {e}")
        return 2

    opened: list[NavigationTarget] = []

    def open_receipt(target: NavigationTarget) -> None:
        # Presentation gate: navigation only acts on an unlocked session.
        if not app.session.is_authenticated:
            print(f"  Receipt {target.period} (type {target.receipt_type}) will open after you sign in.")
            return
        opened.append(target)
        out = Path(args.out or app.settings.download_dir).expanduser()
        try:
            path = app.receipts.download_pdf(target, out)
        except PayslipError as e:
            print(f"  [!] Could not open receipt {target.period}: {e.user_message}")
            return
        print(f"  Opened receipt {target.period} -> {path}")

    app.bus.subscribe(open_receipt)
    target = app.router.handle_notification(payload)
    if target is None:
        print("  [!] Notification data is invalid; ignored.")
        return 2

    if not opened and app.session.has_stored_session() and not app.session.is_authenticated:
        print("  Session locked; unlock to open the receipt.")
        if app.session.can_use_biometrics() and not app.session.unlock_with_biometrics():
            print("  [!] Could not verify it's you. The receipt will open after you sign in.")
    return 0


def cmd_push_token(app: App, args: argparse.Namespace) -> int:
    app.push.update_token(args.token)
    return 0


def cmd_hash_pin(args: argparse.Namespace) -> int:
    pin = getpass.getpass("New device PIN: ")
    if not pin:
        print("  [!] PIN cannot be empty.")
        return 2
    print(hash_pin(pin))
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payslip",
        description="View and download your payroll receipts.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    p = sub.add_parser("login", help="Sign in with email and password")
    p.add_argument("email")
    p.add_argument("--password", help="Password (prompted if omitted)")
    p.set_defaults(func=cmd_login)

    sub.add_parser("unlock", help="Unlock the stored session with the device PIN").set_defaults(func=cmd_unlock)
    sub.add_parser("logout", help="Forget the stored session").set_defaults(func=cmd_logout)
    sub.add_parser("status", help="Show session state").set_defaults(func=cmd_status)

    p = sub.add_parser("receipts", help="List receipts for a year")
    p.add_argument("--year", required=True, help="Four-digit year, e.g. 2025")
    p.add_argument("--json", action="store_true", help="Output structured JSON")
    p.add_argument("--csv", action="store_true", help="Output CSV for spreadsheets")
    p.set_defaults(func=cmd_receipts)

    p = sub.add_parser("pdf", help="Download one receipt PDF")
    p.add_argument("employee", type=int)
    p.add_argument("period", type=int)
    p.add_argument("type", type=int)
    p.add_argument("--out", metavar="DIR", help="Destination directory (default: DOWNLOAD_DIR)")
    p.set_defaults(func=cmd_pdf)

    p = sub.add_parser("notify", help="Handle a push notification payload (JSON)")
    p.add_argument("payload")
    p.add_argument("--out", metavar="DIR", help="Where to save the opened receipt")
    p.set_defaults(func=cmd_notify)

    p = sub.add_parser("push-token", help="Record this device's push token")
    p.add_argument("token")
    p.set_defaults(func=cmd_push_token)

    sub.add_parser("hash-pin", help="Print a bcrypt hash for DEVICE_PIN_HASH").set_defaults(func=None)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.command == "hash-pin":
        return cmd_hash_pin(args)

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"  [!] Configuration error: {e}")
        return 2

    app = build_app(settings)
    try:
        return args.func(app, args)
    except PayslipError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"  [!] {e.user_message}")
        return 1
    finally:
        app.session.close()


if __name__ == "__main__":
    sys.exit(main())
