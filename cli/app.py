"""
Command-line front end: manage accounts, verify codes, or watch live codes.

Exactly one action runs per invocation, checked in this order: ``--add``,
``--remove``, ``--list``, ``--export``, ``--add-user/--add-key``,
``--verify``; with none of them the live view starts.
"""

import argparse
import getpass
import logging
import signal
import sys
import threading
from typing import Callable, List, Optional, TextIO

from cli.display import GREEN, RED, RESET, Dashboard
from core.config import Settings
from core.totp import DEFAULT_DIGITS, DEFAULT_PERIOD, Algorithm, TOTPEngine
from core.utils import clean_secret, split_labels, validate_digits, validate_period
from storage.accounts import AccountStore, OTPConfig
from storage.errors import AccountNotFound, StoreError
from uri.parser import build_otpauth_uri, parse_otpauth_uri

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multitotp",
        description="Multi-account TOTP manager with a live terminal countdown.",
    )
    parser.add_argument("--add", metavar="URI", help="add an account from an otpauth:// URI")
    parser.add_argument("--remove", metavar="LABEL", help="remove an account by label")
    parser.add_argument("--list", action="store_true", help="list saved accounts")
    parser.add_argument("--export", metavar="LABEL", help="print an account as an otpauth:// URI")
    parser.add_argument("--verify", metavar="CODE", help="verify a code against the selected account")
    parser.add_argument(
        "--account", metavar="LABELS",
        help="only show or verify these accounts (comma-separated)",
    )
    parser.add_argument("--add-user", metavar="LABEL", help="label of an account to add by key")
    parser.add_argument("--add-key", metavar="SECRET", help="base32 secret of the account to add")
    parser.add_argument("--add-issuer", default="", help="service provider / platform name")
    parser.add_argument("--add-algo", default="SHA1", help="hash algorithm: SHA1/SHA256/SHA512")
    parser.add_argument("--add-period", type=int, default=DEFAULT_PERIOD, help="time step (seconds)")
    parser.add_argument("--add-digits", type=int, default=DEFAULT_DIGITS, help="code length")
    parser.add_argument("--file", metavar="PATH", help="account file (default ~/.totp_accounts.json)")
    parser.add_argument(
        "--window", type=int, default=None,
        help="time steps of clock drift tolerated by --verify (default 1)",
    )
    parser.add_argument(
        "--encrypt", action="store_true",
        help="encrypt secrets in the account file with a master password",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


# ── Live view ─────────────────────────────────────────────────────────────────

def watch(dashboard: Dashboard, tick_seconds: float, stop: threading.Event) -> None:
    """Redraw *dashboard* every *tick_seconds* until *stop* is set."""
    dashboard.hide_cursor()
    try:
        dashboard.draw_static()
        while not stop.is_set():
            dashboard.refresh()
            stop.wait(tick_seconds)
    finally:
        dashboard.restore_cursor()


def _watch_until_signalled(dashboard: Dashboard, settings: Settings) -> None:
    stop = threading.Event()

    def _handle(signum, frame):
        logger.debug("Received signal %s, stopping.", signum)
        stop.set()

    previous = {sig: signal.signal(sig, _handle) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        watch(dashboard, settings.tick_seconds, stop)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


# ── Actions ───────────────────────────────────────────────────────────────────

def _config_from_flags(args: argparse.Namespace) -> OTPConfig:
    validate_period(args.add_period)
    validate_digits(args.add_digits)
    return OTPConfig(
        label=args.add_user.strip(),
        secret=clean_secret(args.add_key),
        algorithm=Algorithm.parse(args.add_algo),
        period=args.add_period,
        digits=args.add_digits,
        issuer=args.add_issuer,
    )


def _report_upsert(store: AccountStore, config: OTPConfig, out: TextIO) -> None:
    if store.upsert(config):
        print(f"✅ Added: {config.label}", file=out)
    else:
        print(f"⚠️  Account already exists, updated: {config.label}", file=out)
    logger.info("Saved account %s to %s.", config.label, store.path)


def dispatch(
    args: argparse.Namespace,
    store: AccountStore,
    settings: Settings,
    engine: TOTPEngine,
    out: TextIO,
) -> int:
    if args.add:
        _report_upsert(store, parse_otpauth_uri(args.add), out)
        return 0

    if args.remove:
        if not store.remove(args.remove):
            raise AccountNotFound([args.remove])
        print(f"✅ Removed: {args.remove}", file=out)
        return 0

    if args.list:
        print("Saved accounts:", file=out)
        for acc in store.load():
            print(f"- {acc.label} ({acc.issuer}) [{acc.algorithm.value}]", file=out)
        return 0

    if args.export:
        print(build_otpauth_uri(store.get(args.export)), file=out)
        return 0

    if args.account:
        selected: List[OTPConfig] = store.select(split_labels(args.account))
    else:
        selected = store.load()

    if args.add_user or args.add_key:
        if not (args.add_user and args.add_key):
            raise ValueError("--add-user and --add-key must be given together.")
        _report_upsert(store, _config_from_flags(args), out)
        return 0

    if args.verify:
        if not selected:
            raise ValueError("No account selected to verify against.")
        cfg = selected[0]
        valid = engine.validate_code(
            cfg.secret, args.verify, cfg.period, settings.window, cfg.algorithm, cfg.digits
        )
        if valid:
            print(f"{GREEN}✅ Valid code ({cfg.label}){RESET}", file=out)
            return 0
        print(f"{RED}❌ Invalid code ({cfg.label}){RESET}", file=out)
        return 1

    if not selected:
        print("❌ No accounts yet; add one with --add", file=out)
        return 0

    dashboard = Dashboard(selected, engine, out=out, warn_seconds=settings.warn_seconds)
    _watch_until_signalled(dashboard, settings)
    print("👋 Bye.", file=out)
    return 0


def run(
    args: argparse.Namespace,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
    engine: Optional[TOTPEngine] = None,
    prompt: Callable[[str], str] = getpass.getpass,
    environ: Optional[dict] = None,
) -> int:
    """
    Execute the action selected by *args*.

    Returns:
        Process exit code: 0 on success, 1 on any reported failure.
    """
    out = out if out is not None else sys.stdout
    err = err if err is not None else sys.stderr
    engine = engine if engine is not None else TOTPEngine()

    try:
        settings = Settings.from_env(environ).with_overrides(args.file, args.window)
        password = prompt("Master password: ") if args.encrypt else None
        store = AccountStore(settings.accounts_file, password)
        return dispatch(args, store, settings, engine, out)
    except (StoreError, ValueError, OSError) as exc:
        logger.debug("Command failed.", exc_info=True)
        print(f"{RED}❌ {exc}{RESET}", file=err)
        return 1
