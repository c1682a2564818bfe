"""Tests for cli.app (argument handling and actions)."""

import io
import json
import threading
from pathlib import Path
from typing import List, Optional

import pytest

from cli.app import build_parser, run, watch
from cli.display import HIDE_CURSOR, SHOW_CURSOR, Dashboard
from core.totp import TOTPEngine
from storage.accounts import OTPConfig

NOW = 1111111111.0
GITHUB_URI = "otpauth://totp/GitHub:alice?secret=JBSWY3DPEHPK3PXP&issuer=GitHub"


class Result:
    def __init__(self, code: int, out: str, err: str) -> None:
        self.code = code
        self.out = out
        self.err = err


@pytest.fixture()
def accounts_file(tmp_path: Path) -> Path:
    return tmp_path / "accounts.json"


@pytest.fixture()
def cli(accounts_file: Path):
    def invoke(*argv: str, password: Optional[str] = None) -> Result:
        args = build_parser().parse_args(["--file", str(accounts_file), *argv])
        out, err = io.StringIO(), io.StringIO()
        code = run(
            args,
            out=out,
            err=err,
            engine=TOTPEngine(clock=lambda: NOW),
            prompt=lambda _: password or "",
            environ={},
        )
        return Result(code, out.getvalue(), err.getvalue())

    return invoke


def _labels(path: Path) -> List[str]:
    return [item["label"] for item in json.loads(path.read_text())]


# ── Add / remove / list ───────────────────────────────────────────────────────

def test_add_uri(cli, accounts_file: Path) -> None:
    result = cli("--add", GITHUB_URI)
    assert result.code == 0
    assert "Added: GitHub:alice" in result.out
    assert _labels(accounts_file) == ["GitHub:alice"]


def test_add_uri_twice_updates(cli, accounts_file: Path) -> None:
    cli("--add", GITHUB_URI)
    result = cli("--add", GITHUB_URI.replace("JBSWY3DPEHPK3PXP", "GEZDGNBVGY3TQOJQ"))
    assert "updated: GitHub:alice" in result.out
    data = json.loads(accounts_file.read_text())
    assert len(data) == 1
    assert data[0]["secret"] == "GEZDGNBVGY3TQOJQ"


def test_add_bad_uri(cli) -> None:
    result = cli("--add", "otpauth://hotp/x?secret=JBSWY3DPEHPK3PXP&counter=0")
    assert result.code == 1
    assert "Only totp" in result.err


def test_add_user_and_key(cli, accounts_file: Path) -> None:
    result = cli(
        "--add-user", "work", "--add-key", "jbsw y3dp ehpk 3pxp",
        "--add-issuer", "ACME", "--add-algo", "sha256", "--add-period", "60", "--add-digits", "8",
    )
    assert result.code == 0
    [record] = json.loads(accounts_file.read_text())
    assert record == {
        "label": "work",
        "secret": "JBSWY3DPEHPK3PXP",
        "algorithm": "SHA256",
        "period": 60,
        "digits": 8,
        "issuer": "ACME",
    }


def test_add_user_without_key(cli) -> None:
    result = cli("--add-user", "work")
    assert result.code == 1
    assert "together" in result.err


@pytest.mark.parametrize(
    "extra,message",
    [
        (["--add-key", "NOT-BASE32"], "base32"),
        (["--add-key", "JBSWY3DPEHPK3PXP", "--add-algo", "MD5"], "algorithm"),
        (["--add-key", "JBSWY3DPEHPK3PXP", "--add-digits", "4"], "Digits"),
    ],
)
def test_add_user_validation(cli, extra: List[str], message: str) -> None:
    result = cli("--add-user", "work", *extra)
    assert result.code == 1
    assert message in result.err


def test_list(cli) -> None:
    cli("--add", GITHUB_URI)
    cli("--add-user", "plain", "--add-key", "GEZDGNBVGY3TQOJQ")
    result = cli("--list")
    assert result.out.splitlines() == [
        "Saved accounts:",
        "- GitHub:alice (GitHub) [SHA1]",
        "- plain () [SHA1]",
    ]


def test_remove(cli, accounts_file: Path) -> None:
    cli("--add", GITHUB_URI)
    result = cli("--remove", "GitHub:alice")
    assert result.code == 0
    assert _labels(accounts_file) == []


def test_remove_unknown(cli) -> None:
    result = cli("--remove", "ghost")
    assert result.code == 1
    assert "ghost" in result.err


def test_export(cli) -> None:
    cli("--add", GITHUB_URI)
    result = cli("--export", "GitHub:alice")
    assert result.out.strip() == (
        "otpauth://totp/GitHub%3Aalice?secret=JBSWY3DPEHPK3PXP"
        "&algorithm=SHA1&digits=6&period=30&issuer=GitHub"
    )


# ── Verify ────────────────────────────────────────────────────────────────────

def test_verify_current_code(cli) -> None:
    cli("--add", GITHUB_URI)
    result = cli("--verify", "358462")
    assert result.code == 0
    assert "Valid code (GitHub:alice)" in result.out


def test_verify_previous_step_within_default_window(cli) -> None:
    cli("--add", GITHUB_URI)
    assert cli("--verify", "071271").code == 0


def test_verify_window_zero(cli) -> None:
    cli("--add", GITHUB_URI)
    result = cli("--verify", "071271", "--window", "0")
    assert result.code == 1
    assert "Invalid code" in result.out


def test_verify_selected_account(cli) -> None:
    cli("--add-user", "first", "--add-key", "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ")
    cli("--add", GITHUB_URI)
    assert cli("--verify", "358462").code == 1
    assert cli("--verify", "358462", "--account", "GitHub:alice").code == 0


def test_verify_without_accounts(cli) -> None:
    result = cli("--verify", "123456")
    assert result.code == 1
    assert "No account" in result.err


def test_unknown_account_filter(cli) -> None:
    cli("--add", GITHUB_URI)
    result = cli("--verify", "358462", "--account", "GitHub:alice,nobody")
    assert result.code == 1
    assert "nobody" in result.err


# ── Encryption ────────────────────────────────────────────────────────────────

def test_encrypted_flow(cli, accounts_file: Path) -> None:
    assert cli("--add", GITHUB_URI, "--encrypt", password="pw").code == 0
    assert "JBSWY3DPEHPK3PXP" not in accounts_file.read_text()

    assert cli("--verify", "358462", "--encrypt", password="pw").code == 0

    locked = cli("--list")
    assert locked.code == 1
    assert "password" in locked.err

    wrong = cli("--list", "--encrypt", password="nope")
    assert wrong.code == 1


# ── Live view ─────────────────────────────────────────────────────────────────

def test_no_accounts_message(cli) -> None:
    result = cli()
    assert result.code == 0
    assert "No accounts yet" in result.out


def test_watch_draws_until_stopped() -> None:
    out = io.StringIO()
    account = OTPConfig(label="GitHub:alice", secret="JBSWY3DPEHPK3PXP")
    dashboard = Dashboard([account], TOTPEngine(clock=lambda: NOW), out=out)
    stop = threading.Event()

    ticks = []
    real_refresh = dashboard.refresh

    def refresh_then_stop() -> None:
        real_refresh()
        ticks.append(1)
        if len(ticks) == 2:
            stop.set()

    dashboard.refresh = refresh_then_stop  # type: ignore[method-assign]
    watch(dashboard, 0.0, stop)

    text = out.getvalue()
    assert len(ticks) == 2
    assert text.startswith(HIDE_CURSOR)
    assert text.count("358 462") == 2
    assert SHOW_CURSOR in text
