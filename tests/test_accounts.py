"""Tests for storage.accounts."""

import json
import os
import stat
from pathlib import Path

import pytest

from core.totp import Algorithm
from storage.accounts import AccountStore, OTPConfig, unique_accounts
from storage.errors import AccountNotFound, StoreCorrupt, StoreLocked


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def store(tmp_path: Path) -> AccountStore:
    return AccountStore(tmp_path / "accounts.json")


@pytest.fixture()
def sample_account() -> OTPConfig:
    return OTPConfig(
        label="GitHub:alice",
        secret="JBSWY3DPEHPK3PXP",
        algorithm=Algorithm.SHA1,
        period=30,
        digits=6,
        issuer="GitHub",
    )


# ── File lifecycle ────────────────────────────────────────────────────────────

def test_load_creates_empty_file(store: AccountStore) -> None:
    assert store.load() == []
    assert json.loads(store.path.read_text()) == []


def test_saved_file_is_private(store: AccountStore, sample_account: OTPConfig) -> None:
    store.save([sample_account])
    mode = stat.S_IMODE(os.stat(store.path).st_mode)
    assert mode == 0o600


def test_save_and_load_roundtrip(store: AccountStore, sample_account: OTPConfig) -> None:
    store.save([sample_account])
    data = json.loads(store.path.read_text())
    assert data == [
        {
            "label": "GitHub:alice",
            "secret": "JBSWY3DPEHPK3PXP",
            "algorithm": "SHA1",
            "period": 30,
            "digits": 6,
            "issuer": "GitHub",
        }
    ]
    assert store.load() == [sample_account]


def test_load_fills_defaults(store: AccountStore) -> None:
    store.path.write_text(json.dumps([{"label": "bob", "secret": "JBSWY3DPEHPK3PXP"}]))
    [acc] = store.load()
    assert acc.algorithm == Algorithm.SHA1
    assert acc.period == 30
    assert acc.digits == 6
    assert acc.issuer == ""


def test_load_lowercase_algorithm(store: AccountStore) -> None:
    store.path.write_text(
        json.dumps([{"label": "bob", "secret": "JBSWY3DPEHPK3PXP", "algorithm": "sha256"}])
    )
    assert store.load()[0].algorithm == Algorithm.SHA256


def test_load_deduplicates_by_label(store: AccountStore) -> None:
    store.path.write_text(
        json.dumps(
            [
                {"label": "bob", "secret": "JBSWY3DPEHPK3PXP", "issuer": "first"},
                {"label": "bob", "secret": "GEZDGNBVGY3TQOJQ", "issuer": "second"},
            ]
        )
    )
    accounts = store.load()
    assert len(accounts) == 1
    assert accounts[0].issuer == "first"


@pytest.mark.parametrize("content", ["not json", '{"foo": 1}', '[{"secret": "X"}]'])
def test_load_corrupt_file(store: AccountStore, content: str) -> None:
    store.path.write_text(content)
    with pytest.raises(StoreCorrupt):
        store.load()


def test_unique_accounts_keeps_order() -> None:
    a = OTPConfig(label="a", secret="A")
    b = OTPConfig(label="b", secret="B")
    assert unique_accounts([a, b, OTPConfig(label="a", secret="C")]) == [a, b]


# ── Record operations ─────────────────────────────────────────────────────────

def test_upsert_adds_then_updates(store: AccountStore, sample_account: OTPConfig) -> None:
    assert store.upsert(sample_account) is True
    changed = OTPConfig(label=sample_account.label, secret="GEZDGNBVGY3TQOJQ", period=60)
    assert store.upsert(changed) is False
    assert store.load() == [changed]


def test_remove(store: AccountStore, sample_account: OTPConfig) -> None:
    store.upsert(sample_account)
    assert store.remove(sample_account.label) is True
    assert store.remove(sample_account.label) is False
    assert store.load() == []


def test_get(store: AccountStore, sample_account: OTPConfig) -> None:
    store.upsert(sample_account)
    assert store.get("GitHub:alice") == sample_account
    with pytest.raises(AccountNotFound):
        store.get("nobody")


def test_select_in_stored_order(store: AccountStore) -> None:
    for label in ("a", "b", "c"):
        store.upsert(OTPConfig(label=label, secret="JBSWY3DPEHPK3PXP"))
    selected = store.select(["c", "a"])
    assert [acc.label for acc in selected] == ["a", "c"]


def test_select_reports_all_missing(store: AccountStore, sample_account: OTPConfig) -> None:
    store.upsert(sample_account)
    with pytest.raises(AccountNotFound) as info:
        store.select(["GitHub:alice", "x", "y"])
    assert info.value.labels == ["x", "y"]
    assert "x, y" in str(info.value)


# ── Encryption ────────────────────────────────────────────────────────────────

def test_encrypted_store_hides_secret(tmp_path: Path, sample_account: OTPConfig) -> None:
    path = tmp_path / "enc.json"
    AccountStore(path, password="master").upsert(sample_account)

    raw = path.read_text()
    assert "JBSWY3DPEHPK3PXP" not in raw
    data = json.loads(raw)
    assert set(data) == {"salt", "accounts"}
    assert data["accounts"][0]["label"] == "GitHub:alice"

    assert AccountStore(path, password="master").load() == [sample_account]


def test_encrypted_store_wrong_password(tmp_path: Path, sample_account: OTPConfig) -> None:
    path = tmp_path / "enc.json"
    AccountStore(path, password="master").upsert(sample_account)
    with pytest.raises(StoreLocked):
        AccountStore(path, password="wrong").load()


def test_encrypted_store_needs_password(tmp_path: Path, sample_account: OTPConfig) -> None:
    path = tmp_path / "enc.json"
    AccountStore(path, password="master").upsert(sample_account)
    with pytest.raises(StoreLocked):
        AccountStore(path).load()


def test_plain_file_migrates_to_encrypted(tmp_path: Path, sample_account: OTPConfig) -> None:
    path = tmp_path / "accounts.json"
    AccountStore(path).save([sample_account])

    store = AccountStore(path, password="master")
    store.save(store.load())
    assert "JBSWY3DPEHPK3PXP" not in path.read_text()
    assert AccountStore(path, password="master").load() == [sample_account]
