"""
JSON-file account store.

Plain layout (the default)::

    [
      {"label": "alice", "secret": "JBSWY3DPEHPK3PXP", "algorithm": "SHA1",
       "period": 30, "digits": 6, "issuer": "GitHub"}
    ]

Encrypted layout (``--encrypt``)::

    {"salt": "<hex>", "accounts": [ ... same records, secret encrypted ... ]}

Labels identify accounts; duplicates are dropped on every load and save,
keeping the first occurrence.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional

from core.totp import DEFAULT_DIGITS, DEFAULT_PERIOD, Algorithm
from storage.encryption import FieldEncryptor
from storage.errors import AccountNotFound, StoreCorrupt, StoreLocked

logger = logging.getLogger(__name__)


# ── Data model ────────────────────────────────────────────────────────────────

@dataclass
class OTPConfig:
    """One TOTP account as stored on disk."""

    label: str
    secret: str           # base32, canonical form (see core.utils.clean_secret)
    algorithm: Algorithm = Algorithm.SHA1
    period: int = DEFAULT_PERIOD
    digits: int = DEFAULT_DIGITS
    issuer: str = ""

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "secret": self.secret,
            "algorithm": Algorithm(self.algorithm).value,
            "period": self.period,
            "digits": self.digits,
            "issuer": self.issuer,
        }

    @classmethod
    def from_dict(cls, item: dict) -> "OTPConfig":
        try:
            return cls(
                label=item["label"],
                secret=item["secret"],
                algorithm=Algorithm.parse(item.get("algorithm") or "SHA1"),
                period=int(item.get("period") or DEFAULT_PERIOD),
                digits=int(item.get("digits") or DEFAULT_DIGITS),
                issuer=item.get("issuer") or "",
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StoreCorrupt(f"Invalid account record: {exc}") from exc


def unique_accounts(accounts: Iterable[OTPConfig]) -> List[OTPConfig]:
    """Drop accounts whose label was already seen, preserving order."""
    seen = set()
    result = []
    for acc in accounts:
        if acc.label not in seen:
            seen.add(acc.label)
            result.append(acc)
    return result


# ── Store ─────────────────────────────────────────────────────────────────────

class AccountStore:
    """Load and save :class:`OTPConfig` records in a single JSON file."""

    def __init__(self, path: Path, password: Optional[str] = None) -> None:
        """
        Args:
            path:     Location of the account file; created on first load.
            password: Master password.  When given, secrets are written
                      encrypted; when omitted, an encrypted file cannot be read.
        """
        self.path = Path(path)
        self._password = password
        self._encryptor: Optional[FieldEncryptor] = None

    @property
    def encrypted(self) -> bool:
        return self._password is not None

    # ── Whole-file operations ─────────────────────────────────────────────

    def load(self) -> List[OTPConfig]:
        """Return all accounts, creating an empty file if none exists."""
        if not self.path.exists():
            logger.info("Account file %s missing; creating an empty one.", self.path)
            self._write([])
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreCorrupt(f"{self.path} is not valid JSON: {exc}") from exc

        if isinstance(data, list):
            records = data
        elif isinstance(data, dict) and "accounts" in data:
            records = self._decrypt_records(data)
        else:
            raise StoreCorrupt(f"{self.path} does not contain an account list.")

        return unique_accounts(OTPConfig.from_dict(item) for item in records)

    def save(self, accounts: Iterable[OTPConfig]) -> None:
        """Write *accounts* (de-duplicated by label) back to disk."""
        accounts = unique_accounts(accounts)
        records: List[dict] = [acc.to_dict() for acc in accounts]

        if self.encrypted:
            encryptor = self._get_encryptor()
            for record in records:
                record["secret"] = encryptor.encrypt_field(record["secret"])
            self._write({"salt": encryptor.salt.hex(), "accounts": records})
        else:
            self._write(records)
        logger.debug("Saved %d account(s) to %s.", len(records), self.path)

    # ── Record operations ─────────────────────────────────────────────────

    def upsert(self, config: OTPConfig) -> bool:
        """
        Add *config*, replacing any account with the same label.

        Returns:
            True if the account is new, False if an existing one was updated.
        """
        accounts = self.load()
        for i, acc in enumerate(accounts):
            if acc.label == config.label:
                accounts[i] = config
                self.save(accounts)
                return False
        accounts.append(config)
        self.save(accounts)
        return True

    def remove(self, label: str) -> bool:
        """Delete the account called *label*; return whether it existed."""
        accounts = self.load()
        kept = [acc for acc in accounts if acc.label != label]
        if len(kept) == len(accounts):
            return False
        self.save(kept)
        return True

    def get(self, label: str) -> OTPConfig:
        for acc in self.load():
            if acc.label == label:
                return acc
        raise AccountNotFound([label])

    def select(self, labels: Iterable[str]) -> List[OTPConfig]:
        """
        Return the accounts named in *labels*, in stored order.

        Raises:
            AccountNotFound: Listing every requested label that does not exist.
        """
        wanted = list(dict.fromkeys(labels))
        accounts = self.load()
        known = {acc.label for acc in accounts}
        missing = [label for label in wanted if label not in known]
        if missing:
            raise AccountNotFound(missing)
        return [acc for acc in accounts if acc.label in wanted]

    # ── Internals ─────────────────────────────────────────────────────────

    def _get_encryptor(self, salt: Optional[bytes] = None) -> FieldEncryptor:
        if self._password is None:
            raise StoreLocked(f"{self.path} is encrypted; a master password is required.")
        if self._encryptor is None or (salt is not None and salt != self._encryptor.salt):
            self._encryptor = FieldEncryptor.from_password(self._password, salt)
        return self._encryptor

    def _decrypt_records(self, data: dict) -> List[dict]:
        try:
            salt = bytes.fromhex(data["salt"])
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreCorrupt(f"{self.path} has no valid salt.") from exc

        encryptor = self._get_encryptor(salt)
        records = []
        for item in data["accounts"]:
            item = dict(item)
            item["secret"] = encryptor.decrypt_field(item.get("secret", ""))
            records.append(item)
        return records

    def _write(self, payload: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".accounts-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, ensure_ascii=False)
                fh.write("\n")
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
