"""Exceptions raised by the account store."""


class StoreError(Exception):
    """Base class for account-file problems."""


class StoreLocked(StoreError):
    """The file is encrypted and no (or the wrong) password was supplied."""


class StoreCorrupt(StoreError):
    """The file exists but does not hold a valid account list."""


class AccountNotFound(StoreError, KeyError):
    """One or more requested labels are not in the store."""

    def __init__(self, labels: list[str]) -> None:
        super().__init__(", ".join(labels))
        self.labels = labels

    def __str__(self) -> str:
        return f"Account not found: {', '.join(self.labels)}"
