"""
Runtime settings for multitotp.

Resolution order: built-in defaults, then environment variables, then
command-line flags (applied by :func:`Settings.with_overrides`).

Environment
-----------
MULTITOTP_ACCOUNTS_FILE   path of the JSON account file
MULTITOTP_WINDOW          drift tolerance, in time steps, for ``--verify``
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_ACCOUNTS_FILE = "MULTITOTP_ACCOUNTS_FILE"
ENV_WINDOW = "MULTITOTP_WINDOW"

DEFAULT_ACCOUNTS_FILE = Path.home() / ".totp_accounts.json"
DEFAULT_WINDOW = 1
TICK_SECONDS = 1.0
WARN_SECONDS = 5


@dataclass(frozen=True)
class Settings:
    accounts_file: Path = DEFAULT_ACCOUNTS_FILE
    window: int = DEFAULT_WINDOW
    tick_seconds: float = TICK_SECONDS
    warn_seconds: int = WARN_SECONDS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from *environ* (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        settings = cls()

        path = env.get(ENV_ACCOUNTS_FILE)
        if path:
            settings = replace(settings, accounts_file=Path(path).expanduser())

        raw_window = env.get(ENV_WINDOW)
        if raw_window:
            try:
                window = int(raw_window)
            except ValueError:
                raise ValueError(f"{ENV_WINDOW} must be an integer, got '{raw_window}'.")
            if window < 0:
                raise ValueError(f"{ENV_WINDOW} must be non-negative.")
            settings = replace(settings, window=window)

        logger.debug("Settings from environment: %s", settings)
        return settings

    def with_overrides(
        self,
        accounts_file: Optional[str] = None,
        window: Optional[int] = None,
    ) -> "Settings":
        settings = self
        if accounts_file:
            settings = replace(settings, accounts_file=Path(accounts_file).expanduser())
        if window is not None:
            if window < 0:
                raise ValueError("Window must be non-negative.")
            settings = replace(settings, window=window)
        return settings
