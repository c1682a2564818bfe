"""
ANSI terminal rendering for the live multi-account view.

The screen is drawn once in full (:meth:`Dashboard.draw_static`); each tick
then moves the cursor onto the code and countdown lines of every account
and rewrites just those (:meth:`Dashboard.refresh`), which avoids flicker.

Screen layout (1-based rows)::

    1  title
    2  ====
    3  account block 0   (BLOCK_LINES rows)
    9  account block 1
    ...
"""

import logging
import sys
from typing import List, Optional, TextIO

from core.totp import TOTPEngine
from core.utils import format_otp
from storage.accounts import OTPConfig

logger = logging.getLogger(__name__)

# ── ANSI codes ────────────────────────────────────────────────────────────────

RESET = "\033[0m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
BOLD = "\033[1m"

CLEAR_SCREEN = "\033[H\033[2J"
HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"
CLEAR_LINE = "\r\033[2K"
BELL = "\a"

BAR_WIDTH = 20
RULE_WIDTH = 40
FIRST_BLOCK_ROW = 3
BLOCK_LINES = 6
CODE_LINE = 3     # offset of the code line inside a block


def move_to(row: int) -> str:
    return f"\033[{row};0H"


def progress_bar(total: float, left: float, width: int = BAR_WIDTH) -> str:
    """
    Colored bar of the elapsed fraction of a window.

    Green while more than half the window is left, yellow down to a
    quarter, red below that.
    """
    ratio = 1 - (left / total) if total > 0 else 1
    filled = min(width, max(0, int(ratio * width)))
    if left <= total * 0.25:
        color = RED
    elif left <= total * 0.5:
        color = YELLOW
    else:
        color = GREEN
    return f"{color}{'█' * filled}{'░' * (width - filled)}{RESET}"


class Dashboard:
    """Renders live codes for a fixed list of accounts."""

    def __init__(
        self,
        accounts: List[OTPConfig],
        engine: TOTPEngine,
        out: Optional[TextIO] = None,
        warn_seconds: int = 5,
    ) -> None:
        self.accounts = accounts
        self.engine = engine
        self.out = out if out is not None else sys.stdout
        self.warn_seconds = warn_seconds

    def _write(self, text: str) -> None:
        self.out.write(text)

    def hide_cursor(self) -> None:
        self._write(HIDE_CURSOR)
        self.out.flush()

    def restore_cursor(self) -> None:
        self._write(SHOW_CURSOR + CLEAR_LINE)
        self.out.flush()

    def draw_static(self) -> None:
        """Clear the screen and draw the parts that never change."""
        lines = [
            f"{BOLD}{CYAN}🔐 Multi-account TOTP{RESET}",
            "=" * RULE_WIDTH,
        ]
        for cfg in self.accounts:
            # Always BLOCK_LINES rows, so refresh() can address them.
            lines.append(f"Issuer: {cfg.issuer}" if cfg.issuer else "")
            lines.append(f"Account: {cfg.label}")
            lines.append(f"Algorithm: {cfg.algorithm.value} | Period: {cfg.period}s")
            lines.append("Code: ")
            lines.append("Remaining: ")
            lines.append("-" * RULE_WIDTH)
        lines.append("Press Ctrl+C to quit")
        self._write(CLEAR_SCREEN + "\n".join(lines) + "\n")
        self.out.flush()

    def refresh(self) -> None:
        """Rewrite the code and countdown line of every account."""
        t = self.engine.now()
        beep = False

        for i, cfg in enumerate(self.accounts):
            row = FIRST_BLOCK_ROW + i * BLOCK_LINES + CODE_LINE
            self._write(move_to(row))
            try:
                current = self.engine.generate_current_code(
                    cfg.secret, cfg.algorithm, cfg.period, cfg.digits
                )
            except ValueError as exc:
                logger.debug("Code generation failed for %s: %s", cfg.label, exc)
                self._write(f"{CLEAR_LINE}{RED}❌ Generation failed: {exc}{RESET}\n")
                self._write(CLEAR_LINE + "\n")
                continue

            window = current.window
            left = window.remaining(t)
            if left <= self.warn_seconds:
                beep = True
            self._write(f"{CLEAR_LINE}Code: {GREEN}{format_otp(current.code)}{RESET}   \n")
            self._write(
                f"{CLEAR_LINE}Remaining: {left:2d}s [{progress_bar(window.total, left)}]   \n"
            )

        if beep:
            self._write(BELL)
        self.out.flush()
