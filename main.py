"""
multitotp – entry point.

Usage
-----
    python main.py --add 'otpauth://totp/GitHub:alice?secret=JBSWY3DPEHPK3PXP'
    python main.py                      # live codes for every account
    python main.py --verify 123456 --account GitHub:alice

Or, if installed as a package:
    multitotp --list
"""

import logging
import sys
from typing import List, Optional

from cli.app import build_parser, run


# ── Logging setup ─────────────────────────────────────────────────────────────

def setup_logging(verbose: bool = False) -> None:
    # stderr only, and quiet by default: stdout belongs to the live view.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


# ── Main ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
