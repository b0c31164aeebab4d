"""Command-line entry point.

Usage:
  edgar-trim <inventory.json>
  python -m edgar_trim <inventory.json>

Writes <inventory>-trimmed.json next to the input and prints its path.
FISCAL_YEAR_END (MMDD) applies when the inventory has no fiscalYearEnd.
"""

from __future__ import annotations

import logging
import sys

from pydantic import ValidationError

USAGE = "Usage: edgar-trim <inventory.json>"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args or args[0] in ("-h", "--help"):
        print(USAGE, file=sys.stderr)
        return 1

    from edgar_trim.config import get_config
    from edgar_trim.trim import trim_file

    try:
        config = get_config()
    except ValidationError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        out = trim_file(args[0], config)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
