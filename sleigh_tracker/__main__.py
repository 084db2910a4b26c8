"""Module entry point: python -m sleigh_tracker ..."""

from __future__ import annotations

from sleigh_tracker.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
