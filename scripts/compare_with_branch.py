#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gitgg.cli import parse_compare_args, run_compare  # noqa: E402


def parse_args(argv: list[str]):
    return parse_compare_args(argv)


def main(argv: list[str]) -> int:
    return run_compare(argv)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
