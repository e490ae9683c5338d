"""Run pytest with the project root importable.

Usage:
    python tests/configure_pytest_environment.py [pytest args]

The ScrollGuard packages are laid out at the repository root without a
top-level package, so the root has to be on sys.path before collection.
Set PYQT_TESTS=1 to include the tests that need a real Qt WebEngine.
"""
from __future__ import annotations

import sys
from pathlib import Path


def main(argv: list[str]) -> int:
    root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(root))

    try:
        import pytest  # type: ignore
    except ImportError as exc:  # pragma: no cover
        print("pytest is not installed in this environment.", file=sys.stderr)
        raise SystemExit(1) from exc

    return pytest.main(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
