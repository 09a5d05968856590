"""
Run the rummy101 test suite from a checkout.

    python tests.py                 # whole suite
    python tests.py -k table -x     # extra arguments go straight to pytest

Installs the package with its ``dev`` extra first when ``rummy101`` or
``pytest`` cannot be imported.
"""
from __future__ import annotations

import importlib.util
import subprocess
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent
TEST_DIR = ROOT / "tests"


def _missing_modules() -> list[str]:
    return [name for name in ("rummy101", "pytest", "numpy") if importlib.util.find_spec(name) is None]


def main(argv: list[str] | None = None) -> int:
    missing = _missing_modules()
    if missing:
        print(f"Missing {', '.join(missing)}; installing rummy101 with .[dev] ...")
        subprocess.check_call([sys.executable, "-m", "pip", "install", "-e", ".[dev]"], cwd=str(ROOT))
    args = list(sys.argv[1:] if argv is None else argv)
    return subprocess.call([sys.executable, "-m", "pytest", str(TEST_DIR), *args], cwd=str(ROOT))


if __name__ == "__main__":
    sys.exit(main())
