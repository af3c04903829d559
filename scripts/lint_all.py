#!/usr/bin/env python3
"""Run import sorting, formatting and the test suite.

Runs isort, black and pytest in sequence from the project root. By default
formatting problems are fixed in place; --check only reports them.

Usage:
    python scripts/lint_all.py [--check] [--skip-tests]
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
SOURCE_PATHS = ["restrec", "tests", "scripts"]


def run_command(cmd: List[str], description: str) -> bool:
    """Run a command from the project root and report whether it passed."""
    print(f"\n{'=' * 60}")
    print(f"Running: {description}")
    print(f"Command: {' '.join(cmd)}")
    print(f"{'=' * 60}\n")

    try:
        result = subprocess.run(cmd, cwd=PROJECT_ROOT, check=False)
    except FileNotFoundError as e:
        print(f"\n✗ Error: {e}")
        print("  Install the dev extra: pip install -e '.[dev]'\n")
        return False

    passed = result.returncode == 0
    status = "passed" if passed else f"failed (exit code: {result.returncode})"
    print(f"\n{'✓' if passed else '✗'} {description} {status}\n")
    return passed


def build_checks(check_only: bool, skip_tests: bool) -> List[tuple]:
    isort_cmd = ["isort", *SOURCE_PATHS]
    black_cmd = ["black", *SOURCE_PATHS]
    if check_only:
        isort_cmd += ["--check-only", "--diff"]
        black_cmd += ["--check", "--diff"]

    checks = [
        (isort_cmd, "isort (import sorting)"),
        (black_cmd, "black (code formatting)"),
    ]
    if not skip_tests:
        checks.append((["pytest", "tests/", "-v"], "pytest (tests)"))
    return checks


def main() -> int:
    """Main entry point for linting script.

    Returns:
        Exit code: 0 if all checks passed, 1 otherwise
    """
    parser = argparse.ArgumentParser(
        description="Run linting, formatting, and testing checks",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only check formatting (don't modify files)",
    )
    parser.add_argument(
        "--skip-tests",
        action="store_true",
        help="Skip running pytest",
    )
    args = parser.parse_args()

    print("\n" + "=" * 60)
    print("RestRec Code Quality Checks")
    print("=" * 60)

    results = [
        run_command(cmd, description)
        for cmd, description in build_checks(args.check, args.skip_tests)
    ]

    print("\n" + "=" * 60)
    if all(results):
        print("✓ All checks passed!")
        print("=" * 60 + "\n")
        return 0

    print("✗ Some checks failed. Please fix the issues above.")
    print("=" * 60 + "\n")
    return 1


if __name__ == "__main__":
    sys.exit(main())
