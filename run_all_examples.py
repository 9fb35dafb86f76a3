#!/usr/bin/env python3
"""
Run every script in examples/ and report which ones fail.

Examples are not part of the test suite: one of them needs a live database,
and they check "does this still run" rather than exact results.

Usage:
    python run_all_examples.py [--verbose] [--skip-db]

Options:
    --verbose    Show the output of passing examples too
    --skip-db    Skip examples that need a live Postgres server
"""

import subprocess
import sys
from pathlib import Path
from typing import List, Tuple

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BOLD = "\033[1m"
RESET = "\033[0m"

# Examples that need PGINTROSPECT_DSN (or PG* variables) pointing at a server
DATABASE_EXAMPLES = {"extract_schema.py"}

TIMEOUT_SECONDS = 60


class ExampleRunner:
    """Runs example scripts in subprocesses and collects the results."""

    def __init__(self, verbose: bool = False, skip_db: bool = False):
        self.verbose = verbose
        self.skip_db = skip_db
        self.examples_dir = Path(__file__).parent / "examples"
        self.results: List[Tuple[str, bool]] = []

    def get_examples(self) -> List[Path]:
        examples = sorted(self.examples_dir.glob("*.py"))
        if self.skip_db:
            examples = [path for path in examples if path.name not in DATABASE_EXAMPLES]
        return examples

    def run_example(self, example_path: Path) -> Tuple[bool, str]:
        """Returns (passed, combined stdout and stderr)"""
        try:
            result = subprocess.run(
                [sys.executable, str(example_path)],
                capture_output=True,
                text=True,
                timeout=TIMEOUT_SECONDS,
                cwd=self.examples_dir.parent,
            )
        except subprocess.TimeoutExpired:
            return False, f"ERROR: Timeout after {TIMEOUT_SECONDS} seconds"
        return result.returncode == 0, result.stdout + result.stderr

    def run_all(self) -> bool:
        examples = self.get_examples()
        if not examples:
            print(f"{YELLOW}No examples found in {self.examples_dir}{RESET}")
            return False

        print(f"{BOLD}Running {len(examples)} pgintrospect example(s){RESET}")
        if self.skip_db:
            print(f"{YELLOW}Skipping: {', '.join(sorted(DATABASE_EXAMPLES))}{RESET}")

        for idx, example_path in enumerate(examples, 1):
            print(f"[{idx}/{len(examples)}] {example_path.name}...", end=" ", flush=True)
            passed, output = self.run_example(example_path)
            self.results.append((example_path.name, passed))
            print(f"{GREEN}PASS{RESET}" if passed else f"{RED}FAIL{RESET}")
            if self.verbose or not passed:
                print("-" * 80)
                print(output)
                print("-" * 80)

        failed = [name for name, passed in self.results if not passed]
        print()
        print(f"{GREEN}Passed: {len(self.results) - len(failed)}{RESET}  {RED}Failed: {len(failed)}{RESET}")
        for name in failed:
            print(f"  {RED}x{RESET} {name}")
        return not failed


def main():
    verbose = "--verbose" in sys.argv or "-v" in sys.argv
    skip_db = "--skip-db" in sys.argv

    runner = ExampleRunner(verbose=verbose, skip_db=skip_db)
    sys.exit(0 if runner.run_all() else 1)


if __name__ == "__main__":
    main()
