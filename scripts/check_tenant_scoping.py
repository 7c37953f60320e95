#!/usr/bin/env python3
"""
Multi-tenancy scoping lint check.

Scans the backend package for common tenant isolation mistakes:
1. Hardcoded business id constants
2. Queries on tenant-owned tables without a business_id filter
3. Hardcoded demo tenant lookups outside the seed module

USAGE:
    python scripts/check_tenant_scoping.py

    # Detailed findings
    python scripts/check_tenant_scoping.py -v

    # CI mode: exit 1 on CRITICAL/HIGH findings
    python scripts/check_tenant_scoping.py --strict

EXIT CODES:
    0 - No issues found (or only lower-severity findings)
    1 - CRITICAL/HIGH findings in --strict mode, or bad --path
"""

import argparse
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

# ────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────

SCAN_ROOT = Path(__file__).parent.parent / "Backend" / "bookflow"

EXCLUDE_PATTERNS = [
    "__pycache__",
    ".pyc",
    "tenancy/",  # Query helpers live here and take business_id explicitly
    "test_",
]

# Lines following a match that may still belong to the same statement
CONTEXT_LINES = 6

SCOPED_RE = re.compile(
    r"\.business_id\s*==|tenant_filter\(|scoped_select\(|business_id\s*=\s*ctx\.business_id"
)

TENANT_TABLES = ["Service", "Customer", "Booking", "Availability", "PushToken"]

BAD_PATTERNS: List[Tuple[str, str, str]] = [
    # (pattern, severity, description)
    (
        r"^[A-Z_]*BUSINESS_ID\s*=\s*['\"]",
        "CRITICAL",
        "Hardcoded BUSINESS_ID constant - resolve the tenant from the request path",
    ),
    (
        r"business_id\s*=\s*['\"][0-9a-f-]{8,}['\"]",
        "WARNING",
        "Hardcoded business_id literal - pass the resolved BusinessContext instead",
    ),
    (
        r"DEMO_BUSINESS_SLUG",
        "INFO",
        "Demo tenant lookup - only expected in seed.py",
    ),
] + [
    (
        rf"select\({table}\)",
        "HIGH" if table in ("Service", "Booking") else "MEDIUM",
        f"{table} query without business_id filter - potential cross-tenant leak",
    )
    for table in TENANT_TABLES
]

IGNORE_PATTERNS = [
    r"^\s*#",  # Comments
    r"noqa:\s*tenant-scoping",  # Explicit suppression
]

ALLOWED_FILES = {
    "DEMO_BUSINESS_SLUG": {"seed.py"},
}


# ────────────────────────────────────────────────────────────────
# Data Classes
# ────────────────────────────────────────────────────────────────

@dataclass
class Finding:
    """A single tenant scoping issue."""

    file: Path
    line_num: int
    line_text: str
    severity: str
    description: str

    def __str__(self):
        return f"{self.severity}: {self.file}:{self.line_num} - {self.description}\n  > {self.line_text.strip()}"


# ────────────────────────────────────────────────────────────────
# Scanning Logic
# ────────────────────────────────────────────────────────────────

def should_exclude(path: Path) -> bool:
    path_str = path.as_posix()
    return any(excl in path_str for excl in EXCLUDE_PATTERNS)


def should_ignore_line(line: str) -> bool:
    return any(re.search(pattern, line) for pattern in IGNORE_PATTERNS)


def is_allowed(pattern: str, file_path: Path) -> bool:
    for key, files in ALLOWED_FILES.items():
        if key in pattern and file_path.name in files:
            return True
    return False


def scan_source(file_path: Path, content: str) -> List[Finding]:
    """Scan source text; file_path is only used for reporting and allow-lists."""
    findings = []
    lines = content.split("\n")

    for line_num, line in enumerate(lines, 1):
        if should_ignore_line(line):
            continue

        for pattern, severity, description in BAD_PATTERNS:
            if not re.search(pattern, line):
                continue
            if is_allowed(pattern, file_path):
                continue
            if pattern.startswith("select"):
                window = "\n".join(lines[line_num - 1:line_num - 1 + CONTEXT_LINES])
                if SCOPED_RE.search(window):
                    continue
            findings.append(Finding(
                file=file_path,
                line_num=line_num,
                line_text=line,
                severity=severity,
                description=description,
            ))

    return findings


def scan_file(file_path: Path) -> List[Finding]:
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Warning: Could not read {file_path}: {e}", file=sys.stderr)
        return []
    return scan_source(file_path, content)


def scan_directory(root: Path) -> List[Finding]:
    all_findings = []
    for path in sorted(root.rglob("*.py")):
        if should_exclude(path):
            continue
        all_findings.extend(scan_file(path))
    return all_findings


# ────────────────────────────────────────────────────────────────
# Reporting
# ────────────────────────────────────────────────────────────────

SEVERITY_ORDER = ["CRITICAL", "HIGH", "MEDIUM", "WARNING", "INFO"]


def print_report(findings: List[Finding], verbose: bool = False):
    if not findings:
        print("No tenant scoping issues found.")
        return

    by_severity = {}
    for f in findings:
        by_severity.setdefault(f.severity, []).append(f)

    print("\n" + "=" * 60)
    print("MULTI-TENANCY SCOPING CHECK REPORT")
    print("=" * 60)

    print("\nSUMMARY:")
    for sev in SEVERITY_ORDER:
        count = len(by_severity.get(sev, []))
        if count > 0:
            print(f"  {sev}: {count}")

    print(f"\nTOTAL: {len(findings)} issues")

    if verbose:
        print("\n" + "-" * 60)
        print("DETAILS:")
        print("-" * 60)
        for sev in SEVERITY_ORDER:
            for f in by_severity.get(sev, []):
                print(f"  {f}")
    else:
        print("\nRun with -v for detailed findings.")


# ────────────────────────────────────────────────────────────────
# Main
# ────────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Check the backend for multi-tenancy scoping issues"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed findings")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with code 1 if CRITICAL or HIGH issues are found (for CI)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=SCAN_ROOT,
        help=f"Path to scan (default: {SCAN_ROOT})",
    )
    args = parser.parse_args(argv)

    if not args.path.exists():
        print(f"Error: Path {args.path} does not exist", file=sys.stderr)
        return 1

    print(f"Scanning {args.path}...")
    findings = scan_directory(args.path)
    print_report(findings, verbose=args.verbose)

    if args.strict:
        critical_count = sum(1 for f in findings if f.severity in ("CRITICAL", "HIGH"))
        if critical_count > 0:
            print(f"\n{critical_count} critical/high issues found. Failing.")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
