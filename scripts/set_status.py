#!/usr/bin/env python3
"""
set_status.py: Stop or resume the tier ledger or the sale registry.

Calls the admin status endpoint of a running API. The request is sent on
behalf of the admin address; the gateway in front of the API must accept it.

Usage:
    python scripts/set_status.py <tier|ido> <active|stopped> [--api URL] [--admin ADDRESS]

Examples:
    python scripts/set_status.py ido stopped
    python scripts/set_status.py tier active --api https://launchpad.example.com
"""

import argparse
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

# ── Paths ──────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent

DEFAULT_API = "http://localhost:8000/api/v1"

# ── Colors ─────────────────────────────────────────────────────
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
RED = "\033[0;31m"
CYAN = "\033[0;36m"
NC = "\033[0m"


def log(msg: str) -> None:
    print(f"{CYAN}[set_status]{NC} {msg}")


def ok(msg: str) -> None:
    print(f"{GREEN}[  ok  ]{NC} {msg}")


def err(msg: str) -> None:
    print(f"{RED}[error ]{NC} {msg}", file=sys.stderr)


def load_env() -> None:
    """Load .env from project root or backend."""
    for env_path in (PROJECT_ROOT / ".env", PROJECT_ROOT / "backend" / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            return


def main() -> None:
    parser = argparse.ArgumentParser(description="Change a contract's status")
    parser.add_argument("contract", choices=["tier", "ido"], help="Which contract")
    parser.add_argument("status", choices=["active", "stopped"], help="New status")
    parser.add_argument("--api", help=f"API base URL (default: LAUNCHPAD_API or {DEFAULT_API})")
    parser.add_argument("--admin", help="Admin address (default: ADMIN_ADDRESS)")
    args = parser.parse_args()

    load_env()

    api = (args.api or os.environ.get("LAUNCHPAD_API", DEFAULT_API)).rstrip("/")
    admin = args.admin or os.environ.get("ADMIN_ADDRESS", "")
    if not admin:
        err("ADMIN_ADDRESS not set in .env and --admin not given")
        sys.exit(1)

    log(f"API:      {YELLOW}{api}{NC}")
    log(f"Contract: {args.contract}")
    log(f"Admin:    {admin}")
    log(f"Status:   {YELLOW}{args.status}{NC}")

    try:
        resp = httpx.post(
            f"{api}/{args.contract}/status",
            json={"status": args.status},
            headers={"X-Sender": admin},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        err(f"Request failed: {e}")
        sys.exit(1)

    if resp.status_code != 200:
        err(f"{resp.status_code}: {resp.text}")
        sys.exit(1)

    ok(f"{args.contract} status is now {YELLOW}{resp.json()['status']}{NC}")


if __name__ == "__main__":
    main()
