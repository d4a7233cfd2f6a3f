#!/usr/bin/env python3
"""
provision.py: Provision the tier ledger and the sale registry.

Reads a JSON file with one entry per contract and initializes each one
unless the same (label, parameters) pair was provisioned before. Re-running
with an unchanged file is a no-op; changing the parameters of an existing
label is refused.

Usage:
    python scripts/provision.py <params.json> [--admin ADDRESS] [--generate-schemas]

Example params.json:
    {
      "tier-ledger-v1": {
        "kind": "tier_ledger",
        "params": {"thresholds": [1000, 500, 200, 100], "lock_periods": [30, 40, 50, 60],
                   "validator": "secretvaloper1..."}
      },
      "sale-registry-v1": {
        "kind": "sale_registry",
        "params": {"max_payments": [10000, 5000, 3000, 2000, 1000],
                   "lock_periods": [0, 0, 0, 0, 0]}
      }
    }

Environment variables (from .env):
    DATABASE_URL      Tortoise connection string
    ADMIN_ADDRESS     default admin/caller address when --admin is omitted
"""

import argparse
import asyncio
import json
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from tortoise import Tortoise, connections

# ── Paths ──────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent

# ── Colors ─────────────────────────────────────────────────────
RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
CYAN = "\033[0;36m"
NC = "\033[0m"


def log(msg: str) -> None:
    print(f"{CYAN}[provision]{NC} {msg}")


def ok(msg: str) -> None:
    print(f"{GREEN}[  ok  ]{NC} {msg}")


def warn(msg: str) -> None:
    print(f"{YELLOW}[ warn ]{NC} {msg}")


def err(msg: str) -> None:
    print(f"{RED}[error ]{NC} {msg}", file=sys.stderr)


def load_env() -> None:
    """Load .env from project root or backend."""
    for env_path in (PROJECT_ROOT / ".env", PROJECT_ROOT / "backend" / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            return
    warn("No .env file found, using process environment only")


def load_params(path: Path) -> dict:
    try:
        entries = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        err(f"Cannot read {path}: {e}")
        sys.exit(1)
    if not isinstance(entries, dict) or not entries:
        err(f"{path} must map labels to {{kind, params}} objects")
        sys.exit(1)
    return entries


async def provision_all(entries: dict, admin: str, generate_schemas: bool) -> int:
    # Settings are read at import time, so import after load_env()
    from launchpad.core.config import settings
    from launchpad.core.context import CallContext
    from launchpad.core.exceptions import LaunchpadError
    from launchpad.services.provisioning import provisioner

    await Tortoise.init(config=settings.tortoise_config)
    if generate_schemas:
        await Tortoise.generate_schemas(safe=True)
        log("Schemas generated")

    failures = 0
    ctx = CallContext.build(admin, int(time.time()))
    try:
        for label, entry in entries.items():
            log(f"{label}: {YELLOW}{entry.get('kind')}{NC}")
            try:
                deployment, created = await provisioner.provision(
                    ctx, label, entry["kind"], entry.get("params", {})
                )
            except (LaunchpadError, KeyError, ValueError) as e:
                err(f"{label}: {e}")
                failures += 1
                continue
            if created:
                ok(f"{label} provisioned ({deployment.content_hash[:12]})")
            else:
                ok(f"{label} already provisioned, skipped")
    finally:
        await connections.close_all()
    return failures


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision ledger configurations")
    parser.add_argument("params", type=Path, help="JSON file with labelled parameters")
    parser.add_argument("--admin", help="Admin address (default: ADMIN_ADDRESS)")
    parser.add_argument(
        "--generate-schemas", action="store_true", help="Create missing tables first"
    )
    args = parser.parse_args()

    load_env()

    admin = args.admin or os.environ.get("ADMIN_ADDRESS", "")
    if not admin:
        err("No admin address: pass --admin or set ADMIN_ADDRESS")
        sys.exit(1)

    entries = load_params(args.params)
    log(f"Admin:   {admin}")
    log(f"Entries: {', '.join(entries)}")

    failures = asyncio.run(provision_all(entries, admin, args.generate_schemas))
    if failures:
        err(f"{failures} entries failed")
        sys.exit(1)
    ok("Provisioning complete")


if __name__ == "__main__":
    main()
