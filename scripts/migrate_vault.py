#!/usr/bin/env python3
"""Vault migration data rebuild.

Reads UserDepositMigrated events from the old vault and imports them into
the new vault in batches of 25 users.

Usage:
    python scripts/migrate_vault.py <old_vault> <new_vault> <private_key> <rpc_url>

Options:
    --dry-run        Estimate gas only, send nothing
    --skip-migrated  Skip users the new vault already marks as migrated
    --batch-size N   Users per import transaction
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vault_migrator.cli import migrate_main

if __name__ == "__main__":
    sys.exit(migrate_main())
