"""
Housekeeping script for Recipeshare.

Deletes refresh-token ledger rows whose expiry has passed. Expired rows are
already rejected on use; this only keeps the table from growing. Safe to run
from cron in any environment.
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys


# Allow `import recipeshare.*` from backend/
REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


from recipeshare.core.config import settings  # noqa: E402
from recipeshare.core.database import SessionLocal  # noqa: E402
from recipeshare.core.logging_config import configure_logging  # noqa: E402
from recipeshare.services.tokens import purge_expired_refresh_tokens  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Delete expired refresh tokens.")
    parser.parse_args()

    configure_logging(settings)

    with SessionLocal() as db:
        deleted = purge_expired_refresh_tokens(db)

    print(f"Done. Purged {deleted} expired refresh token(s) (env={settings.ENV}).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
