"""
Refresh action target progress from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import uuid
from datetime import date

from app.services.target_service import get_action_target_service
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Recompute progress for active action targets.")
    parser.add_argument(
        "--org-id",
        dest="org_id",
        default=None,
        help="Optional organization id. All active organizations when omitted.",
    )
    parser.add_argument(
        "--today",
        dest="today",
        default=None,
        help="Evaluation date (YYYY-MM-DD) used for deadline checks.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    today = date.fromisoformat(args.today) if args.today else None

    service = get_action_target_service()
    with SessionLocal() as db:
        if args.org_id:
            org_id = uuid.UUID(args.org_id)
            payload = {str(org_id): service.refresh_active_targets(db=db, org_id=org_id, today=today)}
        else:
            payload = service.refresh_all_organizations(db=db, today=today)

    print(json.dumps({"refreshed": payload}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
