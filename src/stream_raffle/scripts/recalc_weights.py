"""Recompute every user's cached weight from the current settings.

Run after changing weight constants, or with ``--check`` to list users whose
stored weights no longer match the formula without writing anything.
"""
from __future__ import annotations

import argparse
import logging
import sys

from stream_raffle.core.logging import configure_logging
from stream_raffle.db.session import SessionLocal
from stream_raffle.services.recalc import find_weight_drift, recalculate_all_weights

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate raffle weights for all users")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Users per committed batch (defaults to RECALC_BATCH_SIZE)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report users whose stored weights have drifted.",
    )
    args = parser.parse_args(argv)

    configure_logging()
    db = SessionLocal()
    try:
        if args.check:
            drifted = find_weight_drift(db)
            for drift in drifted:
                print(
                    f"[recalc] user {drift.user_id}: total {drift.stored_total} -> "
                    f"{drift.expected_total}, current {drift.stored_current} -> {drift.expected_current}"
                )
            print(f"[recalc] {len(drifted)} user(s) drifted")
            return 1 if drifted else 0

        result = recalculate_all_weights(db, batch_size=args.batch_size)
        if not result.ok:
            print(f"[recalc] ERROR: {result.message}", file=sys.stderr)
            return 1
        print(f"[recalc] updated {result.value} user(s)")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
