#!/usr/bin/env python3
"""
Reconcile stock on hand against the inventory ledger.

Prints one line per sweet and exits non-zero if any quantity disagrees with
restocked - reserved - purchased. Run it after a concurrency probe:

    DATABASE_URL=sqlite:///./sweetshop.db python tools/db_check.py
"""
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sweetshop.db import SessionLocal  # noqa: E402
from sweetshop.services.ledger_service import LedgerService  # noqa: E402


def main() -> int:
    with SessionLocal() as db:
        report = LedgerService(db).reconcile()
    bad = 0
    print("=== Stock vs ledger ===")
    for row in report:
        flag = "ok" if row["consistent"] else "MISMATCH"
        if not row["consistent"]:
            bad += 1
        print(
            f"{row['product_id']:>5} {row['name'][:32]:<32} on_hand={row['quantity']:>6} "
            f"ledger={row['ledger_quantity']:>6} {flag}"
        )
    print(f"\n{len(report)} sweets checked, {bad} mismatched")
    return 1 if bad else 0


if __name__ == "__main__":
    sys.exit(main())
