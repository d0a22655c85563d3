from __future__ import annotations

import argparse

from promotracker.core.config import get_settings
from promotracker.core.log import setup_logging
from promotracker.db.session import SessionLocal
from promotracker.services.audit_service import write_audit_log
from promotracker.services.reevaluation_service import reevaluate, reevaluate_all, reevaluate_for_promotion


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Recompute auto-applied promotions")
    p.add_argument("--booking-id", action="append", default=[], help="limit to these bookings (repeatable)")
    p.add_argument("--promotion-id", default=None, help="limit to bookings a promotion can apply to")
    args = p.parse_args(argv)

    setup_logging(get_settings().log_level)
    db = SessionLocal()
    try:
        if args.booking_id:
            report = reevaluate(db, args.booking_id)
            target = ",".join(args.booking_id)[:64]
        elif args.promotion_id:
            report = reevaluate_for_promotion(db, args.promotion_id)
            target = args.promotion_id
        else:
            report = reevaluate_all(db)
            target = "*"

        write_audit_log(
            db,
            actor="script",
            action_type="REEVALUATE_ALL" if target == "*" else "REEVALUATE",
            target_type="promotion" if args.promotion_id and not args.booking_id else "booking",
            target_id=target,
            summary=f"Re-evaluated {len(report.processed)} booking(s)",
            diff_json={"booking_ids": args.booking_id, "promotion_id": args.promotion_id},
            report=report,
            request=None,
        )

        for d in report.diagnostics:
            print(f"diagnostic: booking={d.booking_id} promotion={d.promotion_id} {d.error}: {d.message}")
        print(f"reevaluated: {len(report.processed)} skipped: {len(report.skipped)}")
        return 0 if not report.skipped else 1
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
