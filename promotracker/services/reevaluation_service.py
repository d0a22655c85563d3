"""Cascading re-evaluation.

Every run rebuilds the usage ledger from nothing: it walks the whole
chronological timeline from the first booking up to the last booking of the
batch, matching each one against one shared ledger, and only writes results
for the batch members. Earlier bookings are replayed purely to seed the
ledger. Runs are serialized by a process-wide lock and commit once.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from promotracker.core.config import get_settings
from promotracker.engine.errors import NotFoundError, PromotionEngineError
from promotracker.engine.ledger import UsageLedger
from promotracker.engine.matching import get_constrained_promotions, match_booking
from promotracker.engine.types import BookingSnapshot, PromotionDiagnostic
from promotracker.models.booking import Booking
from promotracker.models.booking_promotion import BookingPromotion
from promotracker.models.promotion import Promotion
from promotracker.services.booking_store import (
    SortKey,
    linked_booking_filter,
    load_active_promotions,
    load_booking,
    load_bookings_after,
    load_snapshot,
    load_sort_keys,
    load_timeline,
    load_valuations,
    replace_auto_applied,
)

logger = logging.getLogger("promotracker.reevaluation")

# Overlapping runs would each rebuild the ledger from a different snapshot
_run_lock = threading.RLock()


@dataclass
class ReevaluationReport:
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    diagnostics: list[PromotionDiagnostic] = field(default_factory=list)


def _run(db: Session, booking_ids: Iterable[str]) -> ReevaluationReport:
    report = ReevaluationReport()
    wanted = set(booking_ids)
    if not wanted:
        return report

    with _run_lock:
        try:
            keys = load_sort_keys(db, wanted)
            for missing in sorted(wanted - keys.keys()):
                logger.warning("Booking %s no longer exists; skipping", missing)
                report.skipped.append(missing)

            batch = set(keys)
            if batch:
                promotions = load_active_promotions(db, report.diagnostics)
                valuations = load_valuations(db)
                eqn_value = get_settings().default_eqn_value
                ledger = UsageLedger()

                # Later bookings cannot influence the batch, so the replay stops at its last member
                for snapshot in load_timeline(db, until_key=max(keys.values())):
                    diagnostics: list[PromotionDiagnostic] = []
                    try:
                        matched = match_booking(
                            snapshot, promotions, ledger, valuations, diagnostics, default_eqn_value=eqn_value
                        )
                    except (PromotionEngineError, ArithmeticError) as exc:
                        logger.error("Booking %s could not be matched: %s", snapshot.id, exc)
                        if snapshot.id in batch:
                            report.skipped.append(snapshot.id)
                        continue
                    if snapshot.id in batch:
                        replace_auto_applied(db, snapshot.id, matched)
                        report.processed.append(snapshot.id)
                        report.diagnostics.extend(diagnostics)

            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Re-evaluation of %d booking(s) failed; rolled back", len(wanted))
            raise

    logger.info(
        "Re-evaluated %d booking(s), skipped %d, %d diagnostic(s)",
        len(report.processed),
        len(report.skipped),
        len(report.diagnostics),
    )
    return report


def get_applied_promotions(db: Session, booking_id: str, *, auto_only: bool = False) -> list[BookingPromotion]:
    q = (
        select(BookingPromotion)
        .where(BookingPromotion.booking_id == booking_id)
        .options(selectinload(BookingPromotion.benefit_applications))
        .order_by(BookingPromotion.created_at, BookingPromotion.id)
    )
    if auto_only:
        q = q.where(BookingPromotion.auto_applied.is_(True))
    return list(db.execute(q).scalars().all())


def match_for_booking(db: Session, booking_id: str) -> list[BookingPromotion]:
    """Evaluate one booking against everything before it and persist the result."""
    load_booking(db, booking_id)
    _run(db, [booking_id])
    return get_applied_promotions(db, booking_id, auto_only=True)


def reevaluate(db: Session, booking_ids: Iterable[str]) -> ReevaluationReport:
    return _run(db, booking_ids)


def reevaluate_after(db: Session, key: SortKey) -> ReevaluationReport:
    """Re-run every booking later than ``key``; used after a deletion."""
    return _run(db, load_bookings_after(db, key))


def history_dependent_promotion_ids(db: Session, snapshots: Iterable[BookingSnapshot]) -> set[str]:
    """Active promotions linked to any of ``snapshots`` whose outcome depends on earlier stays.

    A booking moves the counters of these even when it earns no row of its
    own, through prerequisite activity or a tier ordinal no tier covers.
    """
    snapshots = list(snapshots)
    return {
        p.id
        for p in get_constrained_promotions(load_active_promotions(db))
        if any(p.link_matches(s) for s in snapshots)
    }


def reevaluate_subsequent(
    db: Session,
    booking_id: str,
    touched_promotion_ids: Iterable[str] | None = None,
    previous: BookingSnapshot | None = None,
) -> ReevaluationReport:
    """Re-run the bookings after ``booking_id``.

    ``touched_promotion_ids`` narrows the set to bookings holding or linked to
    one of them; history-dependent promotions linked to the booking are always
    added. ``previous`` is the booking as it stood before an edit; when it
    sorted earlier, the cascade starts there instead.
    """
    current = load_snapshot(db, booking_id)
    snapshots = [current] if previous is None else [current, previous]
    key = min(s.sort_key for s in snapshots)
    ids = None
    if touched_promotion_ids is not None:
        ids = set(touched_promotion_ids) | history_dependent_promotion_ids(db, snapshots)
    later = [bid for bid in load_bookings_after(db, key, ids) if bid != booking_id]
    return _run(db, later)


def reevaluate_all(db: Session) -> ReevaluationReport:
    ids = db.execute(select(Booking.id)).scalars().all()
    return _run(db, ids)


def reevaluate_for_promotion(db: Session, promotion_id: str) -> ReevaluationReport:
    """Re-run bookings a promotion could apply to, or already applies to."""
    if db.get(Promotion, promotion_id) is None:
        raise NotFoundError("promotion", promotion_id)

    holders = select(BookingPromotion.booking_id).where(BookingPromotion.promotion_id == promotion_id)
    cond = or_(Booking.id.in_(holders), *linked_booking_filter(db, [promotion_id]))
    ids = db.execute(select(Booking.id).where(cond)).scalars().all()
    return _run(db, ids)
