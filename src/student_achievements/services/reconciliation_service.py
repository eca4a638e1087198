"""Repair divergence between reference status and detail soft-delete flags."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..errors import AchievementError
from ..models import AchievementStatus
from ..repositories import DetailStore, ReferenceStore
from ..utils.datetime import utcnow

logger = logging.getLogger(__name__)


def reconcile_stores(
    references: ReferenceStore,
    details: DetailStore,
    *,
    current_time: datetime | None = None,
    orphan_grace: timedelta = timedelta(minutes=10),
) -> dict[str, int]:
    """Bring each detail's ``deleted`` flag in line with its reference status.

    Detail documents that no reference points at and that are older than
    ``orphan_grace`` are leftovers of a create whose cleanup failed; they are
    soft-deleted. Younger ones may belong to a create still in flight.

    Returns summary statistics useful for logging/testing.
    """

    now = current_time or utcnow()
    summary = {
        "references_scanned": 0,
        "marked_deleted": 0,
        "unmarked_deleted": 0,
        "orphans_flagged": 0,
        "repair_failures": 0,
    }

    rows = references.detail_refs_by_status()
    flags = details.deletion_flags()
    referenced = set()

    for reference_id, detail_ref, status in rows:
        summary["references_scanned"] += 1
        referenced.add(detail_ref)
        if detail_ref not in flags:
            logger.warning("achievement %s points at missing detail %s", reference_id, detail_ref)
            continue

        should_be_deleted = status is AchievementStatus.DELETED
        if flags[detail_ref] == should_be_deleted:
            continue
        try:
            if should_be_deleted:
                details.mark_deleted(detail_ref, now=now)
                summary["marked_deleted"] += 1
            else:
                details.unmark_deleted(detail_ref)
                summary["unmarked_deleted"] += 1
        except AchievementError:
            summary["repair_failures"] += 1
            logger.exception("could not repair detail %s of achievement %s", detail_ref, reference_id)
            continue
        logger.warning(
            "repaired detail %s of achievement %s to deleted=%s", detail_ref, reference_id, should_be_deleted
        )

    for detail_ref, is_deleted in details.deletion_flags(created_before=now - orphan_grace).items():
        if detail_ref in referenced or is_deleted:
            continue
        try:
            details.mark_deleted(detail_ref, now=now)
        except AchievementError:
            summary["repair_failures"] += 1
            logger.exception("could not flag orphaned detail %s", detail_ref)
            continue
        summary["orphans_flagged"] += 1
        logger.warning("flagged orphaned detail %s", detail_ref)

    return summary
