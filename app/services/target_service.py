"""
app/services/target_service.py

Action targets: recovery goals on one dimension value and their progress.

Progress rules
--------------
pct change  = (baseline_gap - current_gap) / baseline_gap * 100   (None when baseline <= 0)
completed   = pct change >= target_pct, or current_gap <= target_value when set
missed      = still active after the deadline
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import lru_cache

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.gap_engine import round2
from app.services.gap_service import GapQueryService, get_gap_query_service
from db.models.action_target import ActionTarget, TargetStatus
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.target_repository import ActionTargetRepository

logger = logging.getLogger(__name__)

DEFAULT_TARGET_TYPE = "reduce_gap"
DEFAULT_TARGET_PCT = 50.0


class TargetValidationError(ValueError):
    """
    Raised when a target payload is invalid.
    """


class TargetNotFoundError(LookupError):
    """
    Raised when a target does not exist for the organization.
    """


class TargetPersistenceError(RuntimeError):
    """
    Raised when target changes cannot be persisted.
    """


# ---------------------------------------------------------------------------
# Progress evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetProgress:
    current_gap: float | None
    pct_change: float | None
    status: str


def pct_change(baseline_gap: float, current_gap: float | None) -> float | None:
    if current_gap is None or baseline_gap <= 0:
        return None
    return round2((baseline_gap - current_gap) / baseline_gap * 100)


def evaluate_progress(
    *,
    status: str,
    baseline_gap: float,
    target_pct: float,
    target_value: float | None,
    current_gap: float | None,
    deadline: date | None,
    today: date,
) -> TargetProgress:
    """
    Compute a target's progress and next status.

    Only active targets change status; a missing ``current_gap`` (no data
    yet) can still make a target miss its deadline.
    """

    change = pct_change(baseline_gap, current_gap)
    if status != TargetStatus.ACTIVE:
        return TargetProgress(current_gap=current_gap, pct_change=change, status=status)

    reached = change is not None and change >= target_pct
    if target_value is not None and current_gap is not None and current_gap <= target_value:
        reached = True

    if reached:
        next_status = TargetStatus.COMPLETED
    elif deadline is not None and today > deadline:
        next_status = TargetStatus.MISSED
    else:
        next_status = TargetStatus.ACTIVE
    return TargetProgress(current_gap=current_gap, pct_change=change, status=next_status)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ActionTargetService:
    def __init__(self, *, gap_service: GapQueryService) -> None:
        self._gap_service = gap_service

    def list_targets(self, *, db: Session, org_id: uuid.UUID, status: str | None = None) -> list[ActionTarget]:
        if status is not None and status not in TargetStatus.ALL:
            raise TargetValidationError(f"Unknown target status '{status}'.")
        statuses = [status] if status else None
        return ActionTargetRepository(db).list_for_org(org_id, statuses=statuses)

    def get_target(self, *, db: Session, org_id: uuid.UUID, target_id: uuid.UUID) -> ActionTarget:
        target = ActionTargetRepository(db).get(org_id, target_id)
        if target is None:
            raise TargetNotFoundError(f"Target not found: {target_id}")
        return target

    def create_target(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        dimension_field: str,
        dimension_value: str,
        target_type: str | None = None,
        target_pct: float | None = None,
        target_value: float | None = None,
        baseline_gap: float | None = None,
        deadline: date | None = None,
        title: str | None = None,
        notes: str | None = None,
    ) -> ActionTarget:
        """
        Create an active target. A missing baseline is the value's latest weekly gap.
        """

        field_name = (dimension_field or "").strip()
        value = (dimension_value or "").strip()
        if not field_name or not value:
            raise TargetValidationError("dimension_field and dimension_value are required.")
        pct = DEFAULT_TARGET_PCT if target_pct is None else float(target_pct)
        if pct <= 0 or pct > 100:
            raise TargetValidationError("target_pct must be greater than 0 and at most 100.")

        if baseline_gap is None:
            latest = self._gap_service.latest_cell(
                db=db,
                org_id=org_id,
                dimension_field=field_name,
                dimension_value=value,
            )
            baseline_gap = latest[1].gap if latest else 0.0

        target = ActionTarget(
            org_id=org_id,
            dimension_field=field_name,
            dimension_value=value,
            target_type=target_type or DEFAULT_TARGET_TYPE,
            target_pct=pct,
            target_value=target_value,
            baseline_gap=float(baseline_gap),
            deadline=deadline,
            title=(title or "").strip() or f"Reduce gap for {value}",
            notes=notes,
            status=TargetStatus.ACTIVE,
            current_gap=float(baseline_gap),
            current_pct_change=0.0,
        )
        try:
            ActionTargetRepository(db).add(target)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise TargetPersistenceError("Failed to create target.") from exc
        logger.info("Target created org_id=%s target_id=%s value=%r", org_id, target.id, value)
        return target

    def update_target(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        target_id: uuid.UUID,
        status: str | None = None,
        title: str | None = None,
        notes: str | None = None,
    ) -> ActionTarget:
        """
        Update status, title, or notes. Moving to ``completed`` stamps ``completed_at``.
        """

        target = self.get_target(db=db, org_id=org_id, target_id=target_id)
        if status is not None:
            if status not in TargetStatus.ALL:
                raise TargetValidationError(f"Unknown target status '{status}'.")
            target.status = status
            if status == TargetStatus.COMPLETED:
                target.completed_at = datetime.now(tz=timezone.utc)
        if title is not None:
            target.title = title
        if notes is not None:
            target.notes = notes
        self._commit(db, "Failed to update target.")
        return target

    def delete_target(self, *, db: Session, org_id: uuid.UUID, target_id: uuid.UUID) -> None:
        target = self.get_target(db=db, org_id=org_id, target_id=target_id)
        ActionTargetRepository(db).delete(target)
        self._commit(db, "Failed to delete target.")

    def refresh_target(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        target_id: uuid.UUID,
        today: date | None = None,
    ) -> ActionTarget:
        target = self.get_target(db=db, org_id=org_id, target_id=target_id)
        self._apply_progress(db=db, org_id=org_id, target=target, today=today)
        self._commit(db, "Failed to refresh target.")
        return target

    def refresh_active_targets(self, *, db: Session, org_id: uuid.UUID, today: date | None = None) -> int:
        """
        Refresh every active target of one organization; returns the number refreshed.
        """

        targets = ActionTargetRepository(db).list_active(org_id)
        for target in targets:
            self._apply_progress(db=db, org_id=org_id, target=target, today=today)
        self._commit(db, "Failed to refresh targets.")
        return len(targets)

    def refresh_all_organizations(self, *, db: Session, today: date | None = None) -> dict[str, int]:
        """
        Refresh active targets for every active organization.

        A failure for one organization is logged and does not stop the others.
        """

        refreshed: dict[str, int] = {}
        for org_id in OrganizationRepository(db).list_active_ids():
            try:
                refreshed[str(org_id)] = self.refresh_active_targets(db=db, org_id=org_id, today=today)
            except TargetPersistenceError as exc:
                logger.warning("Target refresh failed org_id=%s: %s", org_id, exc)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning("Target refresh failed org_id=%s: %s", org_id, exc)
        return refreshed

    def _apply_progress(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        target: ActionTarget,
        today: date | None,
    ) -> None:
        now = datetime.now(tz=timezone.utc)
        latest = self._gap_service.latest_cell(
            db=db,
            org_id=org_id,
            dimension_field=target.dimension_field,
            dimension_value=target.dimension_value,
        )
        current_gap = latest[1].gap if latest else target.current_gap
        progress = evaluate_progress(
            status=target.status,
            baseline_gap=target.baseline_gap,
            target_pct=target.target_pct,
            target_value=target.target_value,
            current_gap=current_gap,
            deadline=target.deadline,
            today=today or now.date(),
        )
        previous_status = target.status
        target.current_gap = progress.current_gap
        target.current_pct_change = progress.pct_change
        target.last_checked_at = now
        target.status = progress.status
        if progress.status == TargetStatus.COMPLETED and previous_status != TargetStatus.COMPLETED:
            target.completed_at = now
        if progress.status != previous_status:
            logger.info(
                "Target status changed target_id=%s %s -> %s",
                target.id,
                previous_status,
                progress.status,
            )

    @staticmethod
    def _commit(db: Session, message: str) -> None:
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise TargetPersistenceError(message) from exc


@lru_cache(maxsize=1)
def get_action_target_service() -> ActionTargetService:
    return ActionTargetService(gap_service=get_gap_query_service())
