"""
Action target repository.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.action_target import ActionTarget, TargetStatus


class ActionTargetRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, target: ActionTarget) -> ActionTarget:
        self._session.add(target)
        self._session.flush()
        return target

    def get(self, org_id: uuid.UUID, target_id: uuid.UUID) -> ActionTarget | None:
        stmt = select(ActionTarget).where(ActionTarget.id == target_id, ActionTarget.org_id == org_id)
        return self._session.scalars(stmt).first()

    def list_for_org(
        self,
        org_id: uuid.UUID,
        *,
        statuses: Sequence[str] | None = None,
    ) -> list[ActionTarget]:
        stmt = select(ActionTarget).where(ActionTarget.org_id == org_id)
        if statuses:
            stmt = stmt.where(ActionTarget.status.in_(list(statuses)))
        stmt = stmt.order_by(ActionTarget.created_at.desc())
        return list(self._session.scalars(stmt).all())

    def list_active(self, org_id: uuid.UUID) -> list[ActionTarget]:
        return self.list_for_org(org_id, statuses=[TargetStatus.ACTIVE])

    def delete(self, target: ActionTarget) -> None:
        self._session.delete(target)
