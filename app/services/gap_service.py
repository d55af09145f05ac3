"""
app/services/gap_service.py

Loads a tenant's normalized rows and runs the gap engine over them.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Sequence

from sqlalchemy.orm import Session

from app.config import get_gap_settings
from app.domain.gaps import GapCell, GapMatrixResult, WeeklyLeakage, week_start
from app.services.gap_engine import GapEngine, GapQuery
from db.repositories.upload_repository import UploadRepository

logger = logging.getLogger(__name__)


class GapQueryService:
    def __init__(
        self,
        *,
        default_lookback_weeks: int,
        leakage_top_n: int,
        engine: GapEngine | None = None,
    ) -> None:
        self._default_lookback_weeks = max(1, default_lookback_weeks)
        self._leakage_top_n = max(1, leakage_top_n)
        self._engine = engine or GapEngine()

    def resolve_range(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        start: date | None,
        end: date | None,
    ) -> tuple[date | None, date | None]:
        """
        Fill a missing start with the default look-back window.

        The window ends at ``end`` or, when absent, at the latest week that
        has data, so historical uploads stay visible.
        """

        if start is not None:
            return start, end
        anchor = end or UploadRepository(db).latest_metric_date(org_id)
        if anchor is None:
            return None, end
        first_week = week_start(anchor) - timedelta(weeks=self._default_lookback_weeks - 1)
        return first_week, end

    def matrix(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        start: date | None = None,
        end: date | None = None,
        dimension_fields: Sequence[str] | None = None,
    ) -> GapMatrixResult:
        if start is not None and end is not None and start > end:
            raise ValueError("start must not be after end.")
        start, end = self.resolve_range(db=db, org_id=org_id, start=start, end=end)
        points = UploadRepository(db).fetch_metric_points(
            org_id,
            start=start,
            end=end,
            dimension_fields=dimension_fields,
        )
        query = GapQuery(dimension_fields=set(dimension_fields or ()), start=start, end=end)
        result = self._engine.compute(points, query)
        logger.info(
            "Gap matrix served org_id=%s points=%d entities=%d weeks=%d",
            org_id,
            len(points),
            result.summary.entity_count,
            result.summary.week_count,
        )
        return result

    def weekly(self, *, db: Session, org_id: uuid.UUID) -> WeeklyLeakage:
        """
        Leakage for the most recent week with data (current week when there is none).
        """

        points = UploadRepository(db).fetch_metric_points(org_id)
        leakage = self._engine.weekly_leakage(points, top_n=self._leakage_top_n)
        if leakage is None:
            today = datetime.now(tz=timezone.utc).date()
            return WeeklyLeakage(week_start=week_start(today), total_leakage=0.0)
        return leakage

    def latest_cell(
        self,
        *,
        db: Session,
        org_id: uuid.UUID,
        dimension_field: str,
        dimension_value: str,
    ) -> tuple[date, GapCell] | None:
        """
        Return the most recent week's cell for one dimension value.
        """

        points = UploadRepository(db).fetch_metric_points(
            org_id,
            dimension_fields=[dimension_field],
            dimension_value=dimension_value,
        )
        result = self._engine.compute(points)
        cells = result.matrix.get(dimension_field, {}).get(dimension_value)
        if not cells:
            return None
        latest_week = max(cells)
        return latest_week, cells[latest_week]


@lru_cache(maxsize=1)
def get_gap_query_service() -> GapQueryService:
    settings = get_gap_settings()
    return GapQueryService(
        default_lookback_weeks=settings.default_lookback_weeks,
        leakage_top_n=settings.leakage_top_n,
    )
