"""
app/api/routers/target_router.py

Action target endpoints.
"""

from __future__ import annotations

import uuid
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_organization
from app.schemas.targets import (
    TargetCreateRequest,
    TargetRefreshResponse,
    TargetResponse,
    TargetUpdateRequest,
)
from app.services.target_service import (
    ActionTargetService,
    TargetNotFoundError,
    TargetPersistenceError,
    TargetValidationError,
    get_action_target_service,
)
from db.models.organization import Organization
from db.session import get_db

router = APIRouter(prefix="/targets", tags=["targets"])


def _raise_for(exc: Exception) -> NoReturn:
    if isinstance(exc, TargetValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, TargetNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unable to persist target.",
    ) from exc


_HANDLED = (TargetValidationError, TargetNotFoundError, TargetPersistenceError)


@router.get("", response_model=list[TargetResponse])
def list_targets(
    target_status: str | None = Query(default=None, alias="status"),
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    target_service: ActionTargetService = Depends(get_action_target_service),
) -> list[TargetResponse]:
    try:
        targets = target_service.list_targets(db=db, org_id=organization.id, status=target_status)
    except _HANDLED as exc:
        _raise_for(exc)
    return [TargetResponse.model_validate(target) for target in targets]


@router.post("", response_model=TargetResponse, status_code=status.HTTP_201_CREATED)
def create_target(
    body: TargetCreateRequest,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    target_service: ActionTargetService = Depends(get_action_target_service),
) -> TargetResponse:
    """
    Create a recovery target. Without ``baselineGap`` the latest weekly gap is used.
    """

    try:
        target = target_service.create_target(
            db=db,
            org_id=organization.id,
            **body.model_dump(),
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return TargetResponse.model_validate(target)


@router.patch("/{target_id}", response_model=TargetResponse)
def update_target(
    target_id: uuid.UUID,
    body: TargetUpdateRequest,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    target_service: ActionTargetService = Depends(get_action_target_service),
) -> TargetResponse:
    try:
        target = target_service.update_target(
            db=db,
            org_id=organization.id,
            target_id=target_id,
            **body.model_dump(exclude_unset=True),
        )
    except _HANDLED as exc:
        _raise_for(exc)
    return TargetResponse.model_validate(target)


@router.delete("/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_target(
    target_id: uuid.UUID,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    target_service: ActionTargetService = Depends(get_action_target_service),
) -> Response:
    try:
        target_service.delete_target(db=db, org_id=organization.id, target_id=target_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{target_id}/refresh", response_model=TargetResponse)
def refresh_target(
    target_id: uuid.UUID,
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    target_service: ActionTargetService = Depends(get_action_target_service),
) -> TargetResponse:
    try:
        target = target_service.refresh_target(db=db, org_id=organization.id, target_id=target_id)
    except _HANDLED as exc:
        _raise_for(exc)
    return TargetResponse.model_validate(target)


@router.post("/refresh", response_model=TargetRefreshResponse)
def refresh_active_targets(
    organization: Organization = Depends(get_current_organization),
    db: Session = Depends(get_db),
    target_service: ActionTargetService = Depends(get_action_target_service),
) -> TargetRefreshResponse:
    """
    Recompute progress for every active target of the organization.
    """

    try:
        refreshed = target_service.refresh_active_targets(db=db, org_id=organization.id)
    except _HANDLED as exc:
        _raise_for(exc)
    return TargetRefreshResponse(refreshed=refreshed)
