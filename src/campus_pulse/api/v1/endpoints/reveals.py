# src/campus_pulse/api/v1/endpoints/reveals.py
"""Endpoints listing resolved mutual reveals."""

from fastapi import APIRouter

from campus_pulse.api.v1.dependencies import (
    CurrentUserIdDep,
    NotifierDep,
    PairLockDep,
    ProfileDirectoryDep,
    SessionDep,
)
from campus_pulse.schemas.reveal import RevealMatchView
from campus_pulse.schemas.user import UserProfile
from campus_pulse.services.reveal import RevealCoordinator

router = APIRouter(prefix="/reveals", tags=["reveals"])


@router.get("/matches", response_model=list[RevealMatchView])
def list_matches(
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    profiles: ProfileDirectoryDep,
    notifier: NotifierDep,
    pair_locks: PairLockDep,
) -> list[RevealMatchView]:
    """List everyone the caller has mutually revealed with, newest first."""
    coordinator = RevealCoordinator(
        db, profiles=profiles, notifier=notifier, pair_locks=pair_locks
    )
    return [
        RevealMatchView(
            counterpart=summary.counterpart_profile or UserProfile(id=summary.counterpart_id),
            matched_at=summary.matched_at,
            post_id=summary.post_id,
        )
        for summary in coordinator.list_matches(current_user_id)
    ]
