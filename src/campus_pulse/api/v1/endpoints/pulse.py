# src/campus_pulse/api/v1/endpoints/pulse.py
"""Pulse feed endpoints: posts, reactions and reveals."""

from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from campus_pulse.api.v1.dependencies import (
    CurrentUserIdDep,
    NotifierDep,
    PairLockDep,
    ProfileDirectoryDep,
    SessionDep,
)
from campus_pulse.models.post import PostCategory
from campus_pulse.schemas.post import FeedPage, PostCreate, PostView
from campus_pulse.schemas.reaction import ReactionResult, ReactionToggle
from campus_pulse.schemas.reveal import RevealResult
from campus_pulse.services import post_service
from campus_pulse.services.feed import FeedAssembler
from campus_pulse.services.reactions import toggle_reaction
from campus_pulse.services.reveal import RevealCoordinator, RevealOutcome

router = APIRouter(prefix="/pulse", tags=["pulse"])


def _to_reveal_result(outcome: RevealOutcome) -> RevealResult:
    return RevealResult(
        requested=outcome.requested,
        mutual=outcome.mutual,
        reveal_count=outcome.reveal_count,
        requester_profile=outcome.requester_profile,
        author_profile=outcome.author_profile,
    )


@router.post("/", response_model=PostView, status_code=status.HTTP_201_CREATED)
def create_post(
    post_data: PostCreate,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    profiles: ProfileDirectoryDep,
) -> PostView:
    """Publish a pulse that expires after the configured lifetime."""
    post = post_service.create_post(
        db,
        author_id=current_user_id,
        content=post_data.content,
        category=post_data.category,
        is_anonymous=post_data.is_anonymous,
    )
    return FeedAssembler(db, profiles=profiles).build_views([post], current_user_id)[0]


@router.get("/", response_model=FeedPage)
def list_feed(
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    profiles: ProfileDirectoryDep,
    category: PostCategory | None = None,
    cursor: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> FeedPage:
    """List live posts, newest first."""
    return FeedAssembler(db, profiles=profiles).list_feed(
        current_user_id,
        category=category,
        cursor=cursor,
        limit=limit,
    )


@router.get("/{post_id}", response_model=PostView)
def get_post(
    post_id: str,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    profiles: ProfileDirectoryDep,
) -> PostView:
    """Return a single live post."""
    return FeedAssembler(db, profiles=profiles).get_post_view(post_id, current_user_id)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: str,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> Response:
    """Delete one of the caller's own posts."""
    post_service.delete_post(db, post_id=post_id, requester_id=current_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/react", response_model=ReactionResult)
def react_to_post(
    post_id: str,
    reaction: ReactionToggle,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    notifier: NotifierDep,
) -> ReactionResult:
    """Toggle the caller's reaction on a post."""
    outcome = toggle_reaction(
        db,
        post_id=post_id,
        viewer_id=current_user_id,
        reaction_type=reaction.reaction_type,
        notifier=notifier,
    )
    return ReactionResult(active=outcome.active, counts=outcome.counts)


@router.post("/{post_id}/reveal", response_model=RevealResult)
def request_reveal(
    post_id: str,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    profiles: ProfileDirectoryDep,
    notifier: NotifierDep,
    pair_locks: PairLockDep,
) -> RevealResult:
    """Ask the author of an anonymous post to reveal themselves."""
    coordinator = RevealCoordinator(
        db, profiles=profiles, notifier=notifier, pair_locks=pair_locks
    )
    return _to_reveal_result(coordinator.request_reveal(post_id, current_user_id))


@router.get("/{post_id}/reveal", response_model=RevealResult)
def get_reveal_status(
    post_id: str,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    profiles: ProfileDirectoryDep,
    notifier: NotifierDep,
    pair_locks: PairLockDep,
) -> RevealResult:
    """Return the caller's reveal state on a post."""
    coordinator = RevealCoordinator(
        db, profiles=profiles, notifier=notifier, pair_locks=pair_locks
    )
    return _to_reveal_result(coordinator.get_reveal_status(post_id, current_user_id))
