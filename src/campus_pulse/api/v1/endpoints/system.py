"""Operational endpoints for schedulers."""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, status

from campus_pulse.api.v1.dependencies import NotifierDep, PairLockDep, SessionDep
from campus_pulse.core.settings import settings
from campus_pulse.services.sweeper import ExpirySweeper

router = APIRouter(prefix="/system", tags=["system"])


@router.post("/sweep")
def trigger_sweep(
    db: SessionDep,
    pair_locks: PairLockDep,
    notifier: NotifierDep,
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> dict[str, int]:
    """Run one expiry sweep now.

    Intended for an external scheduler in deployments that disable the
    in-process sweeper.
    """
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron trigger is not configured",
        )
    if x_cron_secret is None or not hmac.compare_digest(
        x_cron_secret.encode("utf-8"), settings.cron_secret.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )

    report = ExpirySweeper(db, pair_locks=pair_locks, notifier=notifier).run()
    return report.as_dict()
