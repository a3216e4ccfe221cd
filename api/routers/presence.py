"""Presence heartbeat (public) and snapshot (privileged) endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Response

from api.dependencies import get_tracker, require_admin
from config import configure_logging
from presence.schemas import Heartbeat, PresenceSnapshot
from presence.tracker import PresenceTracker

router = APIRouter(prefix="/api/v1")
log = configure_logging("presence-api")


@router.post("/presence/heartbeat", status_code=204)
def heartbeat(body: Heartbeat, tracker: PresenceTracker = Depends(get_tracker)):
    try:
        tracker.record_heartbeat(body)
    except Exception as e:
        log.error("heartbeat_failed", session_id=body.session_id, error=str(e))
        raise HTTPException(status_code=500, detail="internal_error")
    return Response(status_code=204)


@router.get(
    "/admin/presence/snapshot",
    response_model=PresenceSnapshot,
    dependencies=[Depends(require_admin)],
)
def snapshot(tracker: PresenceTracker = Depends(get_tracker)):
    try:
        return tracker.get_snapshot()
    except Exception as e:
        log.error("snapshot_failed", error=str(e))
        raise HTTPException(status_code=500, detail="internal_error")
