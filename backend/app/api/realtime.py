"""HTTP views over the in-memory realtime state."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import get_current_identity
from app.schemas import PresenceRead, SpotOccupancyRead, UnreadEntryRead
from spotlink.realtime import get_presence_registry, get_spot_manager, get_unread_ledger
from spotlink.realtime.connection import TrustedIdentity

router = APIRouter(tags=["realtime"])


@router.get("/spots/{spot_id}/occupancy", response_model=SpotOccupancyRead)
def read_spot_occupancy(spot_id: str) -> SpotOccupancyRead:
    """Return how many connections are in the spot chat right now."""

    return SpotOccupancyRead(spot_id=spot_id, user_count=get_spot_manager().occupancy(spot_id))


@router.get("/presence/{user_id}", response_model=PresenceRead)
async def read_presence(user_id: str) -> PresenceRead:
    connections = await get_presence_registry().connections_for(user_id)
    return PresenceRead(user_id=user_id, online=bool(connections), connections=len(connections))


@router.get("/direct/unread", response_model=list[UnreadEntryRead])
def list_unread(identity: TrustedIdentity = Depends(get_current_identity)) -> list[UnreadEntryRead]:
    """List pending invites and unread direct messages for the caller, newest first."""

    return [UnreadEntryRead.model_validate(entry) for entry in get_unread_ledger().entries_for(identity.user_id)]


@router.delete(
    "/direct/unread/{sender_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def clear_unread(
    sender_id: str,
    identity: TrustedIdentity = Depends(get_current_identity),
) -> Response:
    get_unread_ledger().clear(identity.user_id, sender_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
