from fastapi import APIRouter, HTTPException
from schemas.rooms import RoomDetailsResponse
from registry import connection_registry
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str):
    """
    Get the members currently bound to a room.

    Rooms are not stored anywhere: a room nobody has joined simply reports
    zero members.

    Returns:
    - room_id: Room identifier, case-sensitive
    - online_users_count: Number of joined connections in the room
    - online_users: Display names of those connections
    """
    if not room_id.strip():
        raise HTTPException(status_code=400, detail="Room id must not be blank")

    members = connection_registry.members_of(room_id)
    logger.info(f"Room details retrieved for {room_id}: {len(members)} users online")

    return RoomDetailsResponse(
        room_id=room_id,
        online_users_count=len(members),
        online_users=sorted(member.display_name for member in members),
    )
