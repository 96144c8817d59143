from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    connections: int

class RoomDetailsResponse(BaseModel):
    room_id: str
    online_users_count: int
    online_users: list[str]
