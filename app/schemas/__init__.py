"""
app.schemas
~~~~~~~~~~~
Pydantic schemas and models for the API.
"""
from app.schemas.api_response import ApiResponse
from app.schemas.messages import (
    ClientMessage,
    ErrorMessage,
    LikesUpdated,
    MatchFound,
    MatchingEnded,
    MatchingStarted,
    NewMovie,
    ParticipantJoined,
    ParticipantLeft,
    ServerMessage,
    StreamingEnded,
)
from app.schemas.movies import MovieData, ParticipantLikes, RoomFilters
from app.schemas.rooms import (
    CreateRoomRequest,
    CreateRoomResponse,
    JoinRoomRequest,
    JoinRoomResponse,
    RoomInfo,
    RoomState,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
