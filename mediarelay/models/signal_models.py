"""
Signal message models for Media Relay Service.
Defines the wire envelope and the typed payload of every operation.
"""

from enum import Enum
from typing import ClassVar, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .error_models import SignalDecodeError


class SignalOperation(str, Enum):
    """Operation tags carried in the envelope."""

    # client -> relay
    CREATE_ROOM = "CreateRoom"
    DELETE_ROOM = "DeleteRoom"
    JOIN_ROOM = "JoinRoom"
    LEAVE_ROOM = "LeaveRoom"
    STREAM_DATA = "StreamData"

    # relay -> client
    CREATED_ROOM = "CreatedRoom"
    DELETED_ROOM = "DeletedRoom"
    JOINDED_ROOM = "JoindedRoom"  # spelling is part of the wire protocol
    ERROR = "Error"


class SignalMessage(BaseModel):
    """The minimal envelope exchanged between a client and the relay."""

    operation: str = Field(..., description="Operation to perform")
    payload: Optional[str] = Field(default=None, description="Operation specific data")

    def to_text(self) -> str:
        return self.model_dump_json(exclude_none=True)


class JoinRoomPayload(BaseModel):
    """Viewer join data: room key and the name shown to the streamer."""

    key: str = Field(..., description="Room key to join")
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("username", "displayName", "display_name"),
        serialization_alias="username",
        description="Viewer display name",
    )


class StreamDataPayload(BaseModel):
    """One encoded fragment of a media segment."""

    model_config = ConfigDict(populate_by_name=True)

    room_key: str = Field(..., alias="roomKey", description="Room the fragment belongs to")
    video_data: str = Field(default="", alias="videoData", description="Base64 fragment bytes")
    last: bool = Field(default=False, description="Whether this fragment ends its segment")


class CreateRoomRequest(BaseModel):
    operation: ClassVar[SignalOperation] = SignalOperation.CREATE_ROOM


class DeleteRoomRequest(BaseModel):
    operation: ClassVar[SignalOperation] = SignalOperation.DELETE_ROOM

    key: str


class JoinRoomRequest(BaseModel):
    operation: ClassVar[SignalOperation] = SignalOperation.JOIN_ROOM

    key: str
    display_name: Optional[str] = None


class LeaveRoomRequest(BaseModel):
    operation: ClassVar[SignalOperation] = SignalOperation.LEAVE_ROOM

    key: str


class StreamDataRequest(BaseModel):
    operation: ClassVar[SignalOperation] = SignalOperation.STREAM_DATA

    data: StreamDataPayload


SignalRequest = Union[
    CreateRoomRequest,
    DeleteRoomRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    StreamDataRequest,
]


def parse_envelope(raw: str) -> SignalMessage:
    """Parse the outer ``{operation, payload}`` envelope of a text frame."""
    try:
        return SignalMessage.model_validate_json(raw)
    except ValidationError as e:
        raise SignalDecodeError(f"Malformed signal envelope: {e.error_count()} error(s)") from e


def _require_payload(message: SignalMessage) -> str:
    if message.payload is None:
        raise SignalDecodeError(f"{message.operation} requires a payload", operation=message.operation)
    return message.payload


def decode_signal(raw: str) -> Optional[SignalRequest]:
    """
    Decode one inbound text frame into its typed request.

    Returns ``None`` for operation tags the relay does not handle, which
    includes relay-to-client tags echoed back by a client.
    Raises ``SignalDecodeError`` when the frame or a known operation's
    payload has the wrong shape.
    """
    message = parse_envelope(raw)

    try:
        operation = SignalOperation(message.operation)
    except ValueError:
        return None

    if operation == SignalOperation.CREATE_ROOM:
        return CreateRoomRequest()
    if operation == SignalOperation.DELETE_ROOM:
        return DeleteRoomRequest(key=_require_payload(message))
    if operation == SignalOperation.LEAVE_ROOM:
        return LeaveRoomRequest(key=_require_payload(message))

    if operation == SignalOperation.JOIN_ROOM:
        try:
            join = JoinRoomPayload.model_validate_json(_require_payload(message))
        except ValidationError as e:
            raise SignalDecodeError("Malformed JoinRoom payload", operation=message.operation) from e
        return JoinRoomRequest(key=join.key, display_name=join.display_name)

    if operation == SignalOperation.STREAM_DATA:
        try:
            data = StreamDataPayload.model_validate_json(_require_payload(message))
        except ValidationError as e:
            raise SignalDecodeError("Malformed StreamData payload", operation=message.operation) from e
        return StreamDataRequest(data=data)

    return None


def encode_signal(operation: SignalOperation, payload: Optional[str] = None) -> str:
    """Serialize an outbound envelope."""
    return SignalMessage(operation=operation.value, payload=payload).to_text()


def encode_join_payload(key: str, display_name: Optional[str]) -> str:
    return JoinRoomPayload(key=key, display_name=display_name).model_dump_json(by_alias=True)


def encode_stream_data(room_key: str, video_data: str, last: bool) -> str:
    """Serialize a complete StreamData frame, payload nested as a JSON string."""
    payload = StreamDataPayload(room_key=room_key, video_data=video_data, last=last)
    return encode_signal(SignalOperation.STREAM_DATA, payload.model_dump_json(by_alias=True))
