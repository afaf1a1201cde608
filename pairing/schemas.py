"""Data schemas for the pairing service."""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class RoomState(str, Enum):
    """Persisted room states.

    There is no persisted NO_ROOM: a user without a membership is NO_ROOM.
    """

    WAITING = "WAITING"
    PAIRED = "PAIRED"


class Identity(BaseModel):
    """Verified caller identity supplied by the identity verifier."""

    user_id: str
    name: str
    email: Optional[str] = None


class Participant(BaseModel):
    """One side of a room."""

    user_id: str
    name: str
    email: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "Participant":
        return cls(user_id=identity.user_id, name=identity.name, email=identity.email)


class RoomData(BaseModel):
    """Complete room state held by the room store."""

    code: str
    status: RoomState
    creator: Participant
    partner: Optional[Participant] = None
    created_at: float
    paired_at: Optional[float] = None

    @model_validator(mode="after")
    def check_membership(self) -> "RoomData":
        if (self.status == RoomState.PAIRED) != (self.partner is not None):
            raise ValueError("partner must be set if and only if the room is PAIRED")
        if self.partner is not None and self.partner.user_id == self.creator.user_id:
            raise ValueError("creator and partner must be different users")
        return self

    def has_member(self, user_id: str) -> bool:
        if self.creator.user_id == user_id:
            return True
        return self.partner is not None and self.partner.user_id == user_id

    def member_ids(self) -> list:
        ids = [self.creator.user_id]
        if self.partner is not None:
            ids.append(self.partner.user_id)
        return ids

    def other_member(self, user_id: str) -> Optional[Participant]:
        """Return the participant on the other side from ``user_id``."""
        if self.creator.user_id == user_id:
            return self.partner
        return self.creator


# API Request/Response Models

class JoinRequest(BaseModel):
    """Request to join a room by code."""

    code: str = Field(..., min_length=1, max_length=32)


class NoRoomStatus(BaseModel):
    status: Literal["NO_ROOM"] = "NO_ROOM"


class WaitingStatus(BaseModel):
    status: Literal["WAITING"] = "WAITING"
    code: str


class PairedStatus(BaseModel):
    status: Literal["PAIRED"] = "PAIRED"
    code: str
    partner_name: str
    partner_email: Optional[str] = None


RoomStatus = Annotated[
    Union[NoRoomStatus, WaitingStatus, PairedStatus],
    Field(discriminator="status"),
]


def status_for(room: Optional[RoomData], user_id: str) -> Union[NoRoomStatus, WaitingStatus, PairedStatus]:
    """Derive the caller-relative status from the caller's room (if any)."""
    if room is None or not room.has_member(user_id):
        return NoRoomStatus()
    if room.status == RoomState.WAITING:
        return WaitingStatus(code=room.code)
    partner = room.other_member(user_id)
    return PairedStatus(code=room.code, partner_name=partner.name, partner_email=partner.email)


class ErrorDetail(BaseModel):
    """Error body returned inside ``detail``."""

    error: str
    message: str


class ErrorResponse(BaseModel):
    detail: ErrorDetail
