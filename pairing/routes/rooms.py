"""Room pairing API routes.

Endpoints are synchronous so FastAPI runs them in its threadpool; the room
store calls they make are blocking.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from pairing.config import settings
from pairing.coordinator import PairingCoordinator
from pairing.errors import AuthenticationError, OperationalError, PairingError
from pairing.identity import IdentityVerifier
from pairing.redis_client import RedisRoomStore
from pairing.schemas import (
    ErrorResponse,
    Identity,
    JoinRequest,
    NoRoomStatus,
    PairedStatus,
    RoomStatus,
    WaitingStatus,
)
from pairing.store import MemoryRoomStore

logger = logging.getLogger(__name__)


def build_store():
    """Room store selected by ``store_backend``."""
    if settings.store_backend == "memory":
        return MemoryRoomStore()
    if settings.store_backend == "redis":
        return RedisRoomStore()
    raise ValueError(f"Unknown store backend: {settings.store_backend}")


router = APIRouter(prefix="/room", tags=["rooms"])
pairing_coordinator = PairingCoordinator(build_store())
identity_verifier = IdentityVerifier()

ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing, invalid or expired credential"},
    404: {"model": ErrorResponse, "description": "Unknown or expired room code"},
    409: {"model": ErrorResponse, "description": "Membership conflict"},
}


def to_http_error(error: PairingError) -> HTTPException:
    """Translate a pairing error into the HTTP error returned to the client.

    Operational anomalies are logged here and answered with a generic message.
    """
    if isinstance(error, OperationalError):
        logger.error(f"Pairing anomaly ({type(error).__name__}): {error.message}")
        message = error.public_message
    else:
        logger.warning(f"Pairing request rejected: {error.error} - {error.message}")
        message = error.message

    return HTTPException(
        status_code=error.status_code,
        detail={"error": error.error, "message": message},
    )


def get_identity(authorization: Optional[str] = Header(default=None)) -> Identity:
    """Resolve the caller from the bearer token."""
    try:
        return identity_verifier.verify_header(authorization)
    except AuthenticationError as e:
        raise to_http_error(e)


@router.post("/create", response_model=WaitingStatus, responses=ERROR_RESPONSES)
def create_room(identity: Identity = Depends(get_identity)) -> WaitingStatus:
    """Create a room and return its invitation code.

    Raises:
        HTTPException: 409 if the caller already occupies a room.
    """
    try:
        return pairing_coordinator.create(identity)
    except PairingError as e:
        raise to_http_error(e)


@router.post("/join", response_model=PairedStatus, responses=ERROR_RESPONSES)
def join_room(request: JoinRequest, identity: Identity = Depends(get_identity)) -> PairedStatus:
    """Join a waiting room by code (case-insensitive).

    Raises:
        HTTPException: 404 for an unknown or expired code, 409 for conflicts.
    """
    try:
        return pairing_coordinator.join(identity, request.code)
    except PairingError as e:
        raise to_http_error(e)


@router.get("/status", response_model=RoomStatus, responses=ERROR_RESPONSES)
def get_status(identity: Identity = Depends(get_identity)):
    """Get the caller's pairing state (for frontend polling)."""
    try:
        return pairing_coordinator.status(identity)
    except PairingError as e:
        raise to_http_error(e)


@router.post("/leave", response_model=NoRoomStatus, responses=ERROR_RESPONSES)
def leave_room(identity: Identity = Depends(get_identity)) -> NoRoomStatus:
    """Leave the current room; the room closes for both members."""
    try:
        return pairing_coordinator.leave(identity)
    except PairingError as e:
        raise to_http_error(e)


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Health status and room store connectivity.
    """
    store_ok = pairing_coordinator.ping()
    return {"status": "ok" if store_ok else "degraded", "store": store_ok}
