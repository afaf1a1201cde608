"""Pairing coordinator.

Exposes create/join/status/leave for verified identities on top of a room
store. Clients learn about transitions made by the other party only on their
next status poll, so a party may see WAITING or PAIRED for up to one poll
interval after the room changed or disappeared.
"""

import logging
import time
from typing import Callable, List, Optional, Union

from pairing.codes import CodeGenerator, normalize_code
from pairing.config import settings
from pairing.errors import RoomNotFound, StoreUnavailable
from pairing.schemas import Identity, NoRoomStatus, PairedStatus, WaitingStatus, status_for

logger = logging.getLogger(__name__)


class PairingCoordinator:
    """Room pairing state machine: NO_ROOM -> WAITING -> PAIRED -> NO_ROOM."""

    def __init__(
        self,
        store,
        ttl_seconds: Optional[float] = None,
        retry_backoff_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the coordinator.

        Args:
            store: Room store (``MemoryRoomStore`` or ``RedisRoomStore``).
            ttl_seconds: Lifetime of an unjoined WAITING room.
            retry_backoff_seconds: Pause before the single retry of a failed store call.
            clock: Time source in epoch seconds.
            sleep: Used for the retry backoff.
        """
        self.store = store
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.waiting_room_ttl_seconds
        self.retry_backoff_seconds = (
            retry_backoff_seconds if retry_backoff_seconds is not None else settings.store_retry_backoff_seconds
        )
        self.clock = clock
        self.sleep = sleep
        self.codes = getattr(store, "generator", None) or CodeGenerator()

    def _call_store(self, method: str, *args, **kwargs):
        """Call a store method, retrying once if the store is unavailable."""
        func = getattr(self.store, method)
        try:
            return func(*args, **kwargs)
        except StoreUnavailable as e:
            logger.warning(f"Room store call {method} failed, retrying in {self.retry_backoff_seconds}s: {e}")
            self.sleep(self.retry_backoff_seconds)
        return func(*args, **kwargs)

    def create(self, identity: Identity) -> WaitingStatus:
        """Open a WAITING room with the caller as creator.

        Raises:
            AlreadyInRoom: If the caller already occupies a room.
            CodeExhausted: If no free code could be allocated.
        """
        room = self._call_store("create_room", identity, self.clock())
        logger.info(f"Room {room.code} created by user={identity.user_id}")
        return WaitingStatus(code=room.code)

    def join(self, identity: Identity, code: str) -> PairedStatus:
        """Join the WAITING room identified by ``code`` as its partner.

        Raises:
            RoomNotFound: Unknown, malformed or expired code.
            AlreadyPaired: The room already has two members.
            SelfJoin: The caller created this room.
            AlreadyInRoom: The caller occupies another room.
        """
        code = normalize_code(code)
        if not self.codes.is_well_formed(code):
            raise RoomNotFound()

        room = self._call_store("admit_partner", code, identity, self.clock(), self.ttl_seconds)
        logger.info(f"Room {room.code} paired: creator={room.creator.user_id}, partner={identity.user_id}")
        return status_for(room, identity.user_id)

    def status(self, identity: Identity) -> Union[NoRoomStatus, WaitingStatus, PairedStatus]:
        """Current state of the caller. Never mutates."""
        room = self._call_store("get_room_for_identity", identity.user_id)
        return status_for(room, identity.user_id)

    def leave(self, identity: Identity) -> NoRoomStatus:
        """Destroy the caller's room for both members. Idempotent."""
        room = self._call_store("get_room_for_identity", identity.user_id)
        if room is None:
            logger.debug(f"Leave by user={identity.user_id} with no active room")
            return NoRoomStatus()

        deleted = self._call_store("delete_room", room.code, member=identity.user_id)
        if deleted is not None:
            logger.info(f"Room {room.code} closed by user={identity.user_id} (was {deleted.status.value})")
        return NoRoomStatus()

    def sweep_expired(self, now: Optional[float] = None) -> List[str]:
        """Delete WAITING rooms older than the TTL.

        PAIRED rooms are left alone; a room joined between the scan and the
        delete survives because the delete re-checks its state.

        Returns:
            Codes of the rooms that were deleted.
        """
        cutoff = (now if now is not None else self.clock()) - self.ttl_seconds
        swept = []
        for code in self._call_store("expired_waiting_codes", cutoff):
            if self._call_store("delete_room", code, waiting_before=cutoff) is not None:
                swept.append(code)
        if swept:
            logger.info(f"Swept {len(swept)} expired waiting room(s): {', '.join(swept)}")
        return swept

    def ping(self) -> bool:
        return self.store.ping()
