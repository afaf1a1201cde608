"""Thread-safe in-memory room store.

Single-process backend for development and tests. Every operation runs under
one lock, so each multi-step transition is atomic with respect to every other
operation on any code or identity.
"""

import logging
from threading import RLock
from typing import Dict, List, Optional

from pairing.codes import CodeGenerator, normalize_code
from pairing.config import settings
from pairing.errors import AlreadyInRoom, AlreadyPaired, CodeExhausted, RoomNotFound, SelfJoin
from pairing.schemas import Identity, Participant, RoomData, RoomState

logger = logging.getLogger(__name__)


class MembershipIndex:
    """Maps user id to the code of the room the user occupies.

    Not locked on its own; the owning store guards it.
    """

    def __init__(self):
        self._codes: Dict[str, str] = {}

    def get(self, user_id: str) -> Optional[str]:
        return self._codes.get(user_id)

    def claim(self, user_id: str, code: str) -> None:
        current = self._codes.get(user_id)
        if current is not None and current != code:
            raise AlreadyInRoom()
        self._codes[user_id] = code

    def release(self, user_id: str, code: str) -> None:
        if self._codes.get(user_id) == code:
            del self._codes[user_id]


class MemoryRoomStore:
    """Room store backed by process memory."""

    def __init__(self, generator: Optional[CodeGenerator] = None, max_attempts: Optional[int] = None):
        self.generator = generator or CodeGenerator()
        self.max_attempts = max_attempts or settings.code_max_attempts
        self._rooms: Dict[str, RoomData] = {}
        self._members = MembershipIndex()
        self._lock = RLock()

    def create_room(self, creator: Identity, now: float) -> RoomData:
        """Create a WAITING room owned by ``creator``.

        Raises:
            AlreadyInRoom: If the creator already occupies a room.
            CodeExhausted: If no free code was drawn within the attempt budget.
        """
        with self._lock:
            if self._members.get(creator.user_id) is not None:
                raise AlreadyInRoom()

            for attempt in range(1, self.max_attempts + 1):
                code = self.generator.generate()
                if code in self._rooms:
                    logger.debug(f"Room code collision on attempt {attempt}: {code}")
                    continue

                room = RoomData(
                    code=code,
                    status=RoomState.WAITING,
                    creator=Participant.from_identity(creator),
                    created_at=now,
                )
                self._rooms[code] = room
                self._members.claim(creator.user_id, code)
                return room.model_copy(deep=True)

        raise CodeExhausted(f"No free room code after {self.max_attempts} attempts")

    def admit_partner(self, code: str, partner: Identity, now: float, ttl_seconds: float) -> RoomData:
        """Turn a WAITING room into a PAIRED one with ``partner`` as second member.

        Raises:
            RoomNotFound: No active room has this code, or its WAITING window expired.
            AlreadyPaired: The room already has a partner.
            SelfJoin: The partner is the room's creator.
            AlreadyInRoom: The partner occupies another room.
        """
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                raise RoomNotFound()
            if room.status == RoomState.PAIRED:
                # A retried join whose first attempt already committed.
                if room.partner.user_id == partner.user_id:
                    return room.model_copy(deep=True)
                raise AlreadyPaired()
            if room.created_at < now - ttl_seconds:
                raise RoomNotFound("Room code expired")
            if room.creator.user_id == partner.user_id:
                raise SelfJoin()
            if self._members.get(partner.user_id) is not None:
                raise AlreadyInRoom()

            paired = room.model_copy(
                update={
                    "status": RoomState.PAIRED,
                    "partner": Participant.from_identity(partner),
                    "paired_at": now,
                }
            )
            self._members.claim(partner.user_id, code)
            self._rooms[code] = paired
            return paired.model_copy(deep=True)

    def get_room(self, code: str) -> Optional[RoomData]:
        with self._lock:
            room = self._rooms.get(normalize_code(code))
            return room.model_copy(deep=True) if room else None

    def get_room_for_identity(self, user_id: str) -> Optional[RoomData]:
        with self._lock:
            code = self._members.get(user_id)
            if code is None:
                return None
            room = self._rooms.get(code)
            if room is None or not room.has_member(user_id):
                return None
            return room.model_copy(deep=True)

    def delete_room(
        self,
        code: str,
        member: Optional[str] = None,
        waiting_before: Optional[float] = None,
    ) -> Optional[RoomData]:
        """Delete a room and both memberships. Absent rooms are a no-op.

        Args:
            code: Room code.
            member: Only delete if this user still belongs to the room.
            waiting_before: Only delete a WAITING room created before this time.

        Returns:
            The deleted room, or None if nothing was deleted.
        """
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return None
            if member is not None and not room.has_member(member):
                return None
            if waiting_before is not None and (
                room.status != RoomState.WAITING or room.created_at >= waiting_before
            ):
                return None

            del self._rooms[code]
            for user_id in room.member_ids():
                self._members.release(user_id, code)
            return room

    def expired_waiting_codes(self, cutoff: float) -> List[str]:
        with self._lock:
            return [
                code
                for code, room in self._rooms.items()
                if room.status == RoomState.WAITING and room.created_at < cutoff
            ]

    def ping(self) -> bool:
        return True
