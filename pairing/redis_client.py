"""Redis room store.

Key layout:
    pairing:room:{code}       room JSON
    pairing:member:{user_id}  code of the room the user occupies
    pairing:waiting           sorted set of WAITING codes scored by created_at

Every multi-key transition runs as a WATCH/MULTI/EXEC transaction, so a
concurrent writer touching the same room or membership forces a retry instead
of a lost update.
"""

import logging
from functools import partial, wraps
from typing import List, Optional

import redis
from redis.client import Pipeline

from pairing.codes import CodeGenerator, normalize_code
from pairing.config import settings
from pairing.errors import (
    AlreadyInRoom,
    AlreadyPaired,
    CodeExhausted,
    RoomNotFound,
    SelfJoin,
    StoreUnavailable,
)
from pairing.schemas import Identity, Participant, RoomData, RoomState

logger = logging.getLogger(__name__)

WAITING_KEY = "pairing:waiting"


class _CodeTaken(Exception):
    """The drawn code belongs to an active room."""


def _translate_redis_errors(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise StoreUnavailable(f"Redis unavailable: {e}") from e

    return wrapper


class RedisRoomStore:
    """Room store backed by Redis."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        generator: Optional[CodeGenerator] = None,
        max_attempts: Optional[int] = None,
    ):
        """Initialize Redis connection.

        Args:
            client: Existing Redis client; one is built from settings if omitted.
            generator: Room code generator.
            max_attempts: Code draws allowed per create before giving up.
        """
        self.redis = client or redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            decode_responses=True,
        )
        self.generator = generator or CodeGenerator()
        self.max_attempts = max_attempts or settings.code_max_attempts

    def _room_key(self, code: str) -> str:
        return f"pairing:room:{code}"

    def _member_key(self, user_id: str) -> str:
        return f"pairing:member:{user_id}"

    def _load(self, conn, code: str) -> Optional[RoomData]:
        data = conn.get(self._room_key(code))
        if not data:
            return None
        return RoomData.model_validate_json(data)

    @_translate_redis_errors
    def create_room(self, creator: Identity, now: float) -> RoomData:
        """Create a WAITING room owned by ``creator``.

        Raises:
            AlreadyInRoom: If the creator already occupies a room.
            CodeExhausted: If no free code was drawn within the attempt budget.
        """
        member_key = self._member_key(creator.user_id)
        for attempt in range(1, self.max_attempts + 1):
            code = self.generator.generate()
            try:
                return self.redis.transaction(
                    partial(self._create_tx, code, creator, now),
                    member_key,
                    self._room_key(code),
                    value_from_callable=True,
                )
            except _CodeTaken:
                logger.debug(f"Room code collision on attempt {attempt}: {code}")

        raise CodeExhausted(f"No free room code after {self.max_attempts} attempts")

    def _holds_room(self, pipe: Pipeline, user_id: str) -> bool:
        """Whether the user's membership key points at a room that still lists them.

        A key whose room is gone (evicted or removed by hand) is stale; the
        caller overwrites it in the same transaction.
        """
        code = pipe.get(self._member_key(user_id))
        if not code:
            return False
        room = self._load(pipe, code)
        if room is not None and room.has_member(user_id):
            return True
        logger.warning(f"Replacing stale membership of user={user_id} (room {code} is gone)")
        return False

    def _create_tx(self, code: str, creator: Identity, now: float, pipe: Pipeline) -> RoomData:
        if self._holds_room(pipe, creator.user_id):
            raise AlreadyInRoom()
        if pipe.exists(self._room_key(code)):
            raise _CodeTaken(code)

        room = RoomData(
            code=code,
            status=RoomState.WAITING,
            creator=Participant.from_identity(creator),
            created_at=now,
        )
        pipe.multi()
        pipe.set(self._room_key(code), room.model_dump_json())
        pipe.set(self._member_key(creator.user_id), code)
        pipe.zadd(WAITING_KEY, {code: now})
        return room

    @_translate_redis_errors
    def admit_partner(self, code: str, partner: Identity, now: float, ttl_seconds: float) -> RoomData:
        """Turn a WAITING room into a PAIRED one with ``partner`` as second member.

        Raises:
            RoomNotFound: No active room has this code, or its WAITING window expired.
            AlreadyPaired: The room already has a partner.
            SelfJoin: The partner is the room's creator.
            AlreadyInRoom: The partner occupies another room.
        """
        code = normalize_code(code)
        return self.redis.transaction(
            partial(self._admit_tx, code, partner, now, ttl_seconds),
            self._room_key(code),
            self._member_key(partner.user_id),
            value_from_callable=True,
        )

    def _admit_tx(self, code: str, partner: Identity, now: float, ttl_seconds: float, pipe: Pipeline) -> RoomData:
        room = self._load(pipe, code)
        if room is None:
            raise RoomNotFound()
        if room.status == RoomState.PAIRED:
            # A retried join whose first attempt already committed.
            if room.partner.user_id == partner.user_id:
                return room
            raise AlreadyPaired()
        if room.created_at < now - ttl_seconds:
            raise RoomNotFound("Room code expired")
        if room.creator.user_id == partner.user_id:
            raise SelfJoin()
        if self._holds_room(pipe, partner.user_id):
            raise AlreadyInRoom()

        room.status = RoomState.PAIRED
        room.partner = Participant.from_identity(partner)
        room.paired_at = now

        pipe.multi()
        pipe.set(self._room_key(code), room.model_dump_json())
        pipe.set(self._member_key(partner.user_id), code)
        pipe.zrem(WAITING_KEY, code)
        return room

    @_translate_redis_errors
    def get_room(self, code: str) -> Optional[RoomData]:
        return self._load(self.redis, normalize_code(code))

    @_translate_redis_errors
    def get_room_for_identity(self, user_id: str) -> Optional[RoomData]:
        """Reverse lookup through the membership key.

        Args:
            user_id: Caller's subject id.

        Returns:
            The caller's room, or None when the caller has no active room.
        """
        code = self.redis.get(self._member_key(user_id))
        if not code:
            return None
        room = self._load(self.redis, code)
        if room is None or not room.has_member(user_id):
            return None
        return room

    @_translate_redis_errors
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
        return self.redis.transaction(
            partial(self._delete_tx, code, member, waiting_before),
            self._room_key(code),
            value_from_callable=True,
        )

    def _delete_tx(
        self,
        code: str,
        member: Optional[str],
        waiting_before: Optional[float],
        pipe: Pipeline,
    ) -> Optional[RoomData]:
        room = self._load(pipe, code)
        if room is None:
            # Drop a dangling index entry left by an external key removal.
            pipe.multi()
            pipe.zrem(WAITING_KEY, code)
            return None
        if member is not None and not room.has_member(member):
            return None
        if waiting_before is not None and (
            room.status != RoomState.WAITING or room.created_at >= waiting_before
        ):
            return None

        member_keys = [self._member_key(user_id) for user_id in room.member_ids()]
        owned = [key for key in member_keys if pipe.get(key) == code]

        pipe.multi()
        pipe.delete(self._room_key(code))
        if owned:
            pipe.delete(*owned)
        pipe.zrem(WAITING_KEY, code)
        return room

    @_translate_redis_errors
    def expired_waiting_codes(self, cutoff: float) -> List[str]:
        return self.redis.zrangebyscore(WAITING_KEY, "-inf", f"({cutoff}")

    def ping(self) -> bool:
        """Check Redis connection.

        Returns:
            True if connected, False otherwise.
        """
        try:
            return self.redis.ping()
        except redis.RedisError:
            return False
