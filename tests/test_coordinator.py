"""Pairing coordinator state machine tests."""

import threading
from unittest.mock import Mock

import pytest

from conftest import START_TIME
from pairing.coordinator import PairingCoordinator
from pairing.errors import AlreadyInRoom, AlreadyPaired, RoomNotFound, SelfJoin, StoreUnavailable
from pairing.schemas import Identity, NoRoomStatus, PairedStatus, WaitingStatus
from pairing.store import MemoryRoomStore


def test_status_without_room_is_no_room(coordinator, alice):
    assert coordinator.status(alice) == NoRoomStatus()


def test_create_then_status_returns_same_code(coordinator, alice):
    created = coordinator.create(alice)
    status = coordinator.status(alice)

    assert isinstance(created, WaitingStatus)
    assert status == WaitingStatus(code=created.code)


def test_create_twice_fails(coordinator, alice):
    coordinator.create(alice)

    with pytest.raises(AlreadyInRoom):
        coordinator.create(alice)


def test_pairing_scenario(coordinator, alice, bob):
    """Create, join with lowercase code, leave by creator, partner polls NO_ROOM."""
    code = coordinator.create(alice).code

    joined = coordinator.join(bob, code.lower())

    assert joined == PairedStatus(code=code, partner_name="Alice", partner_email="alice@example.com")
    assert coordinator.status(alice) == PairedStatus(code=code, partner_name="Bob", partner_email="bob@example.com")
    assert coordinator.status(bob) == joined

    assert coordinator.leave(alice) == NoRoomStatus()
    assert coordinator.status(bob) == NoRoomStatus()
    assert coordinator.status(alice) == NoRoomStatus()


def test_partner_leave_frees_both(coordinator, alice, bob, carol):
    code = coordinator.create(alice).code
    coordinator.join(bob, code)

    coordinator.leave(bob)

    assert coordinator.status(alice) == NoRoomStatus()
    # Both may pair again.
    new_code = coordinator.create(bob).code
    assert coordinator.join(alice, new_code).partner_name == "Bob"
    with pytest.raises(AlreadyPaired):
        coordinator.join(carol, new_code)


def test_join_own_code_is_self_join(coordinator, alice):
    code = coordinator.create(alice).code

    with pytest.raises(SelfJoin):
        coordinator.join(alice, code)


def test_join_malformed_code_is_not_found(coordinator, bob):
    with pytest.raises(RoomNotFound):
        coordinator.join(bob, "not-a-code")


def test_join_while_waiting_elsewhere(coordinator, alice, bob):
    code = coordinator.create(alice).code
    coordinator.create(bob)

    with pytest.raises(AlreadyInRoom):
        coordinator.join(bob, code)


def test_leave_is_idempotent(coordinator, alice):
    assert coordinator.leave(alice) == NoRoomStatus()
    coordinator.create(alice)
    assert coordinator.leave(alice) == NoRoomStatus()
    assert coordinator.leave(alice) == NoRoomStatus()


def test_waiting_creator_can_leave_and_recreate(coordinator, alice):
    coordinator.create(alice)
    coordinator.leave(alice)

    assert isinstance(coordinator.create(alice), WaitingStatus)


def test_expired_code_cannot_be_joined(coordinator, clock, alice, bob):
    code = coordinator.create(alice).code
    clock.advance(601)

    with pytest.raises(RoomNotFound):
        coordinator.join(bob, code)


def test_sweep_removes_only_expired_waiting_rooms(coordinator, clock, alice, bob, carol):
    stale = coordinator.create(alice).code
    paired = coordinator.create(bob).code
    coordinator.join(carol, paired)
    clock.advance(601)

    assert coordinator.sweep_expired() == [stale]
    assert coordinator.status(alice) == NoRoomStatus()
    assert isinstance(coordinator.status(bob), PairedStatus)
    assert isinstance(coordinator.status(carol), PairedStatus)


def test_sweep_keeps_fresh_rooms(coordinator, clock, alice):
    code = coordinator.create(alice).code
    clock.advance(300)

    assert coordinator.sweep_expired() == []
    assert coordinator.status(alice) == WaitingStatus(code=code)


def test_concurrent_joins_exactly_one_wins(alice, clock):
    coordinator = PairingCoordinator(MemoryRoomStore(), ttl_seconds=600, clock=clock)
    code = coordinator.create(alice).code
    joiners = [Identity(user_id=f"joiner-{i}", name=f"Joiner {i}") for i in range(2)]
    barrier = threading.Barrier(len(joiners))
    results = {}

    def join(identity):
        barrier.wait()
        try:
            results[identity.user_id] = coordinator.join(identity, code)
        except AlreadyPaired as e:
            results[identity.user_id] = e

    threads = [threading.Thread(target=join, args=(j,)) for j in joiners]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [uid for uid, r in results.items() if isinstance(r, PairedStatus)]
    losers = [uid for uid, r in results.items() if isinstance(r, AlreadyPaired)]
    assert len(winners) == 1 and len(losers) == 1
    assert coordinator.status(alice).partner_name == f"Joiner {winners[0][-1]}"
    assert coordinator.status(Identity(user_id=losers[0], name="x")) == NoRoomStatus()


class TestStoreRetry:
    """Single retry on store unavailability."""

    def test_retries_once_then_succeeds(self, alice):
        store = Mock()
        store.get_room_for_identity.side_effect = [StoreUnavailable(), None]
        sleep = Mock()
        coordinator = PairingCoordinator(store, retry_backoff_seconds=0.5, sleep=sleep)

        assert coordinator.status(alice) == NoRoomStatus()
        assert store.get_room_for_identity.call_count == 2
        sleep.assert_called_once_with(0.5)

    def test_second_failure_propagates(self, alice):
        store = Mock()
        store.get_room_for_identity.side_effect = StoreUnavailable()
        coordinator = PairingCoordinator(store, retry_backoff_seconds=0, sleep=Mock())

        with pytest.raises(StoreUnavailable):
            coordinator.status(alice)
        assert store.get_room_for_identity.call_count == 2

    def test_conflicts_are_not_retried(self, alice):
        store = Mock()
        store.create_room.side_effect = AlreadyInRoom()
        coordinator = PairingCoordinator(store, sleep=Mock())

        with pytest.raises(AlreadyInRoom):
            coordinator.create(alice)
        assert store.create_room.call_count == 1

    def test_join_retried_after_lost_reply_is_paired(self, store, clock, alice, bob):
        coordinator = PairingCoordinator(store, ttl_seconds=600, retry_backoff_seconds=0, clock=clock, sleep=Mock())
        code = coordinator.create(alice).code
        admit = store.admit_partner
        calls = []

        def admit_then_drop_first_reply(*args, **kwargs):
            room = admit(*args, **kwargs)
            calls.append(room.code)
            if len(calls) == 1:
                raise StoreUnavailable("reply lost after commit")
            return room

        store.admit_partner = admit_then_drop_first_reply

        status = coordinator.join(bob, code)

        assert status == PairedStatus(code=code, partner_name="Alice", partner_email="alice@example.com")
        assert len(calls) == 2
        assert coordinator.status(alice).partner_name == "Bob"


def test_create_records_clock_time(store, clock, alice):
    coordinator = PairingCoordinator(store, clock=clock)
    code = coordinator.create(alice).code

    assert store.get_room(code).created_at == START_TIME
