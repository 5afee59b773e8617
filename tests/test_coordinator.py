import asyncio

import pytest

from uploader.coordinator import CancelOutcome, TransferCoordinator
from uploader.state import ChatBusy


def test_acquire_is_exclusive_per_chat():
    c = TransferCoordinator()
    lease = c.acquire(1, 10)
    with pytest.raises(ChatBusy) as exc:
        c.acquire(1, 20)
    assert exc.value.owner_id == 10
    other = c.acquire(2, 20)  # other chats are independent
    assert c.get(1) is lease and c.get(2) is other
    assert len(c) == 2


def test_concurrent_acquire_single_winner():
    async def _inner():
        c = TransferCoordinator()

        async def attempt(uid):
            await asyncio.sleep(0)
            try:
                c.acquire(7, uid)
                return True
            except ChatBusy:
                return False

        results = await asyncio.gather(*(attempt(i) for i in range(25)))
        return results, c

    results, c = asyncio.run(_inner())
    assert results.count(True) == 1
    assert len(c) == 1


def test_release_is_idempotent_and_chat_reusable():
    c = TransferCoordinator()
    c.acquire(1, 10)
    assert c.release(1) is True
    assert c.release(1) is False
    assert 1 not in c
    lease = c.acquire(1, 20)
    assert lease.owner_id == 20


def test_release_ignores_stale_lease():
    c = TransferCoordinator()
    old = c.acquire(1, 10)
    c.release(1)
    new = c.acquire(1, 20)
    assert c.release(1, old) is False
    assert c.get(1) is new


def test_cancel_outcomes():
    c = TransferCoordinator()
    assert c.cancel(1, 10) is CancelOutcome.NOT_FOUND
    lease = c.acquire(1, 10)
    assert c.cancel(1, 99) is CancelOutcome.UNAUTHORIZED
    assert not lease.cancel.fired
    assert c.get(1) is lease
    assert c.cancel(1, 10) is CancelOutcome.SIGNALLED
    assert lease.cancel.fired
    # repeats are harmless and the lease stays until released
    assert c.cancel(1, 10) is CancelOutcome.SIGNALLED
    assert c.get(1) is lease


def test_cancel_with_stale_token_is_not_found():
    c = TransferCoordinator()
    lease = c.acquire(1, 10)
    assert c.cancel(1, 10, token=lease.token + "x") is CancelOutcome.NOT_FOUND
    assert not lease.cancel.fired
    assert c.cancel(1, 10, token=lease.token) is CancelOutcome.SIGNALLED


def test_owner_is_fixed():
    c = TransferCoordinator()
    lease = c.acquire(1, 10)
    with pytest.raises(AttributeError):
        lease.owner_id = 5
    assert lease.owner_id == 10


def test_hold_releases_on_error():
    c = TransferCoordinator()
    with pytest.raises(RuntimeError):
        with c.hold(3, 1):
            assert 3 in c
            raise RuntimeError("boom")
    assert 3 not in c


def test_hold_when_busy_keeps_existing_lease():
    c = TransferCoordinator()
    lease = c.acquire(3, 1)
    with pytest.raises(ChatBusy):
        with c.hold(3, 2):
            pass  # pragma: no cover
    assert c.get(3) is lease


def test_cancel_all_fires_each_signal_once():
    c = TransferCoordinator()
    a = c.acquire(1, 10)
    b = c.acquire(2, 20)
    a.cancel.fire()
    assert c.cancel_all() == 1
    assert a.cancel.fired and b.cancel.fired
