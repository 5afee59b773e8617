import dataclasses

import pytest

from uploader.buttons import build_buttons, parse_cancel_data
from uploader.coordinator import TransferCoordinator
from uploader.ids import lease_token
from uploader.state import ByteCounter, PolicyViolation, TransferState, TransferStatus


def test_byte_counter_bounded_by_total():
    c = ByteCounter(10)
    assert c.advance(4) == 4
    assert c.remaining == 6
    with pytest.raises(ValueError):
        c.advance(7)
    assert c.transferred == 4
    with pytest.raises(ValueError):
        c.advance(-1)


def test_transfer_state_transitions():
    st = TransferState("a.bin", ByteCounter(5))
    assert st.status is TransferStatus.NEGOTIATING and not st.streaming
    st.begin_streaming()
    assert st.streaming
    with pytest.raises(RuntimeError):
        st.begin_streaming()
    assert st.finish(TransferStatus.COMPLETED) is True
    assert st.finish(TransferStatus.FAILED) is False
    assert st.status is TransferStatus.COMPLETED
    with pytest.raises(ValueError):
        st.finish(TransferStatus.STREAMING)


def test_snapshot_percent():
    st = TransferState("a.bin", ByteCounter(200))
    st.counter.advance(50)
    snap = st.snapshot()
    assert snap.transferred == 50 and snap.total == 200
    assert snap.percent == 25.0


def test_policy_notices():
    assert PolicyViolation("empty", 0).notice == "⚠️ File is empty"
    assert PolicyViolation("too_large", 1).notice == "⚠️ File is too large"


def test_lease_token_stable_and_short():
    a1 = lease_token(1, 1000.5)
    assert a1 == lease_token(1, 1000.5)
    assert a1 != lease_token(1, 1000.6)
    assert a1 != lease_token(2, 1000.5)
    assert len(a1) == 8 and all(ch in "0123456789abcdef" for ch in a1)


def test_cancel_button_carries_lease_token():
    lease = TransferCoordinator().acquire(1, 10)
    rows = build_buttons(lease)
    button = rows[0][0]
    assert button.data == f"cancel:{lease.token}".encode()
    assert parse_cancel_data(button.data) == lease.token
    lease.cancel.fire()
    assert build_buttons(lease) is None


def test_parse_cancel_data_rejects_other_payloads():
    assert parse_cancel_data(b"pause:1234") is None
    assert parse_cancel_data(b"cancel:") is None


def test_transfer_state_fields():
    # the status message handle stays with the orchestrator
    names = [f.name for f in dataclasses.fields(TransferState)]
    assert names == ["name", "counter", "status", "lock"]
