import asyncio

from uploader.progress import ProgressReporter, progress_text
from uploader.state import ByteCounter, ProgressSnapshot, TransferState, TransferStatus


def _streaming_state(total=100):
    st = TransferState("f.bin", ByteCounter(total))
    st.begin_streaming()
    return st


def test_progress_text():
    text = progress_text("a.zip", ProgressSnapshot(512, 1024, 0.0))
    assert "a.zip" in text
    assert "50.00%" in text
    assert "512.0 B / 1.0 KB" in text


def test_tick_skips_while_render_outstanding():
    async def _inner():
        st = _streaming_state()
        gate = asyncio.Event()
        seen = []

        async def render(snap):
            seen.append(snap.transferred)
            await gate.wait()

        rep = ProgressReporter(st, render, interval=60)
        assert rep.tick() is True
        await asyncio.sleep(0)
        st.counter.advance(10)
        assert rep.tick() is False  # previous render still in flight
        gate.set()
        await rep.stop()
        st.counter.advance(20)
        assert rep.tick() is True  # newest value on the next free tick
        await rep.stop()
        return rep, seen

    rep, seen = asyncio.run(_inner())
    assert seen == [0, 30]
    assert rep.emitted == 2 and rep.skipped == 1


def test_no_render_after_terminal_status():
    async def _inner():
        st = _streaming_state()
        calls = []

        async def render(snap):
            calls.append(snap)

        rep = ProgressReporter(st, render, interval=60)
        st.finish(TransferStatus.COMPLETED)
        rep.tick()
        await rep.stop()
        return rep, calls

    rep, calls = asyncio.run(_inner())
    assert calls == [] and rep.emitted == 0


def test_final_status_waits_for_inflight_render():
    async def _inner():
        st = _streaming_state()
        order = []

        async def render(snap):
            order.append("render-start")
            await asyncio.sleep(0.02)
            order.append("render-end")

        rep = ProgressReporter(st, render, interval=60)
        rep.tick()
        await asyncio.sleep(0)
        st.finish(TransferStatus.CANCELLED)
        async with st.lock:
            order.append("final")
        await rep.stop()
        return order

    assert asyncio.run(_inner()) == ["render-start", "render-end", "final"]


def test_ticker_throttles_and_stops_with_transfer():
    async def _inner():
        st = _streaming_state(1000)
        stamps = []

        async def render(snap):
            stamps.append(asyncio.get_running_loop().time())

        rep = ProgressReporter(st, render, interval=0.03)
        rep.start()
        for _ in range(10):
            st.counter.advance(10)
            await asyncio.sleep(0.012)
        st.finish(TransferStatus.COMPLETED)
        emitted = rep.emitted
        await asyncio.sleep(0.1)
        running = rep.running
        await rep.stop()
        return stamps, emitted, rep.emitted, running

    stamps, before, after, running = asyncio.run(_inner())
    assert 1 <= before <= 5
    assert after == before  # nothing once the transfer left STREAMING
    assert not running
    gaps = [b - a for a, b in zip(stamps, stamps[1:])]
    assert all(g >= 0.02 for g in gaps)


def test_render_errors_are_swallowed():
    async def _inner():
        st = _streaming_state()

        async def render(snap):
            raise RuntimeError("message gone")

        rep = ProgressReporter(st, render, interval=60)
        rep.tick()
        await rep.stop()
        return rep

    assert asyncio.run(_inner()).emitted == 0
