"""
Unit Tests for Swing Sessions and the asyncio Session Worker
"""

import asyncio

import pytest


def feed(session, frames):
    return [e for e in (session.process_frame(f) for f in frames) if e is not None]


class TestSwingSession:

    def test_forehand_emits_one_event(self, forehand_frames, listener):
        from core.swing_session import SwingSession
        from core.pose_types import SwingType

        session = SwingSession()
        session.add_listener(listener)
        events = feed(session, forehand_frames)

        assert len(events) == 1
        event = events[0]
        assert event.swing_type == SwingType.FOREHAND
        assert event.duration == pytest.approx(1.0)
        assert event.timestamp == pytest.approx(35 / 30)
        assert not event.calibrated

        assert listener.swings == events
        assert len(listener.poses) == len(forehand_frames)
        assert len(listener.statuses) == 1
        assert listener.statuses[0].startswith("forehand detected! Speed:")
        assert session.swings_detected == 1
        assert session.frames_processed == len(forehand_frames)

    def test_serve_emits_serve(self, serve_frames, listener):
        from core.swing_session import SwingSession
        from core.pose_types import SwingType

        session = SwingSession()
        session.add_listener(listener)
        feed(session, serve_frames)

        assert [e.swing_type for e in listener.swings] == [SwingType.SERVE]

    def test_too_long_swing_is_discarded(self, long_swing_frames, listener):
        """A 2.5s swing completes in the detector but emits nothing"""
        from core.swing_session import SwingSession
        from core.pose_types import SwingPhase

        session = SwingSession()
        session.add_listener(listener)
        events = feed(session, long_swing_frames)

        assert events == []
        assert listener.swings == []
        assert listener.statuses == []
        assert session.swings_discarded == 1
        assert session.detector.phase == SwingPhase.IDLE
        # The discarded swing is still visible as the last swing
        assert session.get_swing_metrics().duration == pytest.approx(2.5)

    def test_detector_reset_after_each_swing(self, forehand_frames, motion_frames, swing_velocities, listener):
        """Two swings back to back produce two events"""
        from core.swing_session import SwingSession

        session = SwingSession()
        session.add_listener(listener)
        feed(session, forehand_frames)
        t0 = forehand_frames[-1].timestamp + 1 / 30
        last = forehand_frames[-1].wrist
        feed(session, motion_frames((last.x, last.y), swing_velocities["forehand"], t0=t0))

        assert len(listener.swings) == 2

    def test_reset_discards_swing_in_progress(self, forehand_frames, listener):
        from core.swing_session import SwingSession
        from core.pose_types import SwingPhase

        session = SwingSession()
        session.add_listener(listener)
        feed(session, forehand_frames[:20])
        session.reset()
        feed(session, forehand_frames[20:])

        assert listener.swings == []
        assert session.detector.phase == SwingPhase.IDLE

    def test_calibrated_session_uses_bank(self, forehand_frames, listener):
        from core.calibration import CalibrationStore
        from core.swing_session import SwingSession
        from core.pose_types import SwingMetrics, SwingType

        store = CalibrationStore()
        exemplar = SwingMetrics(
            max_speed=900.0, amplitude=40.0, duration=1.0,
            path=((0.61, 0.5), (0.4, 0.5), (0.22, 0.5))
        )
        store.add(exemplar, SwingType.FOREHAND)

        session = SwingSession(calibration=store)
        session.add_listener(listener)
        feed(session, forehand_frames)

        assert listener.swings[0].calibrated
        assert listener.swings[0].swing_type == SwingType.FOREHAND

    def test_removed_listener_gets_nothing(self, forehand_frames, listener):
        from core.swing_session import SwingSession

        session = SwingSession()
        session.add_listener(listener)
        session.remove_listener(listener)
        feed(session, forehand_frames)

        assert listener.swings == []
        assert listener.poses == []

    def test_metrics_snapshot_while_swinging(self, forehand_frames):
        from core.swing_session import SwingSession

        session = SwingSession()
        feed(session, forehand_frames[:15])

        snapshot = session.get_swing_metrics()
        assert snapshot.duration == pytest.approx(9 / 30)
        feed(session, forehand_frames[15:20])
        # Snapshots are values, not views
        assert snapshot.duration == pytest.approx(9 / 30)
        assert session.debug_info() is not None

    def test_event_to_dict(self, forehand_frames):
        from core.swing_session import SwingSession

        event = feed(SwingSession(), forehand_frames)[0]
        data = event.to_dict()
        assert data["swing_type"] == "forehand"
        assert data["calibrated"] is False
        assert len(data["metrics"]["path"]) == 31


class TestSessionWorker:

    def test_frames_processed_in_order(self, forehand_frames):
        from core.session_worker import SessionWorker
        from core.swing_session import SwingSession

        async def scenario():
            worker = SessionWorker(SwingSession())
            worker.start()
            for frame in forehand_frames:
                await worker.submit(frame)
            await worker.drain()
            messages = worker.drain_events()
            await worker.stop()
            return messages

        messages = asyncio.run(scenario())
        assert [m.kind for m in messages] == ["swing_detected", "status"]
        assert messages[0].payload.swing_type.value == "forehand"

    def test_poses_forwarded_when_requested(self, forehand_frames):
        from core.session_worker import SessionWorker
        from core.swing_session import SwingSession

        async def scenario():
            worker = SessionWorker(SwingSession(), include_poses=True)
            worker.start()
            for frame in forehand_frames[:10]:
                await worker.submit(frame)
            await worker.drain()
            messages = worker.drain_events()
            await worker.stop()
            return messages

        messages = asyncio.run(scenario())
        assert [m.kind for m in messages] == ["pose"] * 10
        assert messages[0].payload is forehand_frames[0]

    def test_reset_is_ordered_with_frames(self, forehand_frames):
        """A reset submitted mid-swing cancels it"""
        from core.session_worker import SessionWorker
        from core.swing_session import SwingSession

        async def scenario():
            worker = SessionWorker(SwingSession())
            worker.start()
            for frame in forehand_frames[:20]:
                await worker.submit(frame)
            await worker.request_reset()
            for frame in forehand_frames[20:]:
                await worker.submit(frame)
            await worker.drain()
            messages = worker.drain_events()
            await worker.stop()
            return messages

        assert asyncio.run(scenario()) == ()

    def test_stop_after_listener_failure(self, forehand_frames):
        """A listener error ends the worker; stop() still cleans up"""
        from core.session_worker import SessionWorker
        from core.swing_session import SwingEventListener, SwingSession
        from core.pose_types import SwingPhase

        class BrokenListener(SwingEventListener):
            def on_status(self, message):
                raise RuntimeError("listener broke")

        session = SwingSession()

        async def scenario():
            worker = SessionWorker(session)
            session.add_listener(BrokenListener())
            worker.start()
            for frame in forehand_frames:
                await worker.submit(frame)
            while worker.running:
                await asyncio.sleep(0)
            await worker.stop()
            return worker

        worker = asyncio.run(scenario())
        assert worker.running is False
        assert session.detector.phase == SwingPhase.IDLE
        assert worker._listener not in session._listeners

    def test_stop_resets_session(self, forehand_frames):
        from core.session_worker import SessionWorker
        from core.swing_session import SwingSession
        from core.pose_types import SwingPhase

        session = SwingSession()

        async def scenario():
            worker = SessionWorker(session)
            worker.start()
            for frame in forehand_frames[:12]:
                await worker.submit(frame)
            await worker.drain()
            await worker.stop()
            return worker.running

        assert asyncio.run(scenario()) is False
        assert session.detector.phase == SwingPhase.IDLE
