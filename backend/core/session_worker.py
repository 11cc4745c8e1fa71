"""
Session Worker
Serial asyncio consumer that owns a SwingSession.

Frames are processed strictly in submission order by one task, so the
detector state has a single writer. Output is handed off as immutable
values on an outbound queue for consumers running elsewhere.
"""

import asyncio
import logging
from typing import Optional, Tuple, Any
from dataclasses import dataclass

from .pose_types import PoseFrame
from .swing_session import SwingDetectedEvent, SwingEventListener, SwingSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionMessage:
    """Outbound message: kind is 'swing_detected', 'pose' or 'status'"""
    kind: str
    payload: Any


class _QueueListener(SwingEventListener):
    """Forwards session callbacks to the outbound queue"""

    def __init__(self, queue: "asyncio.Queue[SessionMessage]", include_poses: bool):
        self._queue = queue
        self._include_poses = include_poses

    def on_swing_detected(self, event: SwingDetectedEvent) -> None:
        self._queue.put_nowait(SessionMessage("swing_detected", event))

    def on_pose_detected(self, frame: PoseFrame) -> None:
        if self._include_poses:
            self._queue.put_nowait(SessionMessage("pose", frame))

    def on_status(self, message: str) -> None:
        self._queue.put_nowait(SessionMessage("status", message))


_RESET = object()


class SessionWorker:
    """
    Runs a SwingSession on a dedicated task.

    Usage:
        worker = SessionWorker(SwingSession(calibration=store))
        worker.start()
        await worker.submit(frame)
        message = await worker.events.get()
        await worker.stop()
    """

    def __init__(self, session: SwingSession, include_poses: bool = False, max_pending: int = 0):
        self.session = session
        self._inbox: "asyncio.Queue" = asyncio.Queue(maxsize=max_pending)
        self.events: "asyncio.Queue[SessionMessage]" = asyncio.Queue()
        self._listener = _QueueListener(self.events, include_poses)
        self.session.add_listener(self._listener)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Session worker started")

    async def submit(self, frame: PoseFrame):
        await self._inbox.put(frame)

    async def request_reset(self):
        """Reset the session in order with already submitted frames"""
        await self._inbox.put(_RESET)

    async def drain(self):
        """Wait until every submitted frame has been processed"""
        await self._inbox.join()

    async def _run(self):
        while True:
            item = await self._inbox.get()
            try:
                if item is _RESET:
                    self.session.reset()
                else:
                    self.session.process_frame(item)
            except Exception:
                logger.error("Frame processing failed", exc_info=True)
                raise
            finally:
                self._inbox.task_done()

    async def stop(self):
        """Cancel processing and discard any swing in progress"""
        try:
            if self._task is not None:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    # Already logged by _run when the frame failed
                    logger.warning(f"Session worker had stopped on error: {e}")
        finally:
            self._task = None
            self.session.reset()
            self.session.remove_listener(self._listener)
            logger.debug("Session worker stopped")

    def drain_events(self) -> Tuple[SessionMessage, ...]:
        """Take every message currently queued without waiting"""
        messages = []
        while not self.events.empty():
            messages.append(self.events.get_nowait())
        return tuple(messages)
