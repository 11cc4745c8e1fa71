"""
FastAPI Application - SwingSense Live Swing API
Streams pose frames into per-connection swing sessions and exposes the
calibration bank over REST.
"""

import time
import uuid
import asyncio
import logging
from dataclasses import asdict
from contextlib import asynccontextmanager
from enum import Enum
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from config import get_thresholds
from config.settings import get_settings, Settings
from config.thresholds import ThresholdConfig
from core.calibration import CalibrationStore, summarize_scores
from core.calibration_storage import JsonFileStorage
from core.motion_classifier import classify_swing, explain_swing
from core.pose_types import PoseFrame, SwingMetrics, SwingType
from core.session_worker import SessionMessage, SessionWorker
from core.swing_recorder import SwingRecorder
from core.swing_session import SwingSession
from exceptions import (
    SwingSenseException,
    SessionNotFound,
    InvalidSwingLabel,
    InsufficientSwingData,
)
from logging_config import setup_logging, set_session_id, StructuredLogger, LogTimer
from middleware.error_handler import setup_error_handlers
from middleware.performance import PerformanceMiddleware

settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_JSON, settings.LOG_FILE or None)
logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class JointModel(BaseModel):
    x: float = Field(..., description="Horizontal position (0=left, 1=right)")
    y: float = Field(..., description="Vertical position (0=top, 1=bottom)")
    confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: Optional[float] = Field(None, description="Defaults to the frame timestamp")


class PoseFrameModel(BaseModel):
    """One pose observation; any joint may be missing"""
    timestamp: float = Field(..., description="Capture time in seconds")
    wrist: Optional[JointModel] = None
    elbow: Optional[JointModel] = None
    shoulder: Optional[JointModel] = None
    hip: Optional[JointModel] = None

    def to_frame(self) -> PoseFrame:
        return PoseFrame.from_dict(self.model_dump(exclude_none=True))


class SwingMetricsModel(BaseModel):
    max_speed: float = Field(..., ge=0.0, description="Peak wrist speed in px/s")
    amplitude: float = Field(0.0, ge=0.0, description="Backswing horizontal spread in px")
    duration: float = Field(..., ge=0.0, description="Swing duration in seconds")
    path: List[Tuple[float, float]] = Field(default_factory=list, description="Normalized wrist path")

    def to_metrics(self) -> SwingMetrics:
        return SwingMetrics(
            max_speed=self.max_speed,
            amplitude=self.amplitude,
            duration=self.duration,
            path=tuple(self.path),
        )


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class CalibrationSummaryResponse(BaseModel):
    calibrated: bool
    counts: Dict[str, int]
    summary: str


class CalibrationAddResponse(CalibrationSummaryResponse):
    label: str
    pattern: Dict[str, float]


class ClassifyResponse(BaseModel):
    swing_type: str
    calibrated: bool
    reason: Optional[str] = None
    scores: Optional[Dict[str, float]] = None


class SessionStatsResponse(BaseModel):
    session_id: str
    frames_processed: int
    swings_detected: int
    swings_discarded: int


class SessionMetricsResponse(SessionStatsResponse):
    metrics: Dict
    debug: Optional[Dict] = None


class MessageType(str, Enum):
    """WebSocket message types"""
    # Client -> server
    FRAME = "frame"
    RESET = "reset"
    CALIBRATE = "calibrate"
    END_SESSION = "end_session"
    # Server -> client
    SESSION_STARTED = "session_started"
    SWING_DETECTED = "swing_detected"
    CALIBRATION_ADDED = "calibration_added"
    STATUS = "status"
    SESSION_ENDED = "session_ended"
    ERROR = "error"


def parse_label(label: str) -> SwingType:
    """Map a path/message label to a calibratable SwingType"""
    allowed = [t.value for t in SwingType.calibratable()]
    if label not in allowed:
        raise InvalidSwingLabel(label, allowed)
    return SwingType(label)


def calibration_summary(store: CalibrationStore) -> Dict:
    return {
        "calibrated": store.has_calibration(),
        "counts": store.counts(),
        "summary": store.summary,
    }


def session_stats(session_id: str, session: SwingSession) -> Dict:
    return {
        "session_id": session_id,
        "frames_processed": session.frames_processed,
        "swings_detected": session.swings_detected,
        "swings_discarded": session.swings_discarded,
    }


router = APIRouter()


# =============================================================================
# Health Check Endpoints
# =============================================================================

@router.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    return HealthResponse(status="ok", service=settings.APP_NAME, version=settings.APP_VERSION)


@router.get("/health", tags=["Health"])
async def health():
    """Simple health check for load balancers."""
    return {"status": "healthy"}


@router.get("/health/live", tags=["Health"])
async def health_live():
    return {"status": "alive"}


# =============================================================================
# Calibration Endpoints
# =============================================================================

@router.get("/api/calibration", response_model=CalibrationSummaryResponse, tags=["Calibration"])
async def get_calibration(request: Request):
    """Exemplar counts per label."""
    return calibration_summary(request.app.state.calibration)


# Declared before the {label} route so "classify" is not taken as a label
@router.post("/api/calibration/classify", response_model=ClassifyResponse, tags=["Calibration"])
async def classify_calibrated(request: Request, body: SwingMetricsModel):
    """
    Nearest-exemplar label with the best score per label.

    An empty bank scores 0 everywhere and yields "unknown".
    """
    store: CalibrationStore = request.app.state.calibration
    metrics = body.to_metrics()
    start_x = metrics.path[0][0] if metrics.path else None
    scores = store.scores(metrics, start_x)
    return ClassifyResponse(
        swing_type=store.classify(metrics, start_x).value,
        calibrated=store.has_calibration(),
        scores=dict(summarize_scores(scores)),
    )


@router.post("/api/calibration/{label}", response_model=CalibrationAddResponse, tags=["Calibration"])
async def add_calibration(request: Request, label: str, body: SwingMetricsModel):
    """
    Store a swing under a forced label.

    - **label**: forehand, backhand or serve
    """
    swing_type = parse_label(label)
    store: CalibrationStore = request.app.state.calibration

    pattern = store.add(body.to_metrics(), swing_type)
    if pattern is None:
        raise InsufficientSwingData()

    return CalibrationAddResponse(
        label=swing_type.value,
        pattern=pattern.to_dict(),
        **calibration_summary(store)
    )


@router.delete("/api/calibration", response_model=CalibrationSummaryResponse, tags=["Calibration"])
async def clear_calibration(request: Request):
    store: CalibrationStore = request.app.state.calibration
    store.clear()
    return calibration_summary(store)


# =============================================================================
# Classification Endpoint
# =============================================================================

@router.post("/api/classify", response_model=ClassifyResponse, tags=["Classification"])
async def classify(request: Request, body: SwingMetricsModel):
    """
    Label a completed swing. Uses the calibration bank when it holds
    exemplars, the path heuristic otherwise.
    """
    store: CalibrationStore = request.app.state.calibration
    thresholds: ThresholdConfig = request.app.state.thresholds
    metrics = body.to_metrics()

    if store.has_calibration():
        return ClassifyResponse(
            swing_type=classify_swing(metrics, store, thresholds).value,
            calibrated=True,
        )

    result = explain_swing(metrics, thresholds.heuristic, thresholds.history)
    return ClassifyResponse(swing_type=result.swing_type.value, calibrated=False, reason=result.reason)


# =============================================================================
# Training Data Endpoints
# =============================================================================

@router.get("/api/training", tags=["Training"])
async def get_training_summary(request: Request):
    recorder: SwingRecorder = request.app.state.recorder
    return {"counts": recorder.counts(), "summary": recorder.summary()}


@router.get("/api/training/export", tags=["Training"])
async def export_training_data(request: Request):
    """All labeled recordings as a JSON array."""
    recorder: SwingRecorder = request.app.state.recorder
    return [
        {"label": r.label, "session_id": r.session_id, "timestamp": r.timestamp,
         "pose_frames": [asdict(f) for f in r.pose_frames]}
        for r in recorder.recordings
    ]


@router.delete("/api/training", tags=["Training"])
async def clear_training_data(request: Request):
    recorder: SwingRecorder = request.app.state.recorder
    recorder.clear()
    return {"counts": recorder.counts(), "summary": recorder.summary()}


# =============================================================================
# Live Session Endpoints
# =============================================================================

@router.get("/api/sessions", tags=["Sessions"])
async def list_sessions(request: Request):
    """Live WebSocket sessions."""
    sessions: Dict[str, SwingSession] = request.app.state.sessions
    return {"sessions": [session_stats(sid, s) for sid, s in sessions.items()]}


@router.get("/api/sessions/{session_id}/metrics", response_model=SessionMetricsResponse, tags=["Sessions"])
async def get_session_metrics(request: Request, session_id: str):
    """Current swing metrics, or the last completed swing when idle."""
    session = request.app.state.sessions.get(session_id)
    if session is None:
        raise SessionNotFound(session_id)

    debug = session.debug_info()
    return SessionMetricsResponse(
        metrics=session.get_swing_metrics().to_dict(),
        debug=debug.to_dict() if debug else None,
        **session_stats(session_id, session)
    )


# =============================================================================
# WebSocket Session
# =============================================================================

class ConnectionState:
    """Per-connection mutable state owned by the socket handler"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.calibration_label: Optional[SwingType] = None


async def send_message(websocket: WebSocket, msg_type: MessageType, data: Dict) -> None:
    await websocket.send_json({
        "type": msg_type.value,
        "data": data,
        "timestamp": int(time.time() * 1000)
    })


async def forward_events(websocket: WebSocket, worker: SessionWorker, conn: ConnectionState) -> None:
    """Relay worker output to the client until cancelled"""
    while True:
        message: SessionMessage = await worker.events.get()
        try:
            if message.kind == "swing_detected":
                await send_message(websocket, MessageType.SWING_DETECTED, message.payload.to_dict())
                if conn.calibration_label is not None:
                    await capture_calibration_swing(websocket, conn, message.payload.metrics)
            elif message.kind == "status":
                await send_message(websocket, MessageType.STATUS, {"message": message.payload})
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Stopped forwarding events: {e}")
            return
        finally:
            worker.events.task_done()


async def capture_calibration_swing(websocket: WebSocket, conn: ConnectionState, metrics: SwingMetrics):
    """Store a detected swing under the connection's forced label"""
    label = conn.calibration_label
    app_state = websocket.app.state
    try:
        pattern = app_state.calibration.add(metrics, label)
        app_state.recorder.complete(label)
        app_state.recorder.start()
    except SwingSenseException as e:
        await send_message(websocket, MessageType.ERROR, e.to_dict())
        return

    await send_message(websocket, MessageType.CALIBRATION_ADDED, {
        "label": label.value,
        "stored": pattern is not None,
        "training_summary": app_state.recorder.summary(),
        **calibration_summary(app_state.calibration)
    })


async def handle_calibrate(websocket: WebSocket, conn: ConnectionState, data: Dict) -> None:
    """Enter calibration mode for a label, or leave it with label=null"""
    recorder: SwingRecorder = websocket.app.state.recorder
    label = data.get("label")
    if label is None:
        conn.calibration_label = None
        recorder.cancel()
        await send_message(websocket, MessageType.STATUS, {"message": "Calibration stopped"})
        return

    try:
        conn.calibration_label = parse_label(label)
    except InvalidSwingLabel as e:
        await send_message(websocket, MessageType.ERROR, e.to_dict())
        return

    recorder.start()
    await send_message(
        websocket,
        MessageType.STATUS,
        {"message": f"Calibrating {label}. {websocket.app.state.calibration.summary}"}
    )


@router.websocket("/ws/session")
async def session_socket(websocket: WebSocket):
    """
    Live swing detection over one connection.

    Message format (client -> server):
        {"type": "frame", "data": {"timestamp": 1.25, "wrist": {"x": .., "y": .., "confidence": ..}, ...}}
        {"type": "reset"}
        {"type": "calibrate", "data": {"label": "forehand" | null}}
        {"type": "end_session"}

    Message format (server -> client):
        {"type": "swing_detected", "data": {...}, "timestamp": 1704067200025}
    """
    app_state = websocket.app.state
    await websocket.accept()

    conn = ConnectionState(str(uuid.uuid4())[:8])
    set_session_id(conn.session_id)
    log = StructuredLogger(__name__, {"client": websocket.client.host if websocket.client else None})

    session = SwingSession(calibration=app_state.calibration, thresholds=app_state.thresholds)
    worker = SessionWorker(session)
    worker.start()
    app_state.sessions[conn.session_id] = session
    forwarder = asyncio.create_task(forward_events(websocket, worker, conn))
    log.info("Session started")

    try:
        await send_message(websocket, MessageType.SESSION_STARTED, {
            "session_id": conn.session_id,
            **calibration_summary(app_state.calibration)
        })

        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await send_message(websocket, MessageType.ERROR, {"error": "Invalid JSON"})
                continue

            msg_type = message.get("type") if isinstance(message, dict) else None

            if msg_type == MessageType.FRAME.value:
                try:
                    frame = PoseFrameModel.model_validate(message.get("data") or {}).to_frame()
                except PydanticValidationError as e:
                    await send_message(websocket, MessageType.ERROR, {
                        "error": "Invalid frame",
                        "details": [
                            {"field": ".".join(str(loc) for loc in err.get("loc", [])), "message": err.get("msg", "")}
                            for err in e.errors()
                        ]
                    })
                    continue
                if not worker.running:
                    await send_message(websocket, MessageType.ERROR, {"error": "Session worker stopped"})
                    break
                if conn.calibration_label is not None:
                    app_state.recorder.add_frame(frame)
                await worker.submit(frame)

            elif msg_type == MessageType.RESET.value:
                await worker.request_reset()

            elif msg_type == MessageType.CALIBRATE.value:
                await handle_calibrate(websocket, conn, message.get("data") or {})

            elif msg_type == MessageType.END_SESSION.value:
                if worker.running:
                    await worker.drain()
                    await worker.events.join()
                await send_message(
                    websocket,
                    MessageType.SESSION_ENDED,
                    session_stats(conn.session_id, session)
                )
                break

            else:
                await send_message(websocket, MessageType.ERROR, {"error": f"Unknown message type: {msg_type}"})

    except WebSocketDisconnect:
        log.info("Client disconnected")
    finally:
        app_state.sessions.pop(conn.session_id, None)
        if conn.calibration_label is not None:
            app_state.recorder.cancel()
        forwarder.cancel()
        try:
            await forwarder
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.warning("Event forwarding failed", error=str(e))
        await worker.stop()
        log.info(
            "Session closed",
            frames=session.frames_processed,
            swings=session.swings_detected
        )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    app_settings: Optional[Settings] = None,
    calibration: Optional[CalibrationStore] = None,
    recorder: Optional[SwingRecorder] = None,
    thresholds: Optional[ThresholdConfig] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Stores default to JSON files under CALIBRATION_DIR / TRAINING_DATA_DIR
    and are loaded on startup.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        with LogTimer(logger, "Calibration load"):
            app.state.calibration.load()
        app.state.recorder.load()
        logger.info(f"{app.state.recorder.summary()}")
        yield
        app.state.sessions.clear()

    app = FastAPI(
        title=app_settings.APP_NAME,
        description="Live swing detection and classification from pose streams",
        version=app_settings.APP_VERSION,
        docs_url="/docs" if app_settings.DEBUG else None,
        redoc_url="/redoc" if app_settings.DEBUG else None,
        openapi_url="/openapi.json" if app_settings.DEBUG else None,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials=app_settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID"],
        max_age=3600,
    )
    app.add_middleware(PerformanceMiddleware)
    setup_error_handlers(app)

    app.state.thresholds = thresholds or get_thresholds()
    app.state.calibration = calibration if calibration is not None else CalibrationStore(
        JsonFileStorage(app_settings.CALIBRATION_DIR),
        app.state.thresholds.calibration,
        app.state.thresholds.history
    )
    app.state.recorder = recorder if recorder is not None else SwingRecorder(
        JsonFileStorage(app_settings.TRAINING_DATA_DIR),
        app.state.thresholds.recorder
    )
    app.state.sessions = {}

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
