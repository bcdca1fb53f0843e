"""
REPCOACH Coach Service Router

Endpoints for live workout sessions. Clients run pose estimation locally and
stream keypoints; the service answers with rep counts, feedback and speech
commands for the client's text-to-speech engine.
"""

import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, HTTPException
from pydantic import BaseModel, Field, ValidationError
from typing import Optional, List, Dict, Any

from shared.utils import success_response, now_ms
from .models import (
    ExerciseType,
    Keypoint,
    Pose,
    SessionLimitError,
    WorkoutSession,
    WorkoutSessionHandler,
    ANALYZER_INFO,
    get_session_handler,
    parse_exercise_type,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Service instance (singleton pattern)
_session_handler: Optional[WorkoutSessionHandler] = None


def get_services() -> WorkoutSessionHandler:
    """Get or initialize the session handler."""
    global _session_handler
    if _session_handler is None:
        _session_handler = get_session_handler()
    return _session_handler


# ============= Pydantic Models =============

class KeypointIn(BaseModel):
    name: str
    x: float
    y: float
    score: float = Field(0.0, ge=0.0, le=1.0)

    def to_keypoint(self) -> Keypoint:
        return Keypoint(name=self.name, x=self.x, y=self.y, score=self.score)


class PoseFrame(BaseModel):
    keypoints: Optional[List[KeypointIn]] = None  # None = no person detected
    timestamp: Optional[float] = None  # client wall clock in ms

    def to_keypoints(self) -> Optional[Pose]:
        if self.keypoints is None:
            return None
        return [kp.to_keypoint() for kp in self.keypoints]


class StreamMessage(PoseFrame):
    type: str = "FRAME"
    exercise_type: Optional[str] = None


class StartCaptureRequest(BaseModel):
    timestamp: Optional[float] = None  # client wall clock in ms; omit to use server time


class CreateSessionRequest(BaseModel):
    exercise_type: str = "pushups"


class ChangeExerciseRequest(BaseModel):
    exercise_type: str


# ============= Helpers =============

def _require_session(session_id: str) -> WorkoutSession:
    session = get_services().get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _exercise_or_400(value: str) -> ExerciseType:
    try:
        return parse_exercise_type(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _drain_speech(session: WorkoutSession) -> List[Dict[str, Any]]:
    drain = getattr(session.speech_sink, "drain", None)
    if drain is None:
        return []
    return [command.to_dict() for command in drain()]


def _start(session: WorkoutSession, timestamp: Optional[float]) -> str:
    if timestamp is None:
        return session.start_capture(now_ms())
    return session.start_capture(timestamp, client_clock=True)


def _process_frame(session: WorkoutSession, frame: PoseFrame) -> Dict[str, Any]:
    """
    Advance the session by one frame.

    Raises:
        ValueError: if a client-clocked capture receives a frame without timestamp
    """
    outcome = session.advance(frame.to_keypoints(), session.frame_time(frame.timestamp))
    response = outcome.to_dict()
    response["speech"] = _drain_speech(session)
    return response


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """List supported exercises and their rep thresholds."""
    return success_response(ANALYZER_INFO)


@router.post("/sessions")
async def create_session(request: CreateSessionRequest):
    """Create a workout session."""
    exercise_type = _exercise_or_400(request.exercise_type)
    try:
        session = get_services().create_session(exercise_type)
    except SessionLimitError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return success_response(
        {
            **session.to_dict(),
            "websocket_url": f"/api/coach/ws/sessions/{session.session_id}",
        },
        message="Session created",
    )


@router.get("/sessions/{session_id}")
async def get_session_status(session_id: str):
    session = _require_session(session_id)
    return success_response(session.to_dict(session.status_time()))


@router.post("/sessions/{session_id}/start")
async def start_capture(session_id: str, request: Optional[StartCaptureRequest] = None):
    """
    Start capturing: counters, timer and voice memory start fresh.

    With a client ``timestamp`` the capture runs on the client clock and every
    frame must carry a timestamp; otherwise server time is used throughout.
    """
    session = _require_session(session_id)
    message = _start(session, request.timestamp if request else None)
    return success_response(session.to_dict(session.status_time()), message=message)


@router.post("/sessions/{session_id}/stop")
async def stop_capture(session_id: str):
    """Stop capturing, cancel speech and reset counters."""
    session = _require_session(session_id)
    message = session.stop_capture()
    data = session.to_dict()
    data["speech"] = _drain_speech(session)
    return success_response(data, message=message)


@router.post("/sessions/{session_id}/exercise")
async def change_exercise(session_id: str, request: ChangeExerciseRequest):
    session = _require_session(session_id)
    exercise_type = _exercise_or_400(request.exercise_type)
    message = session.change_exercise(exercise_type)
    data = session.to_dict()
    data["speech"] = _drain_speech(session)
    return success_response(data, message=message)


@router.post("/sessions/{session_id}/reset")
async def reset_session(session_id: str):
    session = _require_session(session_id)
    session.reset()
    return success_response(session.to_dict(session.status_time()), message="Counters reset")


@router.post("/sessions/{session_id}/frame")
async def submit_frame(session_id: str, frame: PoseFrame):
    """Process a single pose frame (polling alternative to the WebSocket)."""
    session = _require_session(session_id)
    if not session.is_capturing:
        raise HTTPException(status_code=409, detail="Session is not capturing")
    try:
        return _process_frame(session, frame)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not get_services().cleanup_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return success_response({"session_id": session_id}, message="Session removed")


# ============= WebSocket Endpoints =============

@router.websocket("/ws/sessions/{session_id}")
async def workout_stream(websocket: WebSocket, session_id: str):
    """
    Real-time rep counting over streamed keypoints.

    Client messages (JSON):
        {"type": "FRAME", "keypoints": [...] | null, "timestamp": ms}
        {"type": "START", "timestamp": ms}  (timestamp optional: selects the client clock)
        {"type": "STOP"} / {"type": "RESET"}
        {"type": "EXERCISE", "exercise_type": "squats"}

    Server messages: CONNECTED, FRAME_RESULT, STATUS, SPEAK, CANCEL_SPEECH, ERROR
    """
    await websocket.accept()

    session = get_services().get_session(session_id)
    if not session:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    async def send_speech():
        for command in _drain_speech(session):
            await websocket.send_json(command)

    try:
        await websocket.send_json({
            "type": "CONNECTED",
            "session_id": session_id,
            "exercise_type": session.exercise_type.value,
        })

        while True:
            raw = await websocket.receive_text()

            try:
                message = StreamMessage.model_validate_json(raw)
            except ValidationError as e:
                await websocket.send_json({
                    "type": "ERROR",
                    "message": f"Invalid message: {e.errors()[0].get('msg', 'validation error')}"
                })
                continue

            try:
                kind = message.type.upper()
                if kind == "FRAME":
                    if not session.is_capturing:
                        await websocket.send_json({
                            "type": "ERROR",
                            "message": "Session is not capturing"
                        })
                        continue
                    try:
                        response = _process_frame(session, message)
                    except ValueError as e:
                        await websocket.send_json({"type": "ERROR", "message": str(e)})
                        continue
                    speech = response.pop("speech")
                    await websocket.send_json({"type": "FRAME_RESULT", **response})
                    for command in speech:
                        await websocket.send_json(command)
                    continue

                if kind == "START":
                    status = _start(session, message.timestamp)
                elif kind == "STOP":
                    status = session.stop_capture()
                elif kind == "RESET":
                    session.reset()
                    status = "Counters reset"
                elif kind == "EXERCISE":
                    try:
                        status = session.change_exercise(parse_exercise_type(message.exercise_type or ""))
                    except ValueError as e:
                        await websocket.send_json({"type": "ERROR", "message": str(e)})
                        continue
                else:
                    await websocket.send_json({
                        "type": "ERROR",
                        "message": f"Unknown message type: {message.type}"
                    })
                    continue

                await websocket.send_json({
                    "type": "STATUS",
                    "message": status,
                    **session.to_dict(session.status_time())
                })
                await send_speech()

            except WebSocketDisconnect:
                raise
            except Exception as e:
                logger.exception(f"Session {session_id} failed to handle {message.type}")
                await websocket.send_json({
                    "type": "ERROR",
                    "message": f"Processing error: {str(e)}"
                })

    except WebSocketDisconnect:
        logger.info(f"Session {session_id} disconnected")
    finally:
        if session.is_capturing:
            session.stop_capture()
