"""
REPCOACH Coach Service - Workout Session Handler

Frame-driven workout sessions: one analyzer per exercise, the voice
coordinator and the capture lifecycle (start, stop, exercise switch).
The host owns the frame loop and calls ``advance`` once per frame.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from core.config import settings
from shared.utils import format_elapsed, now_ms as server_now_ms
from .pose_geometry import Pose
from .exercise_analyzer import (
    AnalysisResult,
    ExerciseAnalyzer,
    ExerciseType,
    create_analyzer,
)
from .voice_coordinator import SpeechSink, QueuedSpeechSink, VoiceCoordinator

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Capture states of a workout session."""
    IDLE = "idle"
    CAPTURING = "capturing"
    STOPPED = "stopped"


class SessionClock(Enum):
    """Which clock a capture's frame times come from."""
    SERVER = "server"
    CLIENT = "client"


START_MESSAGE = "Camera started. Get in position."
STOP_MESSAGE = "Camera stopped."
DEFAULT_MESSAGE = "Select an exercise and start camera."


@dataclass
class FrameOutcome:
    """Everything the host needs after one frame."""
    result: Optional[AnalysisResult]
    reps: int
    feedback: str
    feedback_changed: bool
    spoken: Optional[str] = None
    elapsed: str = "00:00"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pose_detected": self.result is not None,
            "reps": self.reps,
            "feedback": self.feedback,
            "feedback_changed": self.feedback_changed,
            "stage": self.result.stage.value if self.result else None,
            "voice_feedback": self.result.voice_feedback if self.result else None,
            "spoken": self.spoken,
            "elapsed": self.elapsed,
        }


@dataclass
class WorkoutSession:
    """
    A single user's live workout.

    Owns an analyzer per exercise (never shared with other sessions) and the
    voice coordinator's memory. ``reset`` clears all of it.
    """
    session_id: str
    exercise_type: ExerciseType = ExerciseType.PUSHUPS
    state: SessionState = SessionState.IDLE
    speech_sink: SpeechSink = field(default_factory=QueuedSpeechSink)
    history_size: Optional[int] = None

    analyzers: Dict[ExerciseType, ExerciseAnalyzer] = field(default_factory=dict)
    voice: Optional[VoiceCoordinator] = None

    # Display state
    reps: int = 0
    feedback: str = DEFAULT_MESSAGE
    capture_started_ms: Optional[float] = None
    clock: SessionClock = SessionClock.SERVER
    last_frame_ms: Optional[float] = None
    frames_processed: int = 0

    def __post_init__(self):
        if not self.analyzers:
            self.analyzers = {
                exercise: create_analyzer(exercise, self.history_size)
                for exercise in ExerciseType
            }
        if self.voice is None:
            self.voice = VoiceCoordinator(sink=self.speech_sink)

    @property
    def analyzer(self) -> ExerciseAnalyzer:
        return self.analyzers[self.exercise_type]

    @property
    def is_capturing(self) -> bool:
        return self.state == SessionState.CAPTURING

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def reset(self):
        """Reset every exercise's counting state and the spoken history."""
        for analyzer in self.analyzers.values():
            analyzer.reset()
        self.voice.reset()
        self.reps = 0
        self.frames_processed = 0
        logger.debug(f"Session {self.session_id} reset")

    def start_capture(self, now_ms: float, client_clock: bool = False) -> str:
        """
        Begin a fresh capture: counters and timer start from zero.

        Args:
            now_ms: Capture start time in milliseconds
            client_clock: True if ``now_ms`` is a client timestamp; every frame
                of this capture must then carry one on the same clock
        """
        self.reset()
        self.state = SessionState.CAPTURING
        self.capture_started_ms = now_ms
        self.clock = SessionClock.CLIENT if client_clock else SessionClock.SERVER
        self.last_frame_ms = now_ms
        self.feedback = START_MESSAGE
        logger.info(f"Session {self.session_id} capturing {self.exercise_type.label} ({self.clock.value} clock)")
        return self.feedback

    def stop_capture(self) -> str:
        """Stop capturing: cancel speech, clear the timer, reset state."""
        self.voice.cancel()
        self.capture_started_ms = None
        self.clock = SessionClock.SERVER
        self.last_frame_ms = None
        self.state = SessionState.STOPPED
        self.feedback = STOP_MESSAGE
        self.reset()
        logger.info(f"Session {self.session_id} stopped")
        return self.feedback

    def change_exercise(self, exercise_type: ExerciseType) -> str:
        """Switch exercise. A running capture is stopped first."""
        if self.is_capturing:
            self.stop_capture()
        self.exercise_type = exercise_type
        self.reset()
        self.feedback = f"Selected {exercise_type.label}. Press start."
        return self.feedback

    def elapsed_seconds(self, now_ms: float) -> int:
        if self.capture_started_ms is None:
            return 0
        return max(0, int((now_ms - self.capture_started_ms) // 1000))

    def frame_time(self, timestamp: Optional[float] = None) -> float:
        """
        Resolve a frame's time on the clock the capture was started with.

        Server-clocked captures ignore client timestamps.

        Raises:
            ValueError: if the capture is client-clocked and no timestamp was sent
        """
        if self.clock == SessionClock.SERVER:
            return server_now_ms()
        if timestamp is None:
            raise ValueError("Frame timestamp required: capture was started on the client clock")
        return timestamp

    def status_time(self) -> Optional[float]:
        """Latest known time on the capture's clock, for status snapshots."""
        if self.clock == SessionClock.CLIENT:
            return self.last_frame_ms
        return server_now_ms()

    # ═══════════════════════════════════════════════════════════════════════
    # FRAME PROCESSING
    # ═══════════════════════════════════════════════════════════════════════

    def advance(self, keypoints: Optional[Pose], now_ms: float) -> FrameOutcome:
        """
        Process one frame.

        Args:
            keypoints: Joints of the detected pose, or None if nobody was detected
            now_ms: Wall-clock time of the frame in milliseconds

        Returns:
            FrameOutcome with counts, display feedback and any utterance spoken
        """
        self.last_frame_ms = now_ms
        elapsed = format_elapsed(self.elapsed_seconds(now_ms))

        if keypoints is None:
            return FrameOutcome(
                result=None,
                reps=self.reps,
                feedback=self.feedback,
                feedback_changed=False,
                elapsed=elapsed,
            )

        result = self.analyzer.analyse(keypoints)
        self.frames_processed += 1

        feedback_changed = result.feedback != self.feedback
        self.feedback = result.feedback
        if result.reps > self.reps:
            self.reps = result.reps

        spoken = self.voice.update(result, now_ms)

        return FrameOutcome(
            result=result,
            reps=self.reps,
            feedback=self.feedback,
            feedback_changed=feedback_changed,
            spoken=spoken,
            elapsed=elapsed,
        )

    def to_dict(self, now_ms: float = None) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        analyzer_state = self.analyzer.state
        return {
            "session_id": self.session_id,
            "exercise_type": self.exercise_type.value,
            "state": self.state.value,
            "clock": self.clock.value,
            "reps": self.reps,
            "stage": analyzer_state.stage.value,
            "is_ready": analyzer_state.is_ready,
            "feedback": self.feedback,
            "frames_processed": self.frames_processed,
            "elapsed": format_elapsed(self.elapsed_seconds(now_ms)) if now_ms is not None else "00:00",
        }


class SessionLimitError(RuntimeError):
    """Raised when no more sessions can be created."""


class WorkoutSessionHandler:
    """
    Keeps the live workout sessions.

    Every session gets its own analyzers and voice memory so concurrent
    users never interfere.
    """

    def __init__(self, max_sessions: int = None):
        self.max_sessions = max_sessions or settings.MAX_SESSIONS
        self.active_sessions: Dict[str, WorkoutSession] = {}

    def create_session(
        self,
        exercise_type: ExerciseType = ExerciseType.PUSHUPS,
        speech_sink: Optional[SpeechSink] = None
    ) -> WorkoutSession:
        """
        Create a new workout session.

        Raises:
            SessionLimitError: if MAX_SESSIONS sessions are already active
        """
        if len(self.active_sessions) >= self.max_sessions:
            raise SessionLimitError(f"Maximum of {self.max_sessions} sessions reached")

        session_id = str(uuid.uuid4())[:8]
        session = WorkoutSession(
            session_id=session_id,
            exercise_type=exercise_type,
            speech_sink=speech_sink or QueuedSpeechSink(),
        )
        self.active_sessions[session_id] = session
        logger.info(f"Created session {session_id} ({exercise_type.label})")
        return session

    def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def list_sessions(self) -> List[WorkoutSession]:
        return list(self.active_sessions.values())

    def cleanup_session(self, session_id: str) -> bool:
        """Stop and remove a session. Returns False if it did not exist."""
        session = self.active_sessions.pop(session_id, None)
        if session is None:
            return False
        if session.is_capturing:
            session.stop_capture()
        logger.info(f"Removed session {session_id}")
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[WorkoutSessionHandler] = None

def get_session_handler() -> WorkoutSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = WorkoutSessionHandler()
    return _handler_instance
