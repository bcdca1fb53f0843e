"""
REPCOACH Coach Service Models

Rule-based rep counting and voice feedback over streamed pose keypoints.
"""

from .pose_geometry import (
    JointName,
    Keypoint,
    Pose,
    find_keypoint,
    find_keypoints,
    average_confidence,
    calculate_angle,
    torso_tilt,
)

from .keypoint_smoother import KeypointSmoother

from .rep_state import (
    Stage,
    Transition,
    ExerciseState,
    update_readiness,
    update_exercise_state,
)

from .exercise_analyzer import (
    ANALYZER_INFO,
    ExerciseType,
    AnalysisResult,
    FeedbackMessages,
    ExerciseAnalyzer,
    PushupAnalyzer,
    SquatAnalyzer,
    create_analyzer,
    parse_exercise_type,
)

from .voice_coordinator import (
    MOTIVATIONAL_PHRASES,
    SpeechSink,
    SpeechCommand,
    QueuedSpeechSink,
    VoiceCoordinator,
    milestone_phrase,
)

from .workout_session import (
    FrameOutcome,
    SessionLimitError,
    SessionClock,
    SessionState,
    WorkoutSession,
    WorkoutSessionHandler,
    get_session_handler,
)

__all__ = [
    # Geometry
    "JointName",
    "Keypoint",
    "Pose",
    "find_keypoint",
    "find_keypoints",
    "average_confidence",
    "calculate_angle",
    "torso_tilt",
    "KeypointSmoother",
    # Rep state
    "Stage",
    "Transition",
    "ExerciseState",
    "update_readiness",
    "update_exercise_state",
    # Analyzers
    "ANALYZER_INFO",
    "ExerciseType",
    "AnalysisResult",
    "FeedbackMessages",
    "ExerciseAnalyzer",
    "PushupAnalyzer",
    "SquatAnalyzer",
    "create_analyzer",
    "parse_exercise_type",
    # Voice
    "MOTIVATIONAL_PHRASES",
    "SpeechSink",
    "SpeechCommand",
    "QueuedSpeechSink",
    "VoiceCoordinator",
    "milestone_phrase",
    # Sessions
    "FrameOutcome",
    "SessionLimitError",
    "SessionClock",
    "SessionState",
    "WorkoutSession",
    "WorkoutSessionHandler",
    "get_session_handler",
]
