"""
REPCOACH Coach Service - Exercise Analyzers

Rule-based rep counting and form feedback for pushups and squats.
Each analyzer owns its smoothing history and ExerciseState; nothing is
shared between analyzers or sessions.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Any
from enum import Enum

import numpy as np

from core.config import settings
from .pose_geometry import (
    JointName,
    Keypoint,
    Pose,
    average_confidence,
    calculate_angle,
    find_keypoints,
    torso_tilt,
)
from .keypoint_smoother import KeypointSmoother
from .rep_state import ExerciseState, Stage, Transition, update_exercise_state

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseType(str, Enum):
    """Supported exercise types."""
    PUSHUPS = "pushups"
    SQUATS = "squats"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class AnalysisResult:
    """Per-frame output of an analyzer."""
    reps: int
    feedback: str
    stage: Stage
    voice_feedback: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reps": self.reps,
            "feedback": self.feedback,
            "stage": self.stage.value,
            "voice_feedback": self.voice_feedback,
        }


@dataclass(frozen=True)
class FeedbackMessages:
    """Display and voice strings of one exercise."""
    low_confidence: str
    missing_joints: str
    not_ready: str
    ready: str
    going_down: str
    rep_counted: str
    partial_rep: str
    partial_rep_voice: str


# ═══════════════════════════════════════════════════════════════════════════════
# BASE ANALYZER
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseAnalyzer:
    """
    Turns raw poses into rep counts and feedback for one exercise.

    Per frame:
        1. Reject frames with low average confidence
        2. Smooth the joints over the recent history
        3. Require every joint the exercise needs
        4. Run exercise specific posture checks
        5. Feed the bilateral governing angle into the rep state machine
        6. Map the outcome to display / voice feedback
    """

    exercise_type: ExerciseType
    governing_joint: str = ""
    required_joints: Tuple[JointName, ...] = ()
    # (a, vertex, c) joint triples per side, averaged into the governing angle
    angle_joints: Tuple[Tuple[JointName, JointName, JointName], ...] = ()
    down_threshold: float = 0.0
    up_threshold: float = 0.0
    messages: FeedbackMessages

    def __init__(self, state: Optional[ExerciseState] = None, history_size: int = None):
        """
        Args:
            state: Counting state to drive (a fresh one if None)
            history_size: Smoothing window in frames (defaults to HISTORY_SIZE)
        """
        self.state = state or ExerciseState()
        self.smoother = KeypointSmoother(history_size)
        self.partial_rep_margin = settings.PARTIAL_REP_MARGIN

    @property
    def counter(self) -> int:
        return self.state.counter

    def _result(self, feedback: str, voice_feedback: Optional[str] = None) -> AnalysisResult:
        return AnalysisResult(
            reps=self.state.counter,
            feedback=feedback,
            stage=self.state.stage,
            voice_feedback=voice_feedback,
        )

    def analyse(self, keypoints: Pose) -> AnalysisResult:
        """
        Analyse the raw joints of one frame.

        Args:
            keypoints: Raw joints from the pose estimator

        Returns:
            AnalysisResult with the current rep count and feedback
        """
        if average_confidence(keypoints) < settings.MIN_CONFIDENCE:
            return self._result(self.messages.low_confidence)

        self.smoother.push(keypoints)
        smoothed = self.smoother.smoothed()

        joints = find_keypoints(smoothed, (j.value for j in self.required_joints))
        if joints is None:
            return self._result(self.messages.missing_joints)

        posture_result = self.check_posture(joints)
        if posture_result is not None:
            return posture_result

        angle = self.governing_angle(joints)
        was_ready = self.state.is_ready
        transition = update_exercise_state(self.state, angle, self.down_threshold, self.up_threshold)

        if self.state.is_ready and not was_ready:
            logger.info(f"{self.exercise_type.label}: start position held, counting enabled")
        if transition == Transition.UP:
            logger.info(f"{self.exercise_type.label}: rep {self.state.counter} counted")

        return self._feedback(angle, transition)

    def check_posture(self, joints: Dict[str, Keypoint]) -> Optional[AnalysisResult]:
        """Exercise specific posture gate. Returns a result to stop counting this frame."""
        return None

    def governing_angle(self, joints: Dict[str, Keypoint]) -> float:
        """Mean of the left and right joint angles that drive the state machine."""
        angles = [
            calculate_angle(joints[a.value], joints[b.value], joints[c.value])
            for a, b, c in self.angle_joints
        ]
        return float(np.mean(angles))

    def _feedback(self, angle: float, transition: Optional[Transition]) -> AnalysisResult:
        if not self.state.is_ready:
            return self._result(self.messages.not_ready)

        feedback = self.messages.ready
        voice_feedback = None
        if transition == Transition.DOWN:
            feedback = self.messages.going_down
        elif transition == Transition.UP:
            feedback = self.messages.rep_counted

        if (
            self.state.stage == Stage.UP
            and self.down_threshold < angle < self.up_threshold - self.partial_rep_margin
        ):
            feedback = self.messages.partial_rep
            voice_feedback = self.messages.partial_rep_voice

        return self._result(feedback, voice_feedback)

    def reset(self):
        """Clear history and counting state."""
        self.smoother.clear()
        self.state.reset()


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISES
# ═══════════════════════════════════════════════════════════════════════════════

class PushupAnalyzer(ExerciseAnalyzer):
    """Counts pushups from the elbow angle, with a plank posture gate."""

    exercise_type = ExerciseType.PUSHUPS
    governing_joint = "elbow"
    required_joints = (
        JointName.LEFT_SHOULDER, JointName.LEFT_ELBOW, JointName.LEFT_WRIST,
        JointName.RIGHT_SHOULDER, JointName.RIGHT_ELBOW, JointName.RIGHT_WRIST,
        JointName.LEFT_HIP, JointName.RIGHT_HIP,
    )
    angle_joints = (
        (JointName.LEFT_SHOULDER, JointName.LEFT_ELBOW, JointName.LEFT_WRIST),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_ELBOW, JointName.RIGHT_WRIST),
    )
    down_threshold = 100.0
    up_threshold = 150.0

    # Torso tilt between these bounds means the body is upright, not in a plank
    TOO_VERTICAL_MIN = 45.0
    TOO_VERTICAL_MAX = 135.0

    messages = FeedbackMessages(
        low_confidence="Pose not clear - move closer to camera",
        missing_joints="Keep full arms and hips in frame",
        not_ready="Get into pushup position",
        ready="Start your pushup",
        going_down="Lower down - good form!",
        rep_counted="Push up - rep counted!",
        partial_rep="Lower your chest for a full rep.",
        partial_rep_voice="Try for a full range of motion.",
    )

    def check_posture(self, joints: Dict[str, Keypoint]) -> Optional[AnalysisResult]:
        tilt = np.mean([
            torso_tilt(joints[JointName.LEFT_SHOULDER.value], joints[JointName.LEFT_HIP.value]),
            torso_tilt(joints[JointName.RIGHT_SHOULDER.value], joints[JointName.RIGHT_HIP.value]),
        ])
        if self.TOO_VERTICAL_MIN < tilt < self.TOO_VERTICAL_MAX:
            if self.state.is_ready:
                logger.debug(f"Pushups: torso tilt {tilt:.1f} deg, readiness dropped")
            self.state.disarm()
            return self._result(self.messages.not_ready, self.messages.not_ready)
        return None


class SquatAnalyzer(ExerciseAnalyzer):
    """Counts squats from the knee angle."""

    exercise_type = ExerciseType.SQUATS
    governing_joint = "knee"
    required_joints = (
        JointName.LEFT_HIP, JointName.LEFT_KNEE, JointName.LEFT_ANKLE,
        JointName.RIGHT_HIP, JointName.RIGHT_KNEE, JointName.RIGHT_ANKLE,
    )
    angle_joints = (
        (JointName.LEFT_HIP, JointName.LEFT_KNEE, JointName.LEFT_ANKLE),
        (JointName.RIGHT_HIP, JointName.RIGHT_KNEE, JointName.RIGHT_ANKLE),
    )
    down_threshold = 110.0
    up_threshold = 165.0

    messages = FeedbackMessages(
        low_confidence="Pose not clear - stand centered",
        missing_joints="Ensure legs fully visible",
        not_ready="Stand straight to begin",
        ready="Start your squat",
        going_down="Go lower - controlled descent!",
        rep_counted="Great! Rep completed",
        partial_rep="Go deeper to complete the squat.",
        partial_rep_voice="Go a little deeper.",
    )


ANALYZERS = {
    ExerciseType.PUSHUPS: PushupAnalyzer,
    ExerciseType.SQUATS: SquatAnalyzer,
}


def parse_exercise_type(value: str) -> ExerciseType:
    """Accept "pushups", "Pushups", "squat"... and return the ExerciseType."""
    normalized = str(getattr(value, "value", value)).strip().lower()
    if not normalized.endswith("s"):
        normalized += "s"
    try:
        return ExerciseType(normalized)
    except ValueError:
        raise ValueError(
            f"Invalid exercise type '{value}'. Valid types: {[e.value for e in ExerciseType]}"
        )


def create_analyzer(exercise_type: ExerciseType, history_size: int = None) -> ExerciseAnalyzer:
    """Create a fresh analyzer with its own state for an exercise."""
    return ANALYZERS[exercise_type](history_size=history_size)

ANALYZER_INFO = [
    {
        "exercise_type": exercise.value,
        "name": exercise.label,
        "governing_joint": analyzer.governing_joint,
        "down_threshold": analyzer.down_threshold,
        "up_threshold": analyzer.up_threshold,
        "required_joints": [j.value for j in analyzer.required_joints],
    }
    for exercise, analyzer in ANALYZERS.items()
]
