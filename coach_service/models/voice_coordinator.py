"""
REPCOACH Coach Service - Voice Feedback Coordinator

Decides when accumulated feedback is spoken aloud. Analyzers report what
changed on a frame; the coordinator decides whether now is an acceptable
time to interrupt the user, so speech neither floods nor goes silent.
"""

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Any, Protocol

from core.config import settings
from .exercise_analyzer import AnalysisResult

logger = logging.getLogger(__name__)


MOTIVATIONAL_PHRASES = [
    "Keep up the great work!",
    "You're doing great, push through!",
    "Amazing effort!",
]


# ═══════════════════════════════════════════════════════════════════════════════
# SPEECH SINKS
# ═══════════════════════════════════════════════════════════════════════════════

class SpeechSink(Protocol):
    """Text-to-speech capability. Playback and queuing belong to the sink."""

    def speak(self, text: str, cancel_previous: bool = True) -> None:
        ...

    def cancel(self) -> None:
        ...


@dataclass
class SpeechCommand:
    """Instruction for a client-side speech engine."""
    action: str  # "speak" or "cancel"
    text: Optional[str] = None
    rate: float = field(default_factory=lambda: settings.SPEECH_RATE)

    def to_dict(self) -> Dict[str, Any]:
        if self.action == "cancel":
            return {"type": "CANCEL_SPEECH"}
        return {"type": "SPEAK", "text": self.text, "rate": self.rate}


class QueuedSpeechSink:
    """
    Collects speech commands for a remote client.

    The client (browser speechSynthesis, pyttsx3, ...) plays them; the server
    only forwards what it drains from here after every frame.
    """

    def __init__(self, rate: float = None, max_pending: int = 32):
        self.rate = rate if rate is not None else settings.SPEECH_RATE
        self._pending: Deque[SpeechCommand] = deque(maxlen=max_pending)

    def speak(self, text: str, cancel_previous: bool = True) -> None:
        if not text:
            return
        if cancel_previous:
            self._pending.append(SpeechCommand(action="cancel"))
        self._pending.append(SpeechCommand(action="speak", text=text, rate=self.rate))

    def cancel(self) -> None:
        self._pending.clear()
        self._pending.append(SpeechCommand(action="cancel"))

    def drain(self) -> List[SpeechCommand]:
        """Return and forget every pending command."""
        commands = list(self._pending)
        self._pending.clear()
        return commands


# ═══════════════════════════════════════════════════════════════════════════════
# COORDINATOR
# ═══════════════════════════════════════════════════════════════════════════════

def milestone_phrase(reps: int, rng: random.Random = None) -> Optional[str]:
    """Phrase for a rep count divisible by 10 or 5, None otherwise."""
    if reps <= 0:
        return None
    if reps % 10 == 0:
        phrase = (rng or random).choice(MOTIVATIONAL_PHRASES)
        return f"{phrase} You've reached {reps} reps!"
    if reps % 5 == 0:
        return f"Great, you've reached {reps} reps!"
    return None


class VoiceCoordinator:
    """
    Chooses at most one utterance per frame and throttles dispatch.

    Priority:
        1. Rep milestones (every 5 reps, celebratory every 10)
        2. New form corrections (identical corrections are not repeated
           until the analyzer stops reporting them)

    Anything selected is only spoken if SPEECH_COOLDOWN_MS passed since the
    previous utterance; otherwise it is dropped.
    """

    def __init__(
        self,
        sink: Optional[SpeechSink] = None,
        cooldown_ms: float = None,
        rng: random.Random = None
    ):
        self.sink = sink
        self.cooldown_ms = cooldown_ms if cooldown_ms is not None else settings.SPEECH_COOLDOWN_MS
        self.rng = rng or random.Random()
        self.last_spoken_ms: Optional[float] = None
        self.last_form_feedback: Optional[str] = None
        self.last_milestone_reps = 0

    def _milestone(self, reps: int) -> Optional[str]:
        previous = self.last_milestone_reps
        self.last_milestone_reps = reps
        # A jump of several reps announces the highest milestone it crossed,
        # preferring the celebratory multiples of 10
        crossed = range(reps, previous, -1)
        for step in (10, 5):
            for count in crossed:
                if count % step == 0:
                    return milestone_phrase(count, self.rng)
        return None

    def update(self, result: AnalysisResult, now_ms: float) -> Optional[str]:
        """
        Process one frame's analysis.

        Args:
            result: Analyzer output for the frame
            now_ms: Wall-clock time of the frame in milliseconds

        Returns:
            The utterance dispatched on this frame, or None
        """
        what_to_say = None

        if result.reps > self.last_milestone_reps:
            what_to_say = self._milestone(result.reps)

        if not what_to_say and result.voice_feedback:
            if result.voice_feedback != self.last_form_feedback:
                what_to_say = result.voice_feedback
                self.last_form_feedback = result.voice_feedback
        elif not result.voice_feedback:
            # Form is fine again, so the same correction may fire later
            self.last_form_feedback = None

        if what_to_say and self._can_speak(now_ms):
            if self.sink is not None:
                self.sink.speak(what_to_say, cancel_previous=True)
            self.last_spoken_ms = now_ms
            logger.debug(f"Speaking: {what_to_say}")
            return what_to_say
        return None

    def _can_speak(self, now_ms: float) -> bool:
        if self.last_spoken_ms is None:
            return True
        return now_ms - self.last_spoken_ms >= self.cooldown_ms

    def cancel(self):
        """Stop any utterance currently playing."""
        if self.sink is not None:
            self.sink.cancel()

    def reset(self):
        """Forget spoken history."""
        self.last_spoken_ms = None
        self.last_form_feedback = None
        self.last_milestone_reps = 0
