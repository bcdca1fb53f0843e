"""
Tests for the readiness gate and the debounced rep state machine.
"""

import pytest

from coach_service.models import ExerciseState, Stage, Transition, update_exercise_state

DOWN, UP = 100.0, 150.0


def feed(state, angles):
    return [update_exercise_state(state, angle, DOWN, UP) for angle in angles]


@pytest.fixture
def ready_state():
    state = ExerciseState(cooldown_frames=10, frames_to_be_ready=5)
    feed(state, [160] * 5)
    assert state.is_ready
    return state


# ═══════════════════════════════════════════════════════════════════════════════
# READINESS
# ═══════════════════════════════════════════════════════════════════════════════

def test_ready_after_consecutive_frames_in_start_position():
    state = ExerciseState(frames_to_be_ready=5)

    transitions = feed(state, [160] * 4)
    assert not state.is_ready
    assert state.ready_frames == 4

    transitions += feed(state, [160])
    assert state.is_ready
    assert state.stage == Stage.UP
    assert transitions == [None] * 5


def test_readiness_run_restarts_when_position_is_lost():
    state = ExerciseState(frames_to_be_ready=5)

    feed(state, [160, 160, 160, 120, 160, 160, 160, 160])
    assert not state.is_ready
    assert state.ready_frames == 4

    feed(state, [160])
    assert state.is_ready


def test_no_reps_counted_before_ready():
    state = ExerciseState(frames_to_be_ready=5)

    transitions = feed(state, [90, 160, 90, 160, 160, 90, 170, 80, 160] * 5)

    assert state.counter == 0
    assert not state.is_ready
    assert all(t is None for t in transitions)


def test_readiness_stays_latched(ready_state):
    feed(ready_state, [120, 130, 90, 95])
    assert ready_state.is_ready


# ═══════════════════════════════════════════════════════════════════════════════
# COUNTING
# ═══════════════════════════════════════════════════════════════════════════════

def test_full_sweep_counts_one_rep(ready_state):
    assert feed(ready_state, [90]) == [Transition.DOWN]
    assert ready_state.stage == Stage.DOWN

    assert feed(ready_state, [160]) == [Transition.UP]
    assert ready_state.stage == Stage.UP
    assert ready_state.counter == 1
    assert ready_state.cooldown == 10


def test_oscillation_near_one_threshold_does_not_double_count(ready_state):
    feed(ready_state, [99, 101, 99, 101, 98, 120, 99])
    assert ready_state.stage == Stage.DOWN
    assert ready_state.counter == 0

    feed(ready_state, [151, 149, 152, 148])
    assert ready_state.counter == 1


def test_cooldown_blocks_transitions_after_rep(ready_state):
    feed(ready_state, [90, 160])
    assert ready_state.counter == 1

    transitions = feed(ready_state, [90, 160] * 5)
    assert transitions == [None] * 10
    assert ready_state.cooldown == 0
    assert ready_state.counter == 1

    assert feed(ready_state, [90]) == [Transition.DOWN]


def test_counter_increases_by_one_per_rep(ready_state):
    for expected in range(1, 6):
        feed(ready_state, [90] + [160] + [155] * 10)
        assert ready_state.counter == expected


def test_reset_restores_initial_state(ready_state):
    feed(ready_state, [90, 160])
    ready_state.reset()

    assert ready_state.counter == 0
    assert ready_state.stage == Stage.UP
    assert ready_state.cooldown == 0
    assert not ready_state.is_ready
    assert ready_state.ready_frames == 0


def test_disarm_requires_start_position_again(ready_state):
    ready_state.disarm()

    assert feed(ready_state, [90, 160]) == [None, None]
    assert ready_state.counter == 0
