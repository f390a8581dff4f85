"""
Property-based tests for convergence polling and ordered setup.

Key properties:
- An attempt budget is honoured exactly: never exceeded, fully used on failure
- A non-positive budget never invokes the probe
- A deadline bounds total waiting time, whatever the delay
- Jittered backoff is reproducible under a seeded random source
- A consecutive-success requirement converges at the end of the first streak
- A failing setup stage stops everything after it and unwinds what ran
"""

import random

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from meshprobe.core.errors import SetupFailure
from meshprobe.core.outcome import FailureKind
from meshprobe.core.poller import poll_until_converged
from meshprobe.core.retry_policy import ExponentialBackoff, FixedDelay, RetryPolicy
from meshprobe.core.stages import run_stages
from tests.test_helpers import (
    FakeClock,
    ScriptedProbe,
    SequenceProbe,
    StageRecorder,
    always_failing,
)


def poll(probe, policy):
    clock = FakeClock()
    return poll_until_converged(probe, policy, clock=clock, sleep=clock.sleep), clock


@st.composite
def budget_and_failures(draw):
    budget = draw(st.integers(min_value=1, max_value=60))
    failures = draw(st.integers(min_value=0, max_value=budget - 1))
    return budget, failures


class TestAttemptBudgetProperties:
    @given(budget_and_failures())
    @settings(deadline=None)
    def test_converges_within_budget(self, case):
        budget, failures = case
        probe = ScriptedProbe(failures=failures)
        outcome, _ = poll(probe, RetryPolicy.attempts(budget, delay=0.001))

        assert outcome.is_converged
        assert outcome.attempts == failures + 1
        assert probe.calls == failures + 1

    @given(st.integers(min_value=1, max_value=60))
    @settings(deadline=None)
    def test_failing_probe_uses_whole_budget(self, budget):
        probe = always_failing()
        outcome, clock = poll(probe, RetryPolicy.attempts(budget, delay=0.001))

        assert outcome.failure_kind is FailureKind.TIMEOUT
        assert outcome.attempts == budget
        assert probe.calls == budget
        assert len(clock.sleeps) == budget - 1

    @given(
        st.integers(max_value=0),
        st.one_of(st.none(), st.floats(min_value=-10.0, max_value=10.0)),
    )
    @settings(deadline=None)
    def test_non_positive_budget_never_calls_probe(self, budget, deadline):
        probe = ScriptedProbe(failures=0)
        outcome, clock = poll(probe, RetryPolicy(deadline=deadline, max_attempts=budget))

        assert outcome.failure_kind is FailureKind.INVALID_POLICY
        assert outcome.attempts == 0
        assert probe.calls == 0
        assert clock.sleeps == []

    @given(budget_and_failures())
    @settings(deadline=None)
    def test_repeated_polls_of_converged_state_succeed_immediately(self, case):
        budget, failures = case
        probe = ScriptedProbe(failures=failures)
        poll(probe, RetryPolicy.attempts(budget))
        again, clock = poll(probe, RetryPolicy.attempts(budget))

        assert again.is_converged
        assert again.attempts == 1
        assert clock.sleeps == []


class TestDeadlineProperties:
    @given(
        st.floats(min_value=0.01, max_value=5.0),
        st.floats(min_value=0.05, max_value=2.0),
    )
    @settings(deadline=None)
    def test_waiting_never_exceeds_deadline(self, deadline, delay):
        outcome, clock = poll(
            always_failing(), RetryPolicy(deadline=deadline, delay=FixedDelay(delay))
        )

        assert outcome.failure_kind is FailureKind.TIMEOUT
        assert sum(clock.sleeps) == pytest.approx(deadline)
        assert all(0.0 <= slept <= delay for slept in clock.sleeps)

    @given(st.integers(min_value=0, max_value=2**32), st.integers(min_value=1, max_value=30))
    @settings(deadline=None)
    def test_seeded_jitter_is_reproducible(self, seed, budget):
        def run():
            backoff = ExponentialBackoff(
                initial_seconds=0.01,
                max_seconds=0.5,
                jitter_factor=0.5,
                rng=random.Random(seed),
            )
            policy = RetryPolicy(deadline=None, max_attempts=budget, delay=backoff)
            return poll(always_failing(), policy)

        first, first_clock = run()
        second, second_clock = run()

        assert first.attempts == second.attempts == budget
        assert first_clock.sleeps == second_clock.sleeps
        assert all(0.0 <= slept <= 0.75 for slept in first_clock.sleeps)


def first_streak_end(script: list[bool], converge: int) -> int | None:
    streak = 0
    for index, ready in enumerate(script, start=1):
        streak = streak + 1 if ready else 0
        if streak >= converge:
            return index
    return None


class TestConvergeProperties:
    @given(
        st.lists(st.booleans(), min_size=1, max_size=40),
        st.integers(min_value=1, max_value=5),
    )
    @settings(deadline=None)
    def test_converges_at_end_of_first_streak(self, script, converge):
        probe = SequenceProbe(script)
        policy = RetryPolicy(
            deadline=None,
            max_attempts=len(script),
            delay=FixedDelay(0.0),
            converge=converge,
        )
        outcome, _ = poll(probe, policy)

        expected = first_streak_end(script, converge)
        if expected is None:
            assert outcome.failure_kind is FailureKind.TIMEOUT
            assert outcome.attempts == len(script)
        else:
            assert outcome.is_converged
            assert outcome.attempts == expected


class TestStageProperties:
    @given(st.data())
    @settings(deadline=None)
    def test_failure_at_any_position(self, data):
        count = data.draw(st.integers(min_value=1, max_value=12))
        failing = data.draw(st.integers(min_value=1, max_value=count))
        recorder = StageRecorder()
        stages = [
            recorder.stage(
                f"s{k}", {f"h{k}": k}, error=RuntimeError("down") if k == failing else None
            )
            for k in range(1, count + 1)
        ]

        with pytest.raises(SetupFailure) as excinfo:
            run_stages(stages)

        assert excinfo.value.position == failing
        assert recorder.calls == [f"s{k}" for k in range(1, failing + 1)]
        assert recorder.torn_down == [f"s{k}" for k in range(failing - 1, 0, -1)]
