"""Progress, achievement and lifecycle behaviour of the goal engine."""

from datetime import datetime, timedelta, timezone

import pytest

from healthlink.goals import engine
from healthlink.goals.models import (
    FixedTarget,
    Goal,
    GoalStatus,
    GoalType,
    Milestone,
    RangeBand,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_goal(goal_type, target, current=None, initial=None, **kwargs):
    return Goal(
        user_id="patient-1",
        parameter="Blood Sugar",
        unit="mg/dL",
        goal_type=goal_type,
        target=target,
        initial_value=initial,
        current_value=current,
        **kwargs,
    )


def range_goal(current, minimum=10, maximum=20, **kwargs):
    return make_goal(GoalType.RANGE, RangeBand(minimum, maximum), current, **kwargs)


@pytest.mark.parametrize(
    "current, expected",
    [(15, 100), (10, 100), (20, 100), (5, 50), (8, 80), (22, 80), (0, 0), (40, 0)],
)
def test_range_progress(current, expected):
    assert engine.compute_progress(range_goal(current)) == pytest.approx(expected)


def test_range_inside_band_is_achieved():
    goal = range_goal(15)
    assert engine.is_achieved(goal)
    assert not engine.is_achieved(range_goal(8))


def test_one_sided_bounds():
    lower = make_goal(GoalType.RANGE, RangeBand(minimum=50), current=25)
    assert engine.compute_progress(lower) == pytest.approx(50)
    assert not engine.is_achieved(lower)

    upper = make_goal(GoalType.RANGE, RangeBand(maximum=120), current=150)
    assert engine.compute_progress(upper) == pytest.approx(80)
    assert engine.is_achieved(make_goal(GoalType.RANGE, RangeBand(maximum=120), current=110))


def test_bounds_override_goal_type():
    goal = make_goal(GoalType.DECREASE, RangeBand(10, 20), current=15, initial=30)
    assert engine.compute_progress(goal) == 100
    assert engine.is_achieved(goal)


def test_decrease_progress():
    def goal(current):
        return make_goal(GoalType.DECREASE, FixedTarget(50), current, initial=100)

    assert engine.compute_progress(goal(75)) == pytest.approx(50)
    assert engine.compute_progress(goal(50)) == 100
    assert engine.is_achieved(goal(50))
    assert engine.compute_progress(goal(100)) == 0
    assert engine.compute_progress(goal(120)) == 0
    assert engine.compute_progress(goal(30)) == 100


def test_increase_progress():
    goal = make_goal(GoalType.INCREASE, FixedTarget(10), current=5, initial=0)
    assert engine.compute_progress(goal) == pytest.approx(50)
    assert not engine.is_achieved(goal)


def test_baseline_falls_back_to_first_milestone():
    goal = make_goal(
        GoalType.DECREASE,
        FixedTarget(50),
        current=75,
        milestones=[Milestone(NOW, 100, "start"), Milestone(NOW, 75, "later")],
    )
    assert engine.compute_progress(goal) == pytest.approx(50)


def test_equal_baseline_and_target_does_not_divide_by_zero():
    met = make_goal(GoalType.DECREASE, FixedTarget(50), current=50, initial=50)
    missed = make_goal(GoalType.INCREASE, FixedTarget(50), current=49, initial=50)
    assert engine.compute_progress(met) == 100
    assert engine.compute_progress(missed) == 0


def test_maintain_tolerance():
    within = make_goal(GoalType.MAINTAIN, FixedTarget(100), current=103)
    assert engine.compute_progress(within) == 100
    assert engine.is_achieved(within)

    outside = make_goal(GoalType.MAINTAIN, FixedTarget(100), current=112)
    assert engine.compute_progress(outside) == 0
    assert not engine.is_achieved(outside)

    near = make_goal(GoalType.MAINTAIN, FixedTarget(100), current=107)
    assert engine.compute_progress(near) == pytest.approx(30)


def test_maintain_zero_target():
    assert engine.compute_progress(make_goal(GoalType.MAINTAIN, FixedTarget(0), current=0)) == 100
    assert engine.compute_progress(make_goal(GoalType.MAINTAIN, FixedTarget(0), current=1)) == 0


def test_no_observation_means_no_progress():
    goal = range_goal(None)
    assert engine.compute_progress(goal) == 0
    assert not engine.is_achieved(goal)


def test_compute_progress_is_pure():
    goal = make_goal(GoalType.DECREASE, FixedTarget(50), current=75, initial=100)
    first = engine.compute_progress(goal)
    assert engine.compute_progress(goal) == first
    assert goal.progress == 0.0


def test_apply_observation_returns_new_snapshot():
    goal = make_goal(GoalType.INCREASE, FixedTarget(10), current=0, initial=0)

    updated = engine.apply_observation(goal, 10, "Gym", timestamp=NOW)

    assert updated.current_value == 10
    assert updated.progress == 100
    assert updated.status == GoalStatus.ACHIEVED
    assert updated.milestones[-1] == Milestone(NOW, 10, "Gym")
    assert goal.milestones == []
    assert goal.status == GoalStatus.IN_PROGRESS


def test_range_goal_reverts_when_drifting_out_of_band():
    goal = engine.apply_observation(range_goal(None), 15, timestamp=NOW)
    assert goal.status == GoalStatus.ACHIEVED

    goal = engine.apply_observation(goal, 25, timestamp=NOW)
    assert goal.status == GoalStatus.IN_PROGRESS
    assert goal.progress == pytest.approx(50)


def test_expired_goal_only_moves_on_achievement():
    goal = range_goal(30, status=GoalStatus.EXPIRED)

    still_out = engine.apply_observation(goal, 25, timestamp=NOW)
    assert still_out.status == GoalStatus.EXPIRED

    back_in = engine.apply_observation(goal, 15, timestamp=NOW)
    assert back_in.status == GoalStatus.ACHIEVED


def test_reevaluate_uses_last_milestone():
    goal = make_goal(
        GoalType.DECREASE,
        FixedTarget(50),
        current=40,
        initial=100,
        status=GoalStatus.ACHIEVED,
        milestones=[Milestone(NOW, 100), Milestone(NOW, 80)],
    )

    updated = engine.reevaluate(goal)

    assert updated.current_value == 80
    assert updated.progress == pytest.approx(40)
    assert updated.status == GoalStatus.IN_PROGRESS


def test_check_expiry_past_deadline():
    deadline = NOW - timedelta(days=1)

    missed = range_goal(30, deadline=deadline)
    assert engine.check_expiry(missed, NOW).status == GoalStatus.EXPIRED

    met = range_goal(15, deadline=deadline)
    assert engine.check_expiry(met, NOW).status == GoalStatus.ACHIEVED


def test_check_expiry_leaves_other_goals_alone():
    future = range_goal(30, deadline=NOW + timedelta(days=1))
    assert engine.check_expiry(future, NOW) is future

    no_deadline = range_goal(30)
    assert engine.check_expiry(no_deadline, NOW) is no_deadline

    achieved = range_goal(30, deadline=NOW - timedelta(days=1), status=GoalStatus.ACHIEVED)
    assert engine.check_expiry(achieved, NOW).status == GoalStatus.ACHIEVED


def test_check_expiry_accepts_naive_deadline():
    goal = range_goal(30, deadline=datetime(2026, 4, 1))
    assert engine.check_expiry(goal, NOW).status == GoalStatus.EXPIRED
