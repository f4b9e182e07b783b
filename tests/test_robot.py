"""Tests for latches: the robot puzzles."""

from tempo_kernel.models.travel import TravelVerdict
from tempo_kernel.variables.kinds import DerivedVariable, MutableVariable, TriggeredVariable
from tempo_kernel.world.engine import World


def _make_robot_world():
    """Door C opens for good the first time door A is seen open."""
    lever1 = MutableVariable("lever1", True)
    lever2 = MutableVariable("lever2", False)
    door_a = DerivedVariable("doorAOpen", [lever1], lambda s: not s.get(lever1))
    door_b = DerivedVariable(
        "doorBOpen", [lever1, lever2], lambda s: s.get(lever1) and s.get(lever2)
    )
    door_c = TriggeredVariable("doorCOpen", [door_a], lambda s: s.get(door_a))
    world = World([lever1, lever2, door_a, door_b, door_c])
    return world, lever1, lever2, door_a, door_b, door_c


def _make_robot_time_world():
    """A robot walks to its goal once door C and either door A or door B are open."""
    lever1 = MutableVariable("lever1", False)
    lever2 = MutableVariable("lever2", True)
    door_a = MutableVariable("doorAOpen", False)
    door_b = DerivedVariable("doorBOpen", [lever2], lambda s: s.get(lever2))
    door_c = DerivedVariable("doorCOpen", [lever1], lambda s: s.get(lever1))
    robot_goal = TriggeredVariable(
        "robotAtGoal",
        [door_a, door_b, door_c],
        lambda s: s.get(door_c) and (s.get(door_a) or s.get(door_b)),
    )
    world = World([lever1, lever2, door_a, door_b, door_c, robot_goal])
    return world, lever1, lever2, door_a, door_b, door_c, robot_goal


class TestRobotWorld:
    def test_has_a_solution(self):
        world, lever1, lever2, door_a, door_b, door_c = _make_robot_world()
        assert world.get(door_a) is False
        assert world.get(door_b) is False
        assert world.get(door_c) is False

        world.set(lever1, False)
        assert world.get(door_a) is True
        assert world.get(door_c) is True

        world.set(lever2, True)
        world.set(lever1, True)
        # Door A closes again; the latch holds
        assert world.get(door_a) is False
        assert world.get(door_c) is True
        assert world.get(door_b) is True

    def test_latch_survives_repeated_toggling(self):
        world, lever1, lever2, door_a, door_b, door_c = _make_robot_world()
        world.set(lever1, False)
        assert world.get(door_c) is True
        for value in (True, False, True, False, True):
            world.set(lever1, value)
            world.set(lever2, value)
            assert world.get(door_c) is True

    def test_firing_records_antecedent(self):
        world, lever1, lever2, door_a, door_b, door_c = _make_robot_world()
        world.set(lever1, False)
        antecedent = world.current_period.antecedent_for(door_c)
        assert antecedent is not None
        assert antecedent.recorded == {"lever1": False}


class TestRobotTimeWorld:
    def test_has_a_solution(self):
        world, lever1, lever2, door_a, door_b, door_c, robot_goal = _make_robot_time_world()
        assert world.peek(door_a) is False
        assert world.peek(door_b) is True
        assert world.peek(door_c) is False
        assert world.get(robot_goal) is False

        world.set(lever1, True)
        assert world.peek(door_c) is True
        # The robot is seen at its goal without being looked for
        assert world.current_period.peek_value(robot_goal) is True
        assert world.get(robot_goal) is True
        assert world.peek(door_a) is False

        assert world.travel_to(-1)
        world.set(lever2, False)
        assert world.travel_to(0)
        # The robot did not pass door B, so door A was open all along
        assert world.get(door_a) is True
        assert world.last_travel.overrides["doorAOpen"] is True

    def test_has_a_nontrivial_solution(self):
        world, lever1, lever2, door_a, door_b, door_c, robot_goal = _make_robot_time_world()
        # Door A seen closed at the start can no longer explain the robot
        assert world.get(door_a) is False

        world.set(lever1, True)
        assert world.peek(door_c) is True
        assert world.current_period.peek_value(robot_goal) is True
        assert world.get(robot_goal) is True

        assert world.travel_to(-1)
        world.set(lever2, False)
        assert not world.travel_to(0)
        assert world.last_travel.verdict == TravelVerdict.LOGICAL_CONTRADICTION

    def test_does_not_persist_the_robot_action(self):
        world, lever1, lever2, door_a, door_b, door_c, robot_goal = _make_robot_time_world()
        world.travel_to(-1)
        world.set(lever1, True)
        world.set(lever1, False)
        # Reached its goal even though lever 1 was reset
        assert world.get(robot_goal) is True

        assert world.travel_to(0)
        assert world.get(robot_goal) is False
        assert world.peek(door_a) is False
        assert world.peek(door_b) is True
        assert world.peek(door_c) is False

    def test_prevents_contradictions_on_future_travel(self):
        world, lever1, lever2, door_a, door_b, door_c, robot_goal = _make_robot_time_world()
        world.set(lever1, True)
        assert world.get(robot_goal) is True
        assert world.get(door_a) is False

        assert world.travel_to(-1)
        assert world.travel_to(0, dry_run=True)
        assert world.current_time == -1

        world.set(lever2, False)
        assert not world.travel_to(0)

        world.set(lever2, True)
        assert world.travel_to(0)
