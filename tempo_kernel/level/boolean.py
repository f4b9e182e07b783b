"""
The "Boolean" level.

Two levers and two lab doors. Lab B opens with lever 2; Lab C opens with
either lever. Lever 2 sits behind Lab D; the booth in the start room jumps
between the past and the present.
"""

from typing import Dict, Tuple

from tempo_kernel.level.layout import Direction, Level, Room, TimeTravelBooth, Toggle
from tempo_kernel.variables.kinds import DerivedVariable, MutableVariable, Variable
from tempo_kernel.world.engine import World


def create_boolean_world() -> Tuple[World, Dict[str, Variable]]:
    lever1 = MutableVariable("lever1", True)
    lever2 = MutableVariable("lever2", False)
    door_b = DerivedVariable("labBOpen", [lever2], lambda s: s.get(lever2))
    door_c = DerivedVariable("labCOpen", [lever1, lever2], lambda s: s.get(lever1) or s.get(lever2))

    world = World([lever1, lever2, door_c, door_b])
    return world, {
        "lever1": lever1,
        "lever2": lever2,
        "door_b": door_b,
        "door_c": door_c,
    }


def create_boolean_level() -> Level:
    world, v = create_boolean_world()
    level = Level(world)

    start = Room("Start")
    lab_a = Room("Lab A")
    lab_b = Room("Lab B")
    lab_c = Room("Lab C")
    lab_d = Room("Lab D")

    level.connect(start, lab_a, Direction.NORTH)
    level.connect(lab_a, lab_b, Direction.EAST, v["door_b"])
    level.connect(lab_a, lab_c, Direction.WEST, v["door_c"])
    level.connect(lab_a, lab_d, Direction.NORTH)

    start.is_starting_room = True
    start.entities.append(TimeTravelBooth([-1, 0]))
    lab_a.entities.append(Toggle(v["lever1"]))
    lab_b.is_goal_room = True
    lab_d.entities.append(Toggle(v["lever2"]))
    return level
