"""
Level layout — rooms, connections and interactable entities.

These are consumers of the World. They read and write variables and travel
only through World operations; none of them touches a TimePeriod.
"""

from enum import Enum
from typing import List, Optional, Protocol, Sequence

from tempo_kernel.variables.kinds import MutableVariable, Variable
from tempo_kernel.world.engine import World


class Direction(str, Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITES[self]


_OPPOSITES = {
    Direction.NORTH: Direction.SOUTH,
    Direction.SOUTH: Direction.NORTH,
    Direction.EAST: Direction.WEST,
    Direction.WEST: Direction.EAST,
}


class Connection:
    """A one-way passage, optionally guarded by a variable that must read true."""

    def __init__(
        self,
        from_room: "Room",
        to_room: "Room",
        direction: Direction,
        variable: Optional[Variable] = None,
    ):
        self.from_room = from_room
        self.to_room = to_room
        self.direction = direction
        self.variable = variable

    def is_open(self, world: World) -> bool:
        if self.variable is None:
            return True
        return world.get(self.variable)


class Interactable(Protocol):
    """Protocol for anything in a room the player can use."""

    def interact(self, world: World) -> bool: ...


class Toggle:
    """A lever bound to one mutable variable."""

    def __init__(self, variable: MutableVariable):
        self.variable = variable

    def can_toggle(self, world: World) -> bool:
        if self.variable.reversible:
            return True
        return world.peek(self.variable) == self.variable.default_value

    def interact(self, world: World) -> bool:
        """Flip the variable. Refuses to undo a non-reversible change."""
        if not self.can_toggle(world):
            return False
        world.set(self.variable, not world.get(self.variable))
        return True


class TimeTravelBooth:
    """Cycles through a fixed list of allowed ticks."""

    def __init__(self, allowed_times: Sequence[int]):
        if not allowed_times:
            raise ValueError("A time travel booth needs at least one allowed time")
        self.allowed_times: List[int] = sorted(set(allowed_times))

    def next_time(self, world: World) -> int:
        """The next allowed tick after the current one, wrapping around."""
        for time in self.allowed_times:
            if time > world.current_time:
                return time
        return self.allowed_times[0]

    def interact(self, world: World) -> bool:
        return world.travel_to(self.next_time(world))


class Room:
    def __init__(self, name: str):
        self.name = name
        self.connections: List[Connection] = []
        self.entities: List[Interactable] = []
        self.is_starting_room = False
        self.is_goal_room = False

    def get_connection(self, direction: Direction) -> Optional[Connection]:
        return next((c for c in self.connections if c.direction == direction), None)

    def __repr__(self) -> str:
        return f"Room({self.name!r})"


class Level:
    """A world plus the rooms laid out on top of it."""

    def __init__(self, world: World):
        self.world = world
        self.rooms: List[Room] = []

    def add_room(self, room: Room) -> Room:
        if room not in self.rooms:
            self.rooms.append(room)
        return room

    def connect(
        self,
        from_room: Room,
        to_room: Room,
        direction: Direction,
        variable: Optional[Variable] = None,
    ) -> Connection:
        """Connect two rooms both ways; the return passage uses the opposite direction."""
        self.add_room(from_room)
        self.add_room(to_room)
        connection = Connection(from_room, to_room, direction, variable)
        from_room.connections.append(connection)
        to_room.connections.append(
            Connection(to_room, from_room, direction.opposite, variable)
        )
        return connection

    def get_starting_room(self) -> Room:
        room = next((r for r in self.rooms if r.is_starting_room), None)
        if room is None:
            raise ValueError("Level has no starting room")
        return room
