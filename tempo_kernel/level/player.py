"""The player: moves through a level and uses what it finds."""

from typing import List

from tempo_kernel.level.layout import Direction, Interactable, Level, Room


class Player:
    def __init__(self, level: Level):
        self.level = level
        self.world = level.world
        self.room: Room = level.get_starting_room()

    def move(self, direction: Direction) -> bool:
        """Walk through a connection; a guarded one must be observed open."""
        connection = self.room.get_connection(direction)
        if connection is None:
            return False
        if not connection.is_open(self.world):
            return False
        self.room = connection.to_room
        return True

    def get_interactables(self) -> List[Interactable]:
        return list(self.room.entities)

    def interact(self, entity: Interactable) -> bool:
        if entity not in self.room.entities:
            return False
        return entity.interact(self.world)

    @property
    def at_goal(self) -> bool:
        return self.room.is_goal_room
