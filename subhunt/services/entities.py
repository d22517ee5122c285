from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from subhunt.schemas import Position
from subhunt.services.player import Player


@dataclass(eq=False)
class Submarine:
    id: int
    owner: Player = field(repr=False)
    pos: Position

    def owned_by(self, player: Player) -> bool:
        return self.owner is player


@dataclass(eq=False)
class Bouy:
    """Stationary sensor. Never moves once placed."""
    id: int
    owner: Player = field(repr=False)
    pos: Position

    def owned_by(self, player: Player) -> bool:
        return self.owner is player


class EntityRegistry:
    """
    Live submarines and bouys of one game.

    Ids are sequential per kind and never reused. The registry does not check
    land or occupancy; the game validates before it adds or moves anything.
    """
    def __init__(self) -> None:
        self.submarines: list[Submarine] = []
        self.bouys: list[Bouy] = []
        self._next_submarine_id = 1
        self._next_bouy_id = 1

    def add_submarine(self, owner: Player, pos: Position) -> Submarine:
        sub = Submarine(id=self._next_submarine_id, owner=owner, pos=pos)
        self._next_submarine_id += 1
        self.submarines.append(sub)
        return sub

    def find_submarine(self, submarine_id: int) -> Optional[Submarine]:
        return next((s for s in self.submarines if s.id == submarine_id), None)

    def remove_submarines(self, predicate: Callable[[Submarine], bool]) -> list[Submarine]:
        kept: list[Submarine] = []
        removed: list[Submarine] = []
        for s in self.submarines:
            (removed if predicate(s) else kept).append(s)
        self.submarines = kept
        return removed

    def add_bouy(self, owner: Player, pos: Position) -> Bouy:
        bouy = Bouy(id=self._next_bouy_id, owner=owner, pos=pos)
        self._next_bouy_id += 1
        self.bouys.append(bouy)
        return bouy

    def submarine_at(self, pos: Position) -> Optional[Submarine]:
        return next((s for s in self.submarines if s.pos == pos), None)

    def bouy_at(self, pos: Position) -> Optional[Bouy]:
        return next((b for b in self.bouys if b.pos == pos), None)

    def submarines_of(self, player: Player) -> Iterator[Submarine]:
        return (s for s in self.submarines if s.owned_by(player))

    def bouys_of(self, player: Player) -> Iterator[Bouy]:
        return (b for b in self.bouys if b.owned_by(player))

    def count_submarines(self, player: Player) -> int:
        return sum(1 for _ in self.submarines_of(player))
