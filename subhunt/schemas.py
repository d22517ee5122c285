import math
import os
from enum import IntEnum
from typing import Annotated, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_serializer

SUBMARINES_PER_PLAYER = 5
SUBMARINE_SPOT_RADIUS = 15
SUBMARINE_RANGE = 10
BOUY_SPOT_RADIUS = 15
BLAST_RADIUS = 5

GAME_ID_LENGTH = 10


class Position(BaseModel, frozen=True):

    x: int
    y: int

    def __le__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return (self.x, self.y) <= (other.x, other.y)

    def __gt__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return (self.x, self.y) > (other.x, other.y)

    def __ge__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return (self.x, self.y) >= (other.x, other.y)

    def __lt__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return (self.x, self.y) < (other.x, other.y)

    def __hash__(self):
        return hash((self.x, self.y))

    def __eq__(self, other):
        if isinstance(other, Position):
            return self.x == other.x and self.y == other.y
        return False

    def distance(self, other: 'Position') -> float:
        """Euclidean distance to another position."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def within(self, other: 'Position', radius: float) -> bool:
        # inclusive: a unit exactly `radius` away counts
        return self.distance(other) <= radius


class TileType(IntEnum):
    WATER = 0
    LAND = 1
    PLAYER1_SPAWN = 2
    PLAYER2_SPAWN = 3


# spawn tile class for each player slot, in join order
SPAWN_TILES = (TileType.PLAYER1_SPAWN, TileType.PLAYER2_SPAWN)


class GameRules(BaseModel):
    """Tunable rule constants. One instance per game."""

    submarines_per_player: int = SUBMARINES_PER_PLAYER
    submarine_spot_radius: float = SUBMARINE_SPOT_RADIUS
    submarine_range: float = SUBMARINE_RANGE
    bouy_spot_radius: float = BOUY_SPOT_RADIUS
    blast_radius: float = BLAST_RADIUS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'GameRules':
        """Build rules, overriding defaults from SUBHUNT_<FIELD> variables."""
        env = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = env.get(f"SUBHUNT_{name.upper()}")
            if raw:
                values[name] = raw
        return cls(**values)


GameStatus = Literal["waiting", "active", "over"]


# === Per-player board view ===

class ClientTile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["submarine", "bouy"] = Field(alias="t")
    owner: int = Field(alias="p")
    # only set on the observer's own submarines so the client can select them
    id: Optional[int] = None

    @model_serializer(mode="wrap")
    def _drop_missing_id(self, handler):
        data = handler(self)
        if self.id is None:
            data.pop("id", None)
        return data


ViewGrid = List[List[Optional[ClientTile]]]


# === Inbound commands (player -> game) ===

class _Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NewGameCommand(_Command):
    command_type: Literal["gameNew"] = Field("gameNew", alias="commandType")


class JoinGameCommand(_Command):
    command_type: Literal["gameJoin"] = Field("gameJoin", alias="commandType")
    game_id: str = Field(alias="gameId")


class LeaveGameCommand(_Command):
    command_type: Literal["gameLeave"] = Field("gameLeave", alias="commandType")


class BouyCommand(_Command):
    command_type: Literal["bouy"] = Field("bouy", alias="commandType")
    position: Position


class DepthChargeCommand(_Command):
    command_type: Literal["depthCharge"] = Field("depthCharge", alias="commandType")
    position: Position


class MoveCommand(_Command):
    command_type: Literal["move"] = Field("move", alias="commandType")
    submarine_id: int = Field(alias="submarineId")
    position: Position


Command = Annotated[
    Union[NewGameCommand, JoinGameCommand, LeaveGameCommand, BouyCommand, DepthChargeCommand, MoveCommand],
    Field(discriminator="command_type"),
]

_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(Command)


def parse_command(raw: 'str|bytes') -> Command:
    """Decode one JSON command. Raises pydantic.ValidationError on bad input."""
    return _COMMAND_ADAPTER.validate_json(raw)


# === Outbound events (game -> player) ===

class Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ConnectedEvent(Event):
    event_type: Literal["connected"] = Field("connected", alias="eventType")
    player_id: int = Field(alias="playerId")


class GameCreatedEvent(Event):
    event_type: Literal["game_created"] = Field("game_created", alias="eventType")
    game_id: str = Field(alias="gameId")


class GameStartEvent(Event):
    event_type: Literal["game_start"] = Field("game_start", alias="eventType")
    first_player: int = Field(alias="firstPlayer")


class MapEvent(Event):
    """Terrain snapshot, sent once when a game starts."""
    event_type: Literal["map"] = Field("map", alias="eventType")
    width: int
    height: int
    land: List[Position] = []


class StateUpdateEvent(Event):
    event_type: Literal["state_update"] = Field("state_update", alias="eventType")
    current_player: int = Field(alias="currentPlayer")
    map: ViewGrid


class GameOverEvent(Event):
    event_type: Literal["game_over"] = Field("game_over", alias="eventType")
    # None is a draw
    winner: Optional[int] = None
    reason: Literal["destroyed", "forfeit"]


class ErrorEvent(Event):
    event_type: Literal["error"] = Field("error", alias="eventType")
    error_type: str = Field(alias="errorType")


# === Lobby (REST) ===

class GameListItem(BaseModel):
    game_id: str
    status: GameStatus
    has_open_slot: bool
    created_at: int


class GameListResponse(BaseModel):
    games: List[GameListItem] = []
