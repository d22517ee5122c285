import os
import random
import string
import sys
import time
from dataclasses import dataclass, field
from typing import Optional

from subhunt.schemas import (
    GAME_ID_LENGTH,
    SPAWN_TILES,
    Event,
    GameOverEvent,
    GameRules,
    GameStartEvent,
    GameStatus,
    MapEvent,
    Position,
    StateUpdateEvent,
    TileType,
    ViewGrid,
)
from subhunt.services.board import Board
from subhunt.services.entities import EntityRegistry, Submarine
from subhunt.services.errors import (
    BoardConfigError,
    GameNotActive,
    LandPlacement,
    OutOfRange,
    SessionFull,
    TileOccupiedByMarker,
    TileOccupiedBySubmarine,
)
from subhunt.services.player import Player
from subhunt.services.visibility import render_for
from subhunt.utils.audit import audit_write

# Debug flag: enable when running tests or when env var SUBHUNT_DEBUG is set
DEBUG = bool(os.getenv('SUBHUNT_DEBUG')) or ('unittest' in sys.modules) or ('PYTEST_CURRENT_TEST' in os.environ)


def _dbg(*args, **kwargs):
    if DEBUG:
        print(*args, **kwargs)


def random_game_id(rng: random.Random, length: int = GAME_ID_LENGTH) -> str:
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(length))


@dataclass(eq=False)
class Game:
    """
    One two-player match.

    waiting -> active on the second join, active -> over when a side has no
    submarines left or a player leaves. Operations raise GameError subclasses
    and leave the game untouched when they do; every successful action passes
    the turn and sends each player a freshly rendered view.
    """
    game_id: str
    board: Board = field(repr=False)
    rules: GameRules = field(default_factory=GameRules)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    status: GameStatus = "waiting"
    players: list[Player] = field(default_factory=list)
    entities: EntityRegistry = field(default_factory=EntityRegistry, repr=False)
    current_turn: Optional[Player] = None
    winner: Optional[Player] = None
    created_at: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def create(cls, board: Board, creator: Player, *, game_id: str | None = None,
               rules: GameRules | None = None, rng: random.Random | None = None) -> 'Game':
        rng = rng or random.Random()
        game = cls(
            game_id=game_id or random_game_id(rng),
            board=board,
            rules=rules or GameRules(),
            rng=rng,
        )
        game.players.append(creator)
        creator.game = game
        game.info(f"Created by player {creator.id}")
        audit_write(game.game_id, {"type": "game_created", "player": creator.id, "map_w": board.W, "map_h": board.H})
        return game

    def info(self, message: str) -> None:
        _dbg(f"[Game {self.game_id}] {message}")

    def has_open_slot(self) -> bool:
        return self.status == "waiting" and len(self.players) < 2

    def opponent_of(self, player: Player) -> Optional[Player]:
        return next((p for p in self.players if p is not player), None)

    # --- lifecycle ---

    def join(self, joiner: Player) -> None:
        if not self.has_open_slot():
            raise SessionFull(f"game {self.game_id} already has {len(self.players)} players")
        self.players.append(joiner)
        joiner.game = self
        try:
            self.initialize()
        except BoardConfigError:
            self.players.remove(joiner)
            joiner.game = None
            raise

    def initialize(self) -> None:
        if len(self.players) != 2:
            raise RuntimeError("Cannot start a game without exactly two players.")
        count = self.rules.submarines_per_player
        # pick every spawn before touching state so a bad board leaves nothing behind
        placements: list[tuple[Player, Position]] = []
        for player, tile_type in zip(self.players, SPAWN_TILES):
            spawns = sorted(self.board.tiles_of_type(tile_type))
            if len(spawns) < count:
                raise BoardConfigError(
                    f"{tile_type.name} has {len(spawns)} tiles, {count} submarines per player required"
                )
            self.rng.shuffle(spawns)
            for _ in range(count):
                placements.append((player, spawns.pop()))

        for player, pos in placements:
            self.entities.add_submarine(player, pos)
        self.current_turn = self.rng.choice(self.players)
        self.status = "active"

        self.info(f"Game started. First player is {self.current_turn.id}")
        audit_write(self.game_id, {
            "type": "game_start",
            "players": [p.id for p in self.players],
            "first_player": self.current_turn.id,
            "submarines": [
                {"id": s.id, "owner": s.owner.id, "pos": [s.pos.x, s.pos.y]} for s in self.entities.submarines
            ],
        })
        self._broadcast(GameStartEvent(first_player=self.current_turn.id))
        self.send_map_to_clients()
        self.send_state_to_clients()

    def leave(self, player: Player) -> None:
        """Detach `player`. Leaving an active game forfeits it to the opponent."""
        if player not in self.players:
            return
        if player.game is self:
            player.game = None
        audit_write(self.game_id, {"type": "player_left", "player": player.id, "status": self.status})
        if self.status == "waiting":
            self.players.remove(player)
            self.info(f"Player {player.id} left before the game started")
        elif self.status == "active":
            self.info(f"Player {player.id} left; forfeit")
            self._finish(self.opponent_of(player), reason="forfeit")

    def is_abandoned(self) -> bool:
        return all(p.game is not self for p in self.players)

    # --- actions ---

    def place_bouy(self, player: Player, pos: Position) -> None:
        self._require_active()
        if self.board.classify(pos) == TileType.LAND:
            raise LandPlacement(kind="cannot_place_bouy_on_land")
        if self.entities.bouy_at(pos) is not None:
            raise TileOccupiedByMarker(f"bouy already at ({pos.x},{pos.y})")

        bouy = self.entities.add_bouy(player, pos)
        audit_write(self.game_id, {"type": "bouy", "player": player.id, "id": bouy.id, "pos": [pos.x, pos.y]})

        self.advance_turn()
        self.send_state_to_clients()

    def drop_depth_charge(self, player: Player, pos: Position) -> None:
        self._require_active()
        if self.board.classify(pos) == TileType.LAND:
            raise LandPlacement(kind="cannot_drop_depth_charge_on_land")

        radius = self.rules.blast_radius
        destroyed = self.entities.remove_submarines(lambda s: s.pos.within(pos, radius))
        self.info(f"Depth charge by {player.id} at ({pos.x},{pos.y}) destroyed {[s.id for s in destroyed]}")
        audit_write(self.game_id, {
            "type": "depth_charge",
            "player": player.id,
            "pos": [pos.x, pos.y],
            "destroyed": [s.id for s in destroyed],
        })

        self.advance_turn()
        if self._check_over():
            return
        self.send_state_to_clients()

    def move_submarine(self, sub: Submarine, target: Position) -> None:
        self._require_active()
        if self.board.classify(target) == TileType.LAND:
            raise LandPlacement(kind="cannot_move_submarine_onto_land")
        if sub.pos.distance(target) > self.rules.submarine_range:
            raise OutOfRange(f"({target.x},{target.y}) is {sub.pos.distance(target):.2f} away")
        other = self.entities.submarine_at(target)
        if other is not None and other is not sub:
            raise TileOccupiedBySubmarine(f"submarine {other.id} is at ({target.x},{target.y})")

        audit_write(self.game_id, {
            "type": "move",
            "player": sub.owner.id,
            "id": sub.id,
            "from": [sub.pos.x, sub.pos.y],
            "to": [target.x, target.y],
        })
        sub.pos = target

        self.advance_turn()
        self.send_state_to_clients()

    def advance_turn(self) -> None:
        if self.current_turn is None:
            self.info("advance_turn() called without a player having the turn.")
            return
        if self.current_turn not in self.players:
            self.info("advance_turn() could not find the turn holder in the list of players.")
            return
        idx = self.players.index(self.current_turn)
        self.current_turn = self.players[(idx + 1) % len(self.players)]
        self.info(f"New turn. Current player is {self.current_turn.id}")
        audit_write(self.game_id, {"type": "turn", "player": self.current_turn.id})

    # --- views ---

    def render_for(self, player: Player) -> ViewGrid:
        return render_for(player, self.board, self.entities, self.rules)

    def send_map_to_clients(self) -> None:
        self._broadcast(MapEvent(width=self.board.W, height=self.board.H, land=self.board.land_tiles()))

    def send_state_to_clients(self) -> None:
        current = self.current_turn.id if self.current_turn else 0
        for player in self.players:
            player.send_event(StateUpdateEvent(current_player=current, map=self.render_for(player)))

    # --- internal ---

    def _require_active(self) -> None:
        if self.status != "active":
            raise GameNotActive(f"game {self.game_id} is {self.status}")

    def _check_over(self) -> bool:
        beaten = [p for p in self.players if self.entities.count_submarines(p) == 0]
        if not beaten:
            return False
        if len(beaten) == len(self.players):
            winner = None
        else:
            winner = next(p for p in self.players if p not in beaten)
        self._finish(winner, reason="destroyed")
        return True

    def _finish(self, winner: Optional[Player], reason: str) -> None:
        self.status = "over"
        self.winner = winner
        self.info(f"Game over ({reason}). Winner is {winner.id if winner else 'nobody'}")
        audit_write(self.game_id, {"type": "game_over", "winner": winner.id if winner else None, "reason": reason})
        self.send_state_to_clients()
        self._broadcast(GameOverEvent(winner=winner.id if winner else None, reason=reason))

    def _broadcast(self, event: Event) -> None:
        for player in self.players:
            player.send_event(event)
