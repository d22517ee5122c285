import asyncio
import random
from typing import Dict, Optional

from subhunt.schemas import ConnectedEvent, GameCreatedEvent, GameListItem, GameListResponse, GameRules
from subhunt.services.actor import GameActor, Handler
from subhunt.services.board import Board
from subhunt.services.errors import BoardConfigError, SessionNotFound
from subhunt.services.game import Game, _dbg, random_game_id
from subhunt.services.player import Player, PlayerSink
from subhunt.utils.audit import audit_write, forget


class GameDirectory:
    """
    Process-wide registry of connected players and open games.

    Created once at startup and handed to the connection layer; all games it
    creates share its board and rules.
    """
    def __init__(self, board: Board, rules: Optional[GameRules] = None, rng: Optional[random.Random] = None) -> None:
        self.board = board
        self.rules = rules or GameRules()
        self.rng = rng or random.Random()
        self._games: Dict[str, Game] = {}
        self._actors: Dict[str, GameActor] = {}
        self._retired: list[GameActor] = []
        self._players: Dict[int, Player] = {}
        self._player_seq = 0

    # --- players ---

    def connect(self, sink: PlayerSink) -> Player:
        self._player_seq += 1
        player = Player(id=self._player_seq, sink=sink)
        self._players[player.id] = player
        _dbg(f"[Player {player.id}] Connected")
        player.send_event(ConnectedEvent(player_id=player.id))
        return player

    def disconnect(self, player: Player) -> None:
        self._players.pop(player.id, None)
        _dbg(f"[Player {player.id}] Disconnected")

    def player(self, player_id: int) -> Optional[Player]:
        return self._players.get(player_id)

    @property
    def player_count(self) -> int:
        return len(self._players)

    # --- games ---

    def create(self, creator: Player) -> Game:
        if not self.board.can_host(self.rules.submarines_per_player):
            raise BoardConfigError(f"board cannot host {self.rules.submarines_per_player} submarines per player")
        game_id = random_game_id(self.rng)
        while game_id in self._games:
            game_id = random_game_id(self.rng)
        game = Game.create(
            self.board,
            creator,
            game_id=game_id,
            rules=self.rules,
            rng=random.Random(self.rng.random()),
        )
        self._games[game_id] = game
        creator.send_event(GameCreatedEvent(game_id=game_id))
        return game

    def get(self, game_id: str) -> Game:
        try:
            return self._games[game_id]
        except KeyError:
            raise SessionNotFound(f"no game {game_id!r}") from None

    def __contains__(self, game: Game) -> bool:
        return self._games.get(game.game_id) is game

    def actor_for(self, game: Game, handler: Handler) -> GameActor:
        if game not in self:
            raise SessionNotFound(f"game {game.game_id} is gone")
        actor = self._actors.get(game.game_id)
        if actor is None:
            actor = GameActor(game, handler)
            self._actors[game.game_id] = actor
        return actor

    def remove(self, game: Game) -> None:
        if game not in self:
            return
        del self._games[game.game_id]
        actor = self._actors.pop(game.game_id, None)
        if actor is not None:
            actor.stop()
            # kept only while it finishes the commands queued before stop()
            if actor.running:
                self._retired.append(actor)
                actor.on_stopped(self._release_actor)
        forget(game.game_id)
        game.info("Removed from directory")

    def _release_actor(self, actor: GameActor) -> None:
        if actor in self._retired:
            self._retired.remove(actor)

    @property
    def retired_actors(self) -> int:
        """Stopped actors still finishing their queue."""
        return len(self._retired)

    async def drain(self) -> None:
        """Wait for every game actor, including stopped ones, to go idle."""
        actors = list(self._actors.values()) + list(self._retired)
        await asyncio.gather(*(a.drain() for a in actors))

    def abort(self, game: Game, error: BoardConfigError) -> None:
        """Drop a game that could not be started and tell its players."""
        game.info(f"Aborted: {error}")
        audit_write(game.game_id, {"type": "game_aborted", "reason": str(error)})
        for p in game.players:
            if p.game is game:
                p.game = None
            p.send_error(error.kind)
        self.remove(game)

    def list(self) -> GameListResponse:
        items = [
            GameListItem(
                game_id=g.game_id,
                status=g.status,
                has_open_slot=g.has_open_slot(),
                created_at=g.created_at,
            )
            for g in self._games.values()
            if g.has_open_slot()
        ]
        return GameListResponse(games=items)

    def __len__(self) -> int:
        return len(self._games)
