from typing import Optional, assert_never

from pydantic import ValidationError

from subhunt.schemas import (
    BouyCommand,
    Command,
    DepthChargeCommand,
    JoinGameCommand,
    LeaveGameCommand,
    MoveCommand,
    NewGameCommand,
    parse_command,
)
from subhunt.services.directory import GameDirectory
from subhunt.services.errors import (
    AlreadyInGame,
    BoardConfigError,
    GameError,
    GameNotActive,
    InvalidCommand,
    NotInGame,
    NotYourSubmarine,
    NotYourTurn,
    SessionNotFound,
    SubmarineNotFound,
)
from subhunt.services.game import Game, _dbg
from subhunt.services.player import Player, PlayerSink
from subhunt.utils.audit import audit_write


class CommandDispatcher:
    """
    Turns decoded player commands into game operations.

    Lobby work (creating a game) happens immediately. Anything that touches a
    game is queued on that game's actor and checked when it runs: the issuer
    must be in that game, the game must be active, the issuer must hold the
    turn, and a moved submarine must be theirs. Rejections go back to the
    issuer as error events.
    """
    def __init__(self, directory: GameDirectory) -> None:
        self.directory = directory

    # --- connection lifecycle ---

    def connect(self, sink: PlayerSink) -> Player:
        return self.directory.connect(sink)

    def disconnect(self, player: Player) -> None:
        self.directory.disconnect(player)
        if player.game is not None:
            try:
                self._submit(player.game, player, LeaveGameCommand())
            except SessionNotFound:
                player.game = None

    # --- inbound ---

    def handle_message(self, player: Player, raw: 'str|bytes') -> None:
        _dbg(f"[Player {player.id}] {raw!r}")
        try:
            command = parse_command(raw)
        except ValidationError as e:
            _dbg(f"[Player {player.id}] invalid command: {e.error_count()} error(s)")
            player.send_error(InvalidCommand.kind)
            return
        self.dispatch(player, command)

    def dispatch(self, player: Player, command: Command) -> None:
        try:
            match command:
                case NewGameCommand():
                    self._new_game(player)
                case JoinGameCommand(game_id=game_id):
                    if player.in_active_game():
                        raise AlreadyInGame()
                    self._submit(self.directory.get(game_id), player, command)
                case LeaveGameCommand() | BouyCommand() | DepthChargeCommand() | MoveCommand():
                    if player.game is None:
                        raise NotInGame()
                    self._submit(player.game, player, command)
                case _:
                    assert_never(command)
        except GameError as e:
            self._reject(player, None, e)

    def apply(self, game: Game, player: Player, command: Command) -> None:
        """Run one command against `game`. Called by the game's actor only."""
        try:
            match command:
                case JoinGameCommand():
                    self._join(game, player)
                case LeaveGameCommand():
                    self._leave(game, player)
                case BouyCommand(position=pos):
                    self._require_turn(game, player)
                    game.place_bouy(player, pos)
                case DepthChargeCommand(position=pos):
                    self._require_turn(game, player)
                    game.drop_depth_charge(player, pos)
                case MoveCommand(submarine_id=submarine_id, position=pos):
                    self._require_turn(game, player)
                    sub = game.entities.find_submarine(submarine_id)
                    if sub is None:
                        raise SubmarineNotFound(f"no submarine {submarine_id}")
                    if not sub.owned_by(player):
                        raise NotYourSubmarine(f"submarine {submarine_id} belongs to {sub.owner.id}")
                    game.move_submarine(sub, pos)
                case NewGameCommand():
                    # lobby command; dispatch() never queues it on a game
                    raise InvalidCommand("gameNew is not a game command")
                case _:
                    assert_never(command)
        except GameError as e:
            self._reject(player, game, e)

    # --- helpers ---

    def _submit(self, game: Game, player: Player, command: Command) -> None:
        actor = self.directory.actor_for(game, self.apply)
        if not actor.submit(player, command):
            raise SessionNotFound(f"game {game.game_id} is closed")

    def _new_game(self, player: Player) -> None:
        if player.in_active_game():
            raise AlreadyInGame()
        self._release_finished(player)
        try:
            self.directory.create(player)
        except BoardConfigError as e:
            _dbg(f"[Player {player.id}] cannot create game: {e}")
            player.send_error(e.kind)

    def _join(self, game: Game, player: Player) -> None:
        if game not in self.directory:
            raise SessionNotFound(f"game {game.game_id} is gone")
        # the join may have been queued before the player disconnected
        if self.directory.player(player.id) is not player:
            raise NotInGame(f"player {player.id} is no longer connected")
        if player.in_active_game():
            raise AlreadyInGame()
        self._release_finished(player)
        try:
            game.join(player)
        except BoardConfigError as e:
            player.send_error(e.kind)
            self.directory.abort(game, e)

    def _leave(self, game: Game, player: Player) -> None:
        if player.game is not game:
            raise NotInGame()
        game.leave(player)
        if game.is_abandoned():
            self.directory.remove(game)

    def _release_finished(self, player: Player) -> None:
        """Detach a player from a game that is already over."""
        old = player.game
        if old is None:
            return
        old.leave(player)
        if old.is_abandoned():
            self.directory.remove(old)

    def _require_turn(self, game: Game, player: Player) -> None:
        if player.game is not game:
            raise NotInGame()
        if game.status != "active":
            raise GameNotActive(f"game {game.game_id} is {game.status}")
        if game.current_turn is not player:
            raise NotYourTurn(f"player {player.id} does not hold the turn")

    def _reject(self, player: Player, game: Optional[Game], error: GameError) -> None:
        _dbg(f"[Player {player.id}] rejected: {error.kind} ({error})")
        if game is not None:
            audit_write(game.game_id, {"type": "rejected", "player": player.id, "error": error.kind})
        player.send_error(error.kind)
