import random
import textwrap

from subhunt.schemas import GameRules, Position
from subhunt.services.board import Board
from subhunt.services.game import Game
from subhunt.services.player import ListSink, Player

# 10x10, one land tile at (5,5), five spawn tiles per side on the edges
OPEN_10 = """
    11111.....
    ..........
    ..........
    ..........
    ..........
    .....#....
    ..........
    ..........
    ..........
    .....22222
"""


def board_from(text: str) -> Board:
    return Board.from_text(textwrap.dedent(text))


def new_player(player_id: int) -> Player:
    return Player(id=player_id, sink=ListSink())


def active_game(board: Board | None = None, rules: GameRules | None = None, seed: int = 1) -> tuple[Game, Player, Player]:
    """A started game between players 1 and 2 with ListSinks attached."""
    a = new_player(1)
    b = new_player(2)
    game = Game.create(board or board_from(OPEN_10), a, game_id="testgame01", rules=rules, rng=random.Random(seed))
    game.join(b)
    return game, a, b


def place_submarines(game: Game, *placements: tuple[Player, int, int]) -> list:
    """Replace every submarine in `game` with the given (owner, x, y) ones."""
    game.entities.submarines = []
    return [game.entities.add_submarine(owner, Position(x=x, y=y)) for owner, x, y in placements]


def sink(player: Player) -> ListSink:
    assert isinstance(player.sink, ListSink)
    return player.sink
