"""Rejections raised by game operations.

A `GameError` means the player broke a rule: the command is dropped, the game
is left untouched and the player is told `kind`. `BoardConfigError` is the one
fatal case and aborts the game it was raised for.
"""


class GameError(Exception):
    kind: str = "game_error"

    def __init__(self, message: str = "", *, kind: str | None = None):
        if kind is not None:
            self.kind = kind
        super().__init__(message or self.kind)


class OutOfBounds(GameError):
    kind = "out_of_bounds"


class LandPlacement(GameError):
    kind = "cannot_place_on_land"


class TileOccupiedByMarker(GameError):
    kind = "tile_already_used_for_bouy"


class TileOccupiedBySubmarine(GameError):
    kind = "cannot_move_to_occupied_tile"


class OutOfRange(GameError):
    kind = "cannot_move_submarine_that_far"


class SessionFull(GameError):
    kind = "game_full"


class SessionNotFound(GameError):
    kind = "game_not_found"


class NotInGame(GameError):
    kind = "not_in_game"


class AlreadyInGame(GameError):
    kind = "already_in_game"


class NotYourTurn(GameError):
    kind = "not_your_turn"


class NotYourSubmarine(GameError):
    kind = "not_your_submarine"


class SubmarineNotFound(GameError):
    kind = "submarine_not_found"


class GameNotActive(GameError):
    kind = "game_not_active"


class InvalidCommand(GameError):
    kind = "invalid_command"


class BoardConfigError(RuntimeError):
    """The board cannot host a game (not enough spawn tiles)."""
    kind = "game_aborted"
