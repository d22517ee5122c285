from subhunt.schemas import ClientTile, GameRules, Position, ViewGrid
from subhunt.services.board import Board
from subhunt.services.entities import EntityRegistry, Submarine
from subhunt.services.player import Player


def can_see(observer: Player, sub: Submarine, entities: EntityRegistry, rules: GameRules) -> bool:
    """Return True if `observer` can perceive `sub`.

    Own submarines are always visible. An enemy submarine is visible when it is
    within bouy range of one of the observer's bouys or within submarine range
    of one of the observer's submarines (both inclusive).
    """
    if sub.owned_by(observer):
        return True
    if any(b.pos.within(sub.pos, rules.bouy_spot_radius) for b in entities.bouys_of(observer)):
        return True
    return any(s.pos.within(sub.pos, rules.submarine_spot_radius) for s in entities.submarines_of(observer))


def render_for(observer: Player, board: Board, entities: EntityRegistry, rules: GameRules) -> ViewGrid:
    """
    Build `observer`'s view of the board, one entry per cell ([y][x]).

    A cell is None when nothing perceptible is there. Terrain is not part of the
    view; clients get it once from the map event.
    """
    subs = {s.pos: s for s in entities.submarines}
    bouys = {b.pos: b for b in entities.bouys}
    rows: ViewGrid = []
    for y in range(board.H):
        row: list[ClientTile | None] = []
        for x in range(board.W):
            pos = Position(x=x, y=y)
            tile = None
            sub = subs.get(pos)
            if sub is not None:
                # a hidden submarine hides whatever else shares its cell
                if can_see(observer, sub, entities, rules):
                    own = sub.owned_by(observer)
                    tile = ClientTile(kind="submarine", owner=sub.owner.id, id=sub.id if own else None)
            elif pos in bouys:
                tile = ClientTile(kind="bouy", owner=bouys[pos].owner.id)
            row.append(tile)
        rows.append(row)
    return rows
