import random
from collections import deque
from pathlib import Path

from PIL import Image

from subhunt.schemas import Position, TileType, SPAWN_TILES
from subhunt.services.errors import OutOfBounds

# map image colour key
_SPAWN1_RGB = (0xFF, 0x00, 0x00)
_SPAWN2_RGB = (0x00, 0x00, 0xFF)
_LAND_RGB = (0xFF, 0xFF, 0xFF)

_TEXT_KEY = {
    ".": TileType.WATER,
    "#": TileType.LAND,
    "1": TileType.PLAYER1_SPAWN,
    "2": TileType.PLAYER2_SPAWN,
}


def generate_board(width: int, height: int, blobs: int = 10, seed: int | None = None, spawn_size: int = 4) -> 'Board':
    """
    Place random land blobs until every non-land tile is reachable from every
    other, then mark a spawn square for each player in opposite corners.
    """
    r = random.Random(seed)
    W, H = width, height
    rows: list[list[int]] = []
    for _attempt in range(60):
        rows = [[int(TileType.WATER) for _ in range(W)] for __ in range(H)]
        for _ in range(blobs):
            cx = r.randint(2, max(2, W - 3))
            cy = r.randint(2, max(2, H - 3))
            rad = r.randint(1, 3)
            for dy in range(-rad, rad + 1):
                for dx in range(-rad, rad + 1):
                    if dx * dx + dy * dy <= rad * rad:
                        x = max(0, min(W - 1, cx + dx))
                        y = max(0, min(H - 1, cy + dy))
                        rows[y][x] = int(TileType.LAND)
        # spawn corners are always open sea
        for y in range(min(spawn_size, H)):
            for x in range(min(spawn_size, W)):
                rows[y][x] = int(TileType.PLAYER1_SPAWN)
                rows[H - 1 - y][W - 1 - x] = int(TileType.PLAYER2_SPAWN)
        board = Board(rows)
        if board.validate_sea_connectivity():
            return board
    raise ValueError(f"could not generate a connected {W}x{H} board with {blobs} blobs")


class Board:
    """
    Immutable tile grid shared by every game played on it.
    Rows are indexed [y][x]; anything that is not LAND is navigable sea.
    """
    def __init__(self, rows: list[list[int]]):
        if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
            raise ValueError("rows must be a 2D list")
        H = len(rows)
        W = len(rows[0]) if H > 0 else 0
        if W == 0:
            raise ValueError("board must have at least one tile")
        if any(len(row) != W for row in rows):
            raise ValueError("All rows must have the same length")
        self.__map: tuple[tuple[TileType, ...], ...] = tuple(
            tuple(TileType(v) for v in row) for row in rows
        )
        self.__W = W
        self.__H = H

    @classmethod
    def from_rows(cls, rows: list[list[int]]) -> 'Board':
        return cls(rows)

    @classmethod
    def from_text(cls, text: str) -> 'Board':
        """Parse a text map: '.' water, '#' land, '1'/'2' player spawns."""
        rows = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rows.append([int(_TEXT_KEY[ch]) for ch in line])
            except KeyError as e:
                raise ValueError(f"line {lineno}: unknown tile {e.args[0]!r}") from None
        return cls(rows)

    @classmethod
    def from_image(cls, path: 'str|Path') -> 'Board':
        """
        Decode a map image, one pixel per tile.
        Pure red/blue are player 1/2 spawns, pure white is land, the rest water.
        """
        with Image.open(path) as img:
            rgb = img.convert("RGB")
            W, H = rgb.size
            pixels = rgb.load()
            rows = []
            for y in range(H):
                row = []
                for x in range(W):
                    px = pixels[x, y]
                    if px == _SPAWN1_RGB:
                        row.append(int(TileType.PLAYER1_SPAWN))
                    elif px == _SPAWN2_RGB:
                        row.append(int(TileType.PLAYER2_SPAWN))
                    elif px == _LAND_RGB:
                        row.append(int(TileType.LAND))
                    else:
                        row.append(int(TileType.WATER))
                rows.append(row)
        return cls(rows)

    @property
    def W(self) -> int:
        return self.__W

    @property
    def H(self) -> int:
        return self.__H

    @property
    def shape(self) -> tuple[int, int]:
        return (self.W, self.H)

    def copy_as_list(self) -> list[list[int]]:
        return [[int(v) for v in row] for row in self.__map]

    def get(self, x: int, y: int) -> TileType:
        if not (0 <= x < self.W and 0 <= y < self.H):
            raise OutOfBounds(f"({x},{y}) is outside the {self.W}x{self.H} board")
        return self.__map[y][x]

    def classify(self, pos: Position) -> TileType:
        return self.get(pos.x, pos.y)

    def __getitem__(self, pos: Position) -> TileType:
        if not isinstance(pos, Position):
            raise TypeError(f"Board indices must be Position, not {type(pos).__name__}")
        return self.classify(pos)

    def tiles_of_type(self, tile_type: TileType) -> set[Position]:
        return {
            Position(x=x, y=y)
            for y, row in enumerate(self.__map)
            for x, v in enumerate(row)
            if v == tile_type
        }

    def land_tiles(self) -> list[Position]:
        return sorted(self.tiles_of_type(TileType.LAND))

    def can_host(self, submarines_per_player: int) -> bool:
        """True when every player slot has enough spawn tiles."""
        return all(len(self.tiles_of_type(t)) >= submarines_per_player for t in SPAWN_TILES)

    def validate_sea_connectivity(self) -> bool:
        """
        All non-land tiles must be reachable from each other (4-neighbour moves).
        """
        sea = [Position(x=x, y=y) for y, row in enumerate(self.__map) for x, v in enumerate(row) if v != TileType.LAND]
        if not sea:
            return False
        seen = {sea[0]}
        q = deque([sea[0]])
        while q:
            cp = q.popleft()
            for dx, dy in ((1, 0), (-1, 0), (0, 1), (0, -1)):
                nx, ny = cp.x + dx, cp.y + dy
                if not (0 <= nx < self.W and 0 <= ny < self.H):
                    continue
                if self.__map[ny][nx] == TileType.LAND:
                    continue
                np = Position(x=nx, y=ny)
                if np not in seen:
                    seen.add(np)
                    q.append(np)
        return len(seen) == len(sea)
