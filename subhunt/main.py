import os
import sys
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
import uvicorn

# Resolve project root (two levels up from this file: subhunt/main.py -> project root)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
# Ensure project root on sys.path so `import subhunt.*` works when running as a script
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from subhunt.routers.game_router import router as game_router
from subhunt.schemas import GameRules
from subhunt.services.board import Board, generate_board
from subhunt.services.directory import GameDirectory
from subhunt.services.protocol import CommandDispatcher

IMAGE_SUFFIXES = {".png", ".bmp", ".gif"}

DEFAULT_MAP_W = 40
DEFAULT_MAP_H = 30


def load_board(source: Optional[str] = None, seed: Optional[int] = None) -> Board:
    """Load the map from an image or text file, or generate one."""
    if source:
        path = Path(source)
        if path.suffix.lower() in IMAGE_SUFFIXES:
            return Board.from_image(path)
        return Board.from_text(path.read_text(encoding="utf-8"))
    return generate_board(DEFAULT_MAP_W, DEFAULT_MAP_H, blobs=12, seed=seed)


def board_from_env() -> Board:
    seed = os.getenv("SUBHUNT_MAP_SEED")
    return load_board(os.getenv("SUBHUNT_MAP"), seed=int(seed) if seed else None)


def create_app(directory: Optional[GameDirectory] = None) -> FastAPI:
    if directory is None:
        directory = GameDirectory(board_from_env(), rules=GameRules.from_env())
    app = FastAPI()
    app.state.directory = directory
    app.state.dispatcher = CommandDispatcher(directory)

    # Health check
    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "games": len(directory), "players": directory.player_count}

    app.include_router(game_router, tags=["game"])
    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host=os.getenv("SUBHUNT_HOST", "0.0.0.0"), port=int(os.getenv("SUBHUNT_PORT", "8080")))


if __name__ == "__main__":
    main()
