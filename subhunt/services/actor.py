import asyncio
import traceback
from typing import TYPE_CHECKING, Callable, Optional

from subhunt.schemas import Command
from subhunt.services.game import _dbg
from subhunt.services.player import Player

if TYPE_CHECKING:
    from subhunt.services.game import Game

Handler = Callable[['Game', Player, Command], None]


class GameActor:
    """
    Serializes every command for one game.

    Commands from both connections are queued and applied one at a time in
    arrival order by a single task, so game state is never mutated
    concurrently. Different games have different actors and do not wait on
    each other.
    """
    def __init__(self, game: 'Game', handler: Handler):
        self.game = game
        self.handler = handler
        self.q: asyncio.Queue[tuple[Player, Command] | None] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.closed = False

    def submit(self, player: Player, command: Command) -> bool:
        if self.closed:
            return False
        self.q.put_nowait((player, command))
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run(), name=f"game-{self.game.game_id}")
        return True

    async def run(self) -> None:
        while True:
            item = await self.q.get()
            try:
                if item is None:
                    break
                player, command = item
                try:
                    self.handler(self.game, player, command)
                except Exception:
                    print(f"[Game {self.game.game_id}] COMMAND ERROR:\n" + traceback.format_exc())
            finally:
                self.q.task_done()
        _dbg(f"[Game {self.game.game_id}] actor stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_stopped(self, callback: Callable[['GameActor'], None]) -> None:
        """Call `callback(self)` once the run loop has exited."""
        if not self.running:
            callback(self)
            return
        self._task.add_done_callback(lambda _task: callback(self))

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await asyncio.wait([self._task])

    async def drain(self) -> None:
        """Wait until every queued command has been applied."""
        await self.q.join()

    def stop(self) -> None:
        # commands queued before this still run
        if self.closed:
            return
        self.closed = True
        if self._task is not None:
            self.q.put_nowait(None)
