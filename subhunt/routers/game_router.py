import asyncio

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from subhunt.schemas import GameListResponse
from subhunt.services.directory import GameDirectory
from subhunt.services.game import _dbg
from subhunt.services.player import QueueSink
from subhunt.services.protocol import CommandDispatcher


router = APIRouter()


@router.get("/games", response_model=GameListResponse)
def list_games(request: Request) -> GameListResponse:
    directory: GameDirectory = request.app.state.directory
    return directory.list()


async def _pump(websocket: WebSocket, sink: QueueSink) -> None:
    """Forward queued events to the socket until the sink is closed."""
    while True:
        data = await sink.q.get()
        if data is None:
            return
        try:
            await websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError) as e:
            # connection already gone; delivery is best effort
            _dbg(f"send failed: {e!r}")
            return


@router.websocket("/ws")
async def game_websocket(websocket: WebSocket) -> None:
    """
    One player connection.

    Client messages are JSON commands tagged by `commandType`
    (gameNew, gameJoin, gameLeave, bouy, depthCharge, move).
    Server messages are JSON events tagged by `eventType`
    (connected, game_created, game_start, map, state_update, game_over, error).
    """
    await websocket.accept()
    dispatcher: CommandDispatcher = websocket.app.state.dispatcher

    sink = QueueSink()
    player = dispatcher.connect(sink)
    sender = asyncio.create_task(_pump(websocket, sink))
    try:
        while True:
            data = await websocket.receive_text()
            dispatcher.handle_message(player, data)
    except WebSocketDisconnect:
        pass
    finally:
        dispatcher.disconnect(player)
        sink.close()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
