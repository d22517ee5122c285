import asyncio
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Protocol

from subhunt.schemas import ErrorEvent, Event

if TYPE_CHECKING:
    from subhunt.services.game import Game


class PlayerSink(Protocol):
    """Outbound transport for one connection. Delivery is fire-and-forget."""

    def send(self, event: Event) -> None: ...


class QueueSink:
    """Serializes events to JSON text and queues them for a connection writer."""

    def __init__(self, maxsize: int = 0) -> None:
        self.q: asyncio.Queue[str | None] = asyncio.Queue(maxsize=maxsize)

    def send(self, event: Event) -> None:
        data = json.dumps(event.to_wire(), ensure_ascii=False)
        try:
            self.q.put_nowait(data)
        except asyncio.QueueFull:
            # slow reader; the next state_update carries the full view anyway
            pass

    def close(self) -> None:
        try:
            self.q.put_nowait(None)
        except asyncio.QueueFull:
            pass


class ListSink:
    """Keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def send(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_cls: type) -> list:
        return [e for e in self.events if isinstance(e, event_cls)]

    def last(self, event_cls: type):
        found = self.of_type(event_cls)
        return found[-1] if found else None

    def clear(self) -> None:
        self.events.clear()


@dataclass(eq=False)
class Player:
    id: int
    sink: PlayerSink = field(repr=False)
    game: Optional['Game'] = field(default=None, repr=False)

    def send_event(self, event: Event) -> None:
        self.sink.send(event)

    def send_error(self, error_type: str) -> None:
        self.sink.send(ErrorEvent(error_type=error_type))

    def in_active_game(self) -> bool:
        return self.game is not None and self.game.status != "over"
