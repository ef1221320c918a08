from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

Listener = Callable[[Any, str], None]
Unsubscribe = Callable[[], None]

ANY_ORIGIN = "*"


class Transport(Protocol):
    """Postable-message link to the host; ``subscribe`` returns the matching unsubscribe."""

    def post(self, message: dict[str, Any], target_origin: str) -> None: ...

    def subscribe(self, listener: Listener) -> Unsubscribe: ...


@dataclass(frozen=True)
class PostedMessage:
    message: dict[str, Any]
    target_origin: str
    delivered: bool


@dataclass
class LoopbackTransport:
    """In-process host link.

    ``dispatch`` plays the host side. With ``echo`` set the widget's own posts are
    broadcast back to its listeners, like a shared broadcast channel would.
    """

    host_origin: str = "https://host.example"
    widget_origin: str = "https://widget.example"
    echo: bool = False
    outbox: list[PostedMessage] = field(default_factory=list)
    _listeners: list[Listener] = field(default_factory=list)

    def post(self, message: dict[str, Any], target_origin: str) -> None:
        delivered = target_origin in {ANY_ORIGIN, self.host_origin}
        self.outbox.append(PostedMessage(message=message, target_origin=target_origin, delivered=delivered))
        if self.echo:
            self._broadcast(message, self.widget_origin)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(self, data: Any, origin: str | None = None) -> None:
        self._broadcast(data, origin or self.host_origin)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def delivered(self) -> list[dict[str, Any]]:
        return [posted.message for posted in self.outbox if posted.delivered]

    def types(self) -> list[str]:
        return [str(posted.message.get("type")) for posted in self.outbox]

    def _broadcast(self, data: Any, origin: str) -> None:
        for listener in list(self._listeners):
            listener(data, origin)
