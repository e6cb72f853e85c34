"""Real-time notification listener over the server's socket.io channel."""

import threading
from collections.abc import Callable
from typing import Any

import socketio
import structlog
from socketio.exceptions import ConnectionError as SocketConnectionError

from nestblue_sync.models import Notification

logger = structlog.get_logger()

DEFAULT_WS_URL = "http://localhost:4000"
NAMESPACE = "/notifications"
RECONNECTION_ATTEMPTS = 5
RECONNECTION_DELAY = 1

Listener = Callable[[Any], None]


class NotificationListener:
    """Connects to the notifications namespace and fans events out to subscribers.

    Server events ``notification`` and ``unread-count`` are re-emitted, along
    with the lifecycle events ``connected``, ``disconnected`` and ``error``.
    A failed connection is logged and left unestablished until ``connect`` is
    called again.
    """

    def __init__(self, ws_url: str = DEFAULT_WS_URL, workspace: Any = None) -> None:
        """Initialize the listener.

        Args:
            ws_url: Socket server base URL
            workspace: Optional Workspace; incoming notifications are mirrored into it
        """
        self.ws_url = ws_url
        self.workspace = workspace
        self.socket: "socketio.Client | None" = None
        self._listeners: dict[str, list[Listener]] = {}
        self._connecting = False
        self._lock = threading.Lock()

    def connect(self, token: str) -> None:
        """Open the socket, authenticating with a bearer token.

        Does nothing when already connected or connecting.
        """
        with self._lock:
            if self.is_connected() or self._connecting:
                logger.debug("Notification socket already connected or connecting")
                return
            self._connecting = True

        self.socket = socketio.Client(
            reconnection=True,
            reconnection_attempts=RECONNECTION_ATTEMPTS,
            reconnection_delay=RECONNECTION_DELAY,
        )
        self.socket.on("connect", self._on_connect, namespace=NAMESPACE)
        self.socket.on("disconnect", self._on_disconnect, namespace=NAMESPACE)
        self.socket.on("connect_error", self._on_connect_error, namespace=NAMESPACE)
        self.socket.on("notification", self._on_notification, namespace=NAMESPACE)
        self.socket.on("unread-count", self._on_unread_count, namespace=NAMESPACE)

        logger.info("Connecting notification socket", url=self.ws_url, namespace=NAMESPACE)
        try:
            self.socket.connect(
                self.ws_url,
                namespaces=[NAMESPACE],
                auth={"token": token},
                transports=["websocket", "polling"],
            )
        except SocketConnectionError as e:
            logger.error("Notification socket connection failed", url=self.ws_url, error=str(e))
            self._connecting = False
            self._emit("error", {"error": e})

    def disconnect(self) -> None:
        """Close the socket and drop every subscriber."""
        if self.socket is not None:
            self.socket.disconnect()
            self.socket = None
        self._listeners.clear()
        self._connecting = False
        logger.info("Notification socket disconnected")

    def wait(self) -> None:
        """Block until the socket closes."""
        if self.socket is not None:
            self.socket.wait()

    def is_connected(self) -> bool:
        return bool(self.socket is not None and self.socket.connected)

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        """Subscribe to an event.

        Returns:
            A callable that removes this subscription
        """
        self._listeners.setdefault(event, []).append(callback)
        return lambda: self.off(event, callback)

    def off(self, event: str, callback: Listener | None = None) -> None:
        """Remove one subscriber, or every subscriber of an event when no callback is given."""
        if callback is None:
            self._listeners.pop(event, None)
            return
        callbacks = self._listeners.get(event)
        if not callbacks:
            return
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            del self._listeners[event]

    def _emit(self, event: str, data: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(data)
            except Exception as e:
                logger.error("Notification listener raised", notification_event=event, error=str(e))

    def _on_connect(self) -> None:
        logger.info("Notification socket connected")
        self._connecting = False
        self._emit("connected", {})

    def _on_disconnect(self, reason: Any = None) -> None:
        logger.info("Notification socket disconnected by server", reason=reason)
        self._connecting = False
        self._emit("disconnected", {"reason": reason})

    def _on_connect_error(self, data: Any = None) -> None:
        logger.error("Notification socket connection error", error=data)
        self._connecting = False
        self._emit("error", {"error": data})

    def _on_notification(self, payload: Any) -> None:
        try:
            notification = Notification.from_api(payload)
        except ValueError as e:
            logger.warning("Undecodable notification payload", error=str(e))
            self._emit("notification", payload)
            return
        logger.debug("Notification received", notification_id=notification.id)
        if self.workspace is not None:
            sync = self.workspace["notifications"]
            sync.store.add(notification)
            sync.cache.invalidate(sync.query_key)
        self._emit("notification", notification)

    def _on_unread_count(self, data: Any) -> None:
        logger.debug("Unread count received", data=data)
        self._emit("unread-count", data)
