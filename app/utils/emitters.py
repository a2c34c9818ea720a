"""
WebSocket Emitters
=====================================

Purpose:
    Centralized WebSocket emitter service leveraging Socket.IO Server.

Features:
- Broadcast control document changes to the Devices namespace.
- Emission failures are logged and never undo a completed write.
"""

import logging

from flask_socketio import SocketIO

from app.domain.control import ControlState
from app.enums.events import WebSocketEvent
from app.schemas.control import ControlStatePayload

logger = logging.getLogger("emitters")

WS_EVENT_CONTROL_STATE = WebSocketEvent.CONTROL_STATE.value

# Socket.IO Namespace Constants
SOCKETIO_NAMESPACE_DEVICES = "/devices"


class EmitterService:
    """
    Centralized WebSocket Emitter Service.

    Attributes:
        sio: The Socket.IO SocketIO instance for emitting events.
    """

    def __init__(self, sio: SocketIO | None):
        self.sio = sio

    def emit(
        self,
        event: str,
        payload: dict,
        room: str | None = None,
        namespace: str = "/",
    ):
        """
        Emit a Socket.IO event.

        Args:
            event (str): Event name (e.g., "control_state").
            payload (dict): JSON serializable data to send.
            room (Optional[str]): Socket.IO room identifier. Broadcasts if None.
            namespace (str): Socket.IO namespace to emit under (default "/").
        """
        if self.sio is None:
            return
        try:
            logger.debug("Emitting event='%s' to namespace='%s' room='%s'", event, namespace, room or "broadcast")
            self.sio.emit(event, payload, to=room, namespace=namespace)
        except Exception as e:
            logger.exception("[Emitter] Failed to emit event '%s' to room '%s': %s", event, room, e)

    def emit_control_state(self, state: ControlState, *, source: str, device: str | None = None) -> None:
        """Broadcast the full control document after a persisted change."""
        payload = ControlStatePayload(source=source, device=device, state=state.to_dict())
        self.emit(
            event=WS_EVENT_CONTROL_STATE,
            payload=payload.model_dump(),
            namespace=SOCKETIO_NAMESPACE_DEVICES,
        )
