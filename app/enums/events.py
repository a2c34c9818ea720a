from enum import Enum


class WebSocketEvent(str, Enum):
    """WebSocket event names for real-time communication."""

    # Device namespace events
    CONTROL_STATE = "control_state"


class ControlEvent(str, Enum):
    """Audit actions recorded against the control document."""

    COMMAND_APPLIED = "command_applied"
    COMMAND_REJECTED = "command_rejected"
    WASHER_AUTO_OFF = "washer_auto_off"
