from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class MessageKind(str, Enum):
    ALERT = "alert"
    SHARE_SIGHTING = "share_sighting"
    INSPIRE = "inspire"
    DAMAGED = "damaged"


@dataclass(frozen=True, slots=True)
class Message:
    """A notification from one agent (or the host) to another.

    Cross-agent effects travel as messages through the manager outbox instead of
    agents mutating their peers directly. ``receiver_id`` of -1 means the message is
    handed straight to an agent's state machine rather than routed by id.
    """

    kind: MessageKind
    sender_id: int = -1
    receiver_id: int = -1
    payload: Any = None
