from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from ..core.scene import SimClock
from ..utils.math2d import distance_between

SOUND_TTL = 3000.0


@dataclass(frozen=True, slots=True)
class SoundEvent:
    x: float
    y: float
    volume: float
    category: str
    distance: float
    timestamp: float


class HearingSystem:
    def __init__(self, owner: Any, clock: SimClock, hearing_range: float = 150.0):
        self.owner = owner
        self.clock = clock
        self.hearing_range = hearing_range
        self.sound_events: List[SoundEvent] = []

    def add_sound_event(
        self, x: float, y: float, volume: float = 1.0, category: str = "generic"
    ) -> Optional[SoundEvent]:
        distance = distance_between(self.owner.x, self.owner.y, x, y)
        # Volume scales the audible radius, not loudness.
        if distance > self.hearing_range * volume:
            return None
        event = SoundEvent(x, y, volume, category, distance, self.clock.now())
        self.sound_events.append(event)
        return event

    def get_latest_sound(self) -> Optional[SoundEvent]:
        now = self.clock.now()
        self.sound_events = [event for event in self.sound_events if now - event.timestamp < SOUND_TTL]
        latest: Optional[SoundEvent] = None
        for event in self.sound_events:
            if latest is None or event.timestamp > latest.timestamp:
                latest = event
        return latest

    def clear_sounds(self) -> None:
        self.sound_events.clear()

    def set_hearing_range(self, hearing_range: float) -> None:
        self.hearing_range = hearing_range
