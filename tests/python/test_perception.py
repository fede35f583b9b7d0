from __future__ import annotations

import math
from types import SimpleNamespace

from pygame.math import Vector2

from prowler.sim.core.scene import SimClock
from prowler.sim.systems.hearing import SOUND_TTL, HearingSystem
from prowler.sim.systems.vision import VisionSystem


def _at(angle_deg: float, distance: float) -> Vector2:
    angle = math.radians(angle_deg)
    return Vector2(math.cos(angle) * distance, math.sin(angle) * distance)


def test_vision_rejects_targets_beyond_view_distance():
    owner = SimpleNamespace(x=0.0, y=0.0)
    vision = VisionSystem(owner, view_distance=200)
    assert not vision.can_see(Vector2(201, 0))
    vision.set_view_angle(2 * math.pi)
    assert not vision.can_see(Vector2(201, 0))
    assert vision.can_see(Vector2(200, 0))


def test_vision_full_circle_is_a_distance_test():
    owner = SimpleNamespace(x=0.0, y=0.0)
    vision = VisionSystem(owner, view_distance=150, view_angle=2 * math.pi, view_direction=0.7)
    for angle in range(0, 360, 15):
        assert vision.can_see(_at(angle, 149))


def test_vision_cone_half_angle():
    owner = SimpleNamespace(x=0.0, y=0.0)
    vision = VisionSystem(owner)
    assert vision.can_see(_at(29, 100))
    assert vision.can_see(_at(-29, 100))
    assert not vision.can_see(_at(31, 100))
    assert not vision.can_see(_at(180, 10))


def test_vision_angle_difference_wraps_around_pi():
    owner = SimpleNamespace(x=0.0, y=0.0)
    vision = VisionSystem(owner, view_direction=3.1)
    # Bearing is close to -pi, which is only a few hundredths away from 3.1.
    assert vision.can_see(Vector2(-100, -4))


def test_vision_handles_missing_target_and_filters():
    owner = SimpleNamespace(x=10.0, y=10.0)
    vision = VisionSystem(owner)
    assert not vision.can_see(None)
    targets = [Vector2(60, 10), Vector2(10, 60), Vector2(500, 10)]
    assert vision.targets_in_view(targets) == [Vector2(60, 10)]
    assert vision.has_line_of_sight(targets[2])


def test_hearing_volume_scales_range():
    owner = SimpleNamespace(x=0.0, y=0.0)
    hearing = HearingSystem(owner, SimClock(), hearing_range=150)
    assert hearing.add_sound_event(80, 0, 0.5, "footstep") is None
    assert hearing.sound_events == []
    event = hearing.add_sound_event(70, 0, 0.5, "footstep")
    assert event is not None
    assert event.distance == 70
    assert hearing.add_sound_event(150, 0, 1.0) is not None
    assert len(hearing.sound_events) == 2


def test_hearing_latest_sound_prefers_newest():
    clock = SimClock()
    hearing = HearingSystem(SimpleNamespace(x=0.0, y=0.0), clock)
    hearing.add_sound_event(10, 0, 1.0, "generic")
    clock.advance(100)
    hearing.add_sound_event(20, 0, 1.0, "footstep")
    latest = hearing.get_latest_sound()
    assert latest.x == 20
    assert latest.category == "footstep"


def test_hearing_ties_return_first_event():
    hearing = HearingSystem(SimpleNamespace(x=0.0, y=0.0), SimClock())
    first = hearing.add_sound_event(10, 0, 1.0)
    hearing.add_sound_event(20, 0, 1.0)
    assert hearing.get_latest_sound() is first


def test_hearing_decay_purges_old_events():
    clock = SimClock()
    hearing = HearingSystem(SimpleNamespace(x=0.0, y=0.0), clock)
    hearing.add_sound_event(10, 0, 1.0)
    clock.advance(2000)
    hearing.add_sound_event(20, 0, 1.0)
    clock.advance(1500)

    latest = hearing.get_latest_sound()

    assert latest.x == 20
    assert len(hearing.sound_events) == 1


def test_hearing_event_expires_exactly_at_ttl():
    clock = SimClock()
    hearing = HearingSystem(SimpleNamespace(x=0.0, y=0.0), clock)
    hearing.add_sound_event(10, 0, 1.0)
    clock.advance(SOUND_TTL - 1)
    assert hearing.get_latest_sound() is not None
    clock.advance(1)
    assert hearing.get_latest_sound() is None
    assert hearing.sound_events == []


def test_hearing_clear_sounds():
    hearing = HearingSystem(SimpleNamespace(x=0.0, y=0.0), SimClock())
    hearing.add_sound_event(10, 0, 1.0)
    hearing.clear_sounds()
    assert hearing.get_latest_sound() is None
