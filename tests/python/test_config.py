from __future__ import annotations

import math

import pytest

from prowler.sim.core.config import ArchetypeConfig, SimulationConfig, default_archetypes, load_config


def test_presets_cover_every_archetype():
    presets = default_archetypes()
    assert set(presets) == {
        "basic",
        "patrol",
        "chaser",
        "guard",
        "berserker",
        "coward",
        "pack",
        "trap",
        "smart",
        "aggressive",
        "defensive",
        "scout",
    }
    assert presets["chaser"].stats.speed == 80
    assert presets["guard"].stats.armor == 5
    assert presets["trap"].initial_state == "disguise"
    assert presets["smart"].vision.view_angle == pytest.approx(math.pi / 2)
    assert presets["coward"].fear_distance == 120


@pytest.mark.parametrize(
    "name, path, expected",
    [
        ("patrol", "stats.health", 20),
        ("patrol", "stats.speed", 40),
        ("patrol", "stats.contact_damage", 3),
        ("patrol", "vision.view_distance", 150),
        ("patrol", "patrol.span", 80),
        ("patrol", "chase.speed_factor", 1.2),
        ("patrol", "attack.cooldown", 1500),
        ("chaser", "vision.view_angle", math.pi / 2),
        ("chaser", "patrol.wait_time", 1000),
        ("chaser", "patrol.speed_factor", 0.6),
        ("chaser", "patrol.waypoints", [(-120.0, 0.0), (120.0, 0.0), (0.0, -60.0), (0.0, 60.0)]),
        ("chaser", "chase.speed_factor", 1.0),
        ("chaser", "chase.lose_target_time", 5000),
        ("chaser", "attack.cooldown", 800),
        ("chaser", "attack.range", 50),
        ("guard", "patrol.wait_time", 3000),
        ("guard", "patrol.span", 50),
        ("guard", "chase.speed_factor", 1.5),
        ("guard", "chase.lose_target_time", 2000),
        ("guard", "attack.cooldown", 1200),
        ("guard", "attack.range", 70),
        ("coward", "vision.view_angle", math.pi),
        ("coward", "vision.view_distance", 150),
        ("smart", "hearing.hearing_range", 200),
        ("aggressive", "stats.speed", 70),
        ("aggressive", "stats.contact_damage", 8),
        ("aggressive", "vision.view_distance", 220),
        ("aggressive", "chase.lose_target_time", 6000),
        ("defensive", "stats.health", 50),
        ("defensive", "vision.view_distance", 150),
        ("defensive", "patrol.wait_time", 3000),
        ("scout", "stats.speed", 80),
        ("scout", "stats.health", 20),
        ("scout", "vision.view_distance", 250),
        ("scout", "vision.view_angle", math.pi),
    ],
)
def test_preset_tuning(name, path, expected):
    value = default_archetypes()[name]
    for part in path.split("."):
        value = getattr(value, part)
    assert value == expected


@pytest.mark.parametrize("name", ["smart", "aggressive", "defensive", "scout"])
def test_team_presets_share_alert_and_surround(name):
    preset = default_archetypes()[name]
    assert preset.extra_states == ["alert", "surround"]
    assert preset.team
    assert preset.adaptive
    assert preset.chase.surround_min_allies == 2


def test_presets_are_independent_copies():
    first = default_archetypes()
    first["basic"].stats.speed = 999
    assert default_archetypes()["basic"].stats.speed == 50


def test_load_config_merges_over_presets():
    config = load_config(
        {
            "seed": 9,
            "archetypes": {
                "guard": {"stats": {"speed": 40}},
                "elite": {"base": "chaser", "stats": {"health": 60}, "extra_states": ["berserk"]},
            },
            "player": {"start": [10, 20], "waypoints": [[1, 2], [3, 4]]},
            "manager": {"max_agents": 3},
        }
    )
    assert config.seed == 9
    guard = config.archetypes["guard"]
    assert guard.stats.speed == 40
    assert guard.stats.health == 50
    assert guard.vision.view_distance == 120
    elite = config.archetypes["elite"]
    assert elite.stats.health == 60
    assert elite.stats.speed == 80
    assert elite.extra_states == ["berserk"]
    assert config.player.start == (10.0, 20.0)
    assert config.player.waypoints == [(1.0, 2.0), (3.0, 4.0)]
    assert config.manager.max_agents == 3
    assert config.manager.spawn_cooldown == 5000
    assert len(config.spawn_points) == 4


def test_load_config_rejects_unknown_keys():
    with pytest.raises(TypeError):
        load_config({"archetypes": {"guard": {"stats": {"wings": 2}}}})
    with pytest.raises(TypeError):
        load_config({"player": {"jetpack": True}})


def test_unknown_base_falls_back_to_plain_archetype():
    config = load_config({"archetypes": {"blob": {"base": "nothing"}}})
    assert config.archetypes["blob"] == ArchetypeConfig()


def test_from_yaml(tmp_path):
    path = tmp_path / "sim.yaml"
    path.write_text(
        "time_step: 20\n"
        "spawn_points:\n"
        "  - {x: 50, y: 60, archetype: coward}\n"
        "archetypes:\n"
        "  coward:\n"
        "    fear:\n"
        "      duration: 2500\n"
    )
    config = SimulationConfig.from_yaml(path)
    assert config.time_step == 20
    assert [(p.x, p.y, p.archetype) for p in config.spawn_points] == [(50, 60, "coward")]
    assert config.archetypes["coward"].fear.duration == 2500
    assert config.archetypes["coward"].fear.close_range == 100


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = SimulationConfig.from_yaml(path)
    assert config == SimulationConfig()
