from __future__ import annotations

import logging

from prowler.sim.core.config import ManagerConfig, default_archetypes
from prowler.sim.core.manager import AgentArena, AgentManager
from prowler.sim.core.messages import Message, MessageKind
from prowler.sim.core.pool import AgentPool
from prowler.sim.systems.archetypes import build_agent

from support import make_agent, make_manager, make_scene


def test_arena_reuses_lowest_free_slot_and_iterates_in_slot_order():
    scene = make_scene()
    arena = AgentArena()
    agents = [make_agent(scene) for _ in range(4)]
    for agent in agents:
        arena.insert(agent)
    arena.remove(agents[2])
    arena.remove(agents[0])
    late = make_agent(scene)
    assert arena.insert(late) == 0
    assert [agent.slot for agent in arena] == [0, 1, 3]
    assert list(arena)[0] is late
    assert len(arena) == 3
    assert not arena.remove(agents[0])


def test_spawn_assigns_ids_and_respects_cap():
    scene = make_scene()
    manager = AgentManager(scene, ManagerConfig(max_agents=2))
    manager.register_archetype("basic", default_archetypes()["basic"])
    first = manager.spawn_agent(10, 10)
    second = manager.spawn_agent(20, 20)
    assert (first.id, second.id) == (0, 1)
    assert manager.spawn_agent(30, 30) is None
    assert manager.active_count() == 2
    assert first.manager is manager


def test_spawn_unregistered_archetype_warns(caplog):
    manager = make_manager(make_scene(), "basic")
    with caplog.at_level(logging.WARNING):
        assert manager.spawn_agent(0, 0, "dragon") is None
    assert "dragon" in caplog.text


def test_team_ids_only_for_team_archetypes():
    manager = make_manager(make_scene(), "basic", "smart")
    assert manager.spawn_agent(0, 0, "basic").team_id == -1
    assert 0 <= manager.spawn_agent(0, 0, "smart").team_id < 3


def test_spawner_skips_points_near_player():
    scene = make_scene(player_at=(0, 0))
    manager = make_manager(scene, "basic")
    manager.add_spawn_point(100, 0)
    manager.update(16)
    assert manager.active_count() == 0

    manager.add_spawn_point(500, 0)
    manager.update(16)
    assert manager.active_count() == 1
    assert manager.agents[0].home.x == 500


def test_spawner_keeps_cooldown_ready_while_player_blocks_every_point():
    scene = make_scene(player_at=(0, 0))
    manager = make_manager(scene, "basic")
    manager.add_spawn_point(100, 0)
    for _ in range(10):
        manager.update(16)
    assert manager.active_count() == 0
    assert manager.spawn_timer >= manager.spawn_cooldown

    scene.player.position.update(600, 0)
    manager.update(16)
    assert manager.active_count() == 1
    assert manager.spawn_timer == 0.0


def test_spawner_waits_for_cooldown():
    scene = make_scene(player_at=(0, 0))
    manager = make_manager(scene, "basic")
    manager.add_spawn_point(500, 0)
    manager.update(16)
    assert manager.active_count() == 1
    manager.update(16)
    assert manager.active_count() == 1
    manager.update(5000)
    assert manager.active_count() == 2


def test_spawner_needs_a_live_player():
    scene = make_scene()
    manager = make_manager(scene, "basic")
    manager.add_spawn_point(500, 0)
    manager.update(16)
    assert manager.active_count() == 0


def test_dead_agents_return_to_pool():
    scene = make_scene()
    manager = make_manager(scene, "basic")
    pool = manager.pools["basic"]
    agent = manager.spawn_agent(0, 0)
    assert pool.in_use_count == 1
    agent.die()
    manager.update(16)
    assert manager.active_count() == 0
    assert manager.despawned == 1
    assert pool.in_use_count == 0

    again = manager.spawn_agent(5, 5)
    assert again is agent
    assert again.alive
    assert again.current_state_name == "patrol"


def test_message_to_missing_agent_is_dropped_with_warning(caplog):
    manager = make_manager(make_scene(), "basic")
    manager.post(Message(MessageKind.ALERT, 0, 99))
    with caplog.at_level(logging.WARNING):
        manager.update(16)
    assert manager.delivered == 0
    assert "99" in caplog.text


def test_inactive_manager_does_nothing():
    scene = make_scene(player_at=(0, 0))
    manager = make_manager(scene, "basic")
    manager.add_spawn_point(500, 0)
    manager.set_active(False)
    manager.update(16)
    assert manager.active_count() == 0


def test_nearest_and_range_queries():
    manager = make_manager(make_scene(), "basic")
    near = manager.spawn_agent(10, 0)
    far = manager.spawn_agent(100, 0)
    assert manager.nearest_agent(0, 0) is near
    assert manager.agents_in_range(0, 0, 100) == [near, far]
    assert manager.get_agent(far.id) is far


def test_clear_releases_everything():
    manager = make_manager(make_scene(), "basic")
    manager.spawn_agent(0, 0)
    manager.spawn_agent(10, 0)
    manager.clear()
    assert manager.active_count() == 0
    assert manager.agents == []
    assert manager.pools["basic"].available_count == 3


def test_pool_respects_max_size():
    scene = make_scene()
    config = default_archetypes()["basic"]
    pool = AgentPool(lambda: build_agent("basic", config, scene), initial_size=2, max_size=2)
    assert pool.created_count == 2
    assert pool.acquire(0, 0) is not None
    assert pool.acquire(0, 0) is not None
    assert pool.acquire(0, 0) is None
    assert pool.in_use_count == 2


def test_pool_grows_past_warm_up_without_limit():
    scene = make_scene()
    config = default_archetypes()["basic"]
    pool = AgentPool(lambda: build_agent("basic", config, scene), initial_size=1)
    agents = [pool.acquire(float(i), 0) for i in range(3)]
    assert all(agent is not None for agent in agents)
    assert pool.created_count == 3
    pool.release(agents[0])
    assert pool.available_count == 1
    assert not agents[0].alive
