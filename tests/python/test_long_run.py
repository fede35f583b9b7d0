import time

import pytest

from prowler.sim.core.config import SimulationConfig
from prowler.sim.core.world import World


@pytest.mark.long_run
def test_long_run_stays_bounded_and_fast():
    config = SimulationConfig(seed=99)
    world = World(config)
    start = time.perf_counter()
    peak = 0
    for tick in range(20000):
        metrics = world.step(tick)
        peak = max(peak, metrics.population)
        assert metrics.population <= config.manager.max_agents
        for agent in world.agents:
            assert agent.health <= agent.max_health
            assert agent.current_state_name != "none"
    elapsed = time.perf_counter() - start
    assert peak > 0
    assert elapsed < 120.0
