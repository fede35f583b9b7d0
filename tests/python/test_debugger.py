import asyncio

from fastapi import WebSocketDisconnect

from prowler.app.server import AgentDebugger
from prowler.sim.core.config import SimulationConfig, SpawnPointConfig


def _debugger() -> AgentDebugger:
    config = SimulationConfig(spawn_points=[])
    config.initial_spawns = [SpawnPointConfig(700, 100, "smart")]
    return AgentDebugger(config)


def test_frames_report_state_transitions():
    debugger = _debugger()
    first, second = asyncio.run(debugger.advance(2))
    assert first["type"] == "frame"
    assert [(t["from"], t["to"]) for t in first["transitions"]] == [(None, "patrol")]
    assert second["transitions"] == []

    agent = debugger.world.agents[0]
    agent.raise_alert()
    (third,) = asyncio.run(debugger.advance())
    assert third["transitions"] == [{"id": agent.id, "from": "patrol", "to": "alert"}]


def test_frames_carry_effects_and_despawns():
    debugger = _debugger()
    asyncio.run(debugger.advance())
    agent = debugger.world.agents[0]
    agent_id = agent.id
    agent.take_damage(1000)
    (frame,) = asyncio.run(debugger.advance())
    assert {"id": agent_id, "from": "patrol", "to": None} in frame["transitions"]
    assert any(event["kind"] == "flash" and event["agent"] == agent_id for event in frame["effects"])
    assert frame["population"] == 0


class _Client:
    def __init__(self, gone: bool = False):
        self.gone = gone
        self.sent = []

    async def send_json(self, data):
        if self.gone:
            raise WebSocketDisconnect()
        self.sent.append(data)


def test_publish_drops_disconnected_clients():
    debugger = _debugger()
    live, gone = _Client(), _Client(gone=True)
    debugger.clients = {live, gone}
    asyncio.run(debugger.advance())
    assert debugger.clients == {live}
    assert live.sent[0]["tick"] == 0


def test_reset_clears_tracked_states():
    debugger = _debugger()
    asyncio.run(debugger.advance(3))
    asyncio.run(debugger.reset())
    assert debugger.tick == 0
    (frame,) = asyncio.run(debugger.advance())
    assert [(t["from"], t["to"]) for t in frame["transitions"]] == [(None, "patrol")]
