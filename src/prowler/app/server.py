from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.agent import Agent
from ..sim.core.config import SimulationConfig
from ..sim.core.world import World

logger = logging.getLogger(__name__)

MAX_STEP_BATCH = 600


class AgentDebugger:
    """Runs a World in the background and streams what its agents decide each tick.

    Every tick yields a frame holding the state transitions since the previous
    frame plus the feedback effects the agents requested. Clients connected to
    ``/ws`` receive frames as they are produced; the HTTP routes inspect single
    agents and poke them (spawn, damage, alert) while the loop runs or is paused.
    """

    def __init__(self, config: SimulationConfig, frame_interval: int = 1):
        self.config = config
        self.world = World(config)
        self.frame_interval = max(1, frame_interval)
        self.running = False
        self.tick = 0
        self.clients: Set[WebSocket] = set()
        self._states: Dict[int, str] = {}
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
        self.running = True

    async def shutdown(self) -> None:
        self.running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
            self.tick = 0
            self._states.clear()
        logger.info("debug session reset")

    async def advance(self, steps: int = 1) -> List[Dict[str, Any]]:
        frames = []
        async with self._lock:
            for _ in range(steps):
                frames.append(self._step())
        for frame in frames:
            await self.publish(frame)
        return frames

    async def _loop(self) -> None:
        while True:
            # time_step is in milliseconds of simulated time.
            await asyncio.sleep(self.config.time_step / 1000.0)
            if not self.running:
                continue
            async with self._lock:
                frame = self._step()
            if frame["tick"] % self.frame_interval == 0:
                await self.publish(frame)

    def _step(self) -> Dict[str, Any]:
        metrics = self.world.step(self.tick)
        frame = {
            "type": "frame",
            "tick": self.tick,
            "population": metrics.population,
            "player": self._player_info(),
            "transitions": self._collect_transitions(),
            "effects": self.world.snapshot(self.tick).effects,
        }
        self.tick += 1
        return frame

    def _collect_transitions(self) -> List[Dict[str, Any]]:
        current = {agent.id: agent.current_state_name for agent in self.world.agents}
        transitions = [
            {"id": agent_id, "from": self._states.get(agent_id), "to": state}
            for agent_id, state in current.items()
            if self._states.get(agent_id) != state
        ]
        transitions.extend(
            {"id": agent_id, "from": state, "to": None}
            for agent_id, state in self._states.items()
            if agent_id not in current
        )
        self._states = current
        return transitions

    def _player_info(self) -> Optional[Dict[str, Any]]:
        player = self.world.player
        if player is None:
            return None
        return {"x": player.x, "y": player.y, "health": player.health, "alive": player.alive, "hits": player.hits}

    async def publish(self, frame: Dict[str, Any]) -> None:
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await client.send_json(frame)
            except WebSocketDisconnect:
                stale.add(client)
        self.clients -= stale

    def find(self, agent_id: int) -> Agent:
        agent = self.world.manager.get_agent(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail=f"no agent {agent_id}")
        return agent

    def inspect(self, agent_id: int) -> Dict[str, Any]:
        agent = self.find(agent_id)
        info = agent.debug_info()
        machine = agent.state_machine
        info["previous_state"] = None if machine.previous_state is None else machine.previous_state.key
        info["states"] = sorted(machine.states)
        info["vision"] = {
            "distance": agent.vision.view_distance,
            "angle": agent.vision.view_angle,
            "direction": agent.vision.view_direction,
        }
        info["heard"] = [asdict(event) for event in agent.hearing.sound_events]
        info["sightings"] = [asdict(sighting) for sighting in agent.memory["player_sightings"]]
        info["alerts"] = list(agent.memory["alert_events"])
        return info

    async def spawn(self, x: float, y: float, archetype: str) -> Dict[str, Any]:
        async with self._lock:
            agent = self.world.manager.spawn_agent(x, y, archetype)
        if agent is None:
            raise HTTPException(status_code=409, detail=f"could not spawn {archetype!r}")
        return agent.debug_info()

    async def damage(self, agent_id: int, amount: float) -> Dict[str, Any]:
        if amount <= 0:
            raise HTTPException(status_code=400, detail="damage amount must be positive")
        async with self._lock:
            agent = self.find(agent_id)
            agent.take_damage(amount)
        return agent.debug_info()

    async def alert(self, agent_id: int) -> Dict[str, Any]:
        async with self._lock:
            agent = self.find(agent_id)
            agent.raise_alert()
        return agent.debug_info()


debugger = AgentDebugger(SimulationConfig())


@asynccontextmanager
async def lifespan(_: FastAPI):
    await debugger.start()
    yield
    await debugger.shutdown()


app = FastAPI(title="Prowler AI Debugger", lifespan=lifespan)


@app.get("/api/status")
async def status() -> JSONResponse:
    metrics = debugger.world.metrics
    return JSONResponse(
        {
            "running": debugger.running,
            "tick": debugger.tick,
            "population": len(debugger.world.agents),
            "metrics": None if metrics is None else asdict(metrics),
        }
    )


@app.get("/api/agents")
async def agents() -> JSONResponse:
    return JSONResponse({"tick": debugger.tick, "agents": debugger.world.manager.debug_info()})


@app.get("/api/agents/{agent_id}")
async def inspect_agent(agent_id: int) -> JSONResponse:
    return JSONResponse(debugger.inspect(agent_id))


@app.post("/api/agents", status_code=201)
async def spawn_agent(payload: dict) -> Dict[str, Any]:
    return await debugger.spawn(
        float(payload.get("x", 0.0)), float(payload.get("y", 0.0)), str(payload.get("archetype", "basic"))
    )


@app.post("/api/agents/{agent_id}/damage")
async def damage_agent(agent_id: int, payload: dict) -> JSONResponse:
    return JSONResponse(await debugger.damage(agent_id, float(payload.get("amount", 0.0))))


@app.post("/api/agents/{agent_id}/alert")
async def alert_agent(agent_id: int) -> JSONResponse:
    return JSONResponse(await debugger.alert(agent_id))


@app.post("/api/control/pause")
async def pause() -> JSONResponse:
    debugger.running = False
    return JSONResponse({"running": False, "tick": debugger.tick})


@app.post("/api/control/resume")
async def resume() -> JSONResponse:
    debugger.running = True
    return JSONResponse({"running": True, "tick": debugger.tick})


@app.post("/api/control/step")
async def step(payload: dict) -> JSONResponse:
    steps = int(payload.get("steps", 1))
    if not 1 <= steps <= MAX_STEP_BATCH:
        raise HTTPException(status_code=400, detail=f"steps must be between 1 and {MAX_STEP_BATCH}")
    frames = await debugger.advance(steps)
    return JSONResponse({"tick": debugger.tick, "frames": frames})


@app.post("/api/control/reset")
async def reset() -> JSONResponse:
    await debugger.reset()
    return JSONResponse({"running": debugger.running, "tick": debugger.tick})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    await websocket.send_json({"type": "roster", "tick": debugger.tick, "agents": debugger.world.manager.debug_info()})
    debugger.clients.add(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                request = json.loads(message)
            except json.JSONDecodeError:
                logger.debug("ignoring non-JSON websocket message")
                continue
            agent_id = request.get("id")
            if request.get("type") != "inspect" or not isinstance(agent_id, int):
                logger.debug("ignoring websocket request %r", request)
                continue
            agent = debugger.world.manager.get_agent(agent_id)
            await websocket.send_json(
                {"type": "inspect", "agent": None if agent is None else debugger.inspect(agent_id)}
            )
    except WebSocketDisconnect:
        debugger.clients.discard(websocket)


__all__ = ["app", "debugger", "AgentDebugger"]
