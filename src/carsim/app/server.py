from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, replace
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.agent import AStarNavigator, Car
from ..sim.core.config import AppConfig, SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import CrashEvent

log = logging.getLogger(__name__)


class ClientView:
    """What one websocket client already holds: the car ids it knows and the path revision of each."""

    __slots__ = ("initialized", "known_cars", "path_revisions")

    def __init__(self) -> None:
        self.initialized = False
        self.known_cars: Set[int] = set()
        self.path_revisions: Dict[int, int] = {}

    def forget(self) -> None:
        self.initialized = False
        self.known_cars.clear()
        self.path_revisions.clear()


def _car_state(car: Car) -> Dict[str, Any]:
    state: Dict[str, Any] = {
        "id": car.id,
        "x": car.position.x,
        "y": car.position.y,
        "heading": car.heading,
        "progress": car.position.y - car.spawn_position.y,
    }
    navigator = car.navigator
    if isinstance(navigator, AStarNavigator):
        state["current_target"] = navigator.current_target
    return state


def _path_update(car: Car, navigator: AStarNavigator) -> Dict[str, Any]:
    return {
        "id": car.id,
        "revision": navigator.revision,
        "path": [[point.x, point.y] for point in navigator.path],
        "blocked_cells": sorted([x, y] for x, y in navigator.grid.obstacles),
    }


class TelemetryController:
    """Steps the World on an asyncio task and streams per-car updates to websocket clients.

    A new client first gets an ``init`` message with the road, obstacles and every
    car's full path. After that each ``frame`` carries car poses and only the
    paths whose revision the client has not seen, plus crashes and removed ids.
    """

    def __init__(self, config: SimulationConfig, frame_interval: int = 1):
        self.config = config
        self.world = World(config)
        self.frame_interval = max(1, frame_interval)
        self.running = False
        self.tick = 0
        self.clients: Dict[WebSocket, ClientView] = {}
        self._pending_crashes: List[CrashEvent] = []
        self._lock = asyncio.Lock()
        self._step_task: asyncio.Task | None = None

    @property
    def strategy(self) -> str:
        return self.config.navigation.strategy

    async def start(self) -> None:
        if self._step_task is None:
            self._step_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def reset(self, strategy: Optional[str] = None) -> None:
        """Restart from tick 0, optionally with another navigation strategy."""
        async with self._lock:
            if strategy is not None and strategy != self.strategy:
                config = replace(self.config, navigation=replace(self.config.navigation, strategy=strategy))
                # World() validates the strategy before anything is swapped.
                self.world = World(config)
                self.config = config
            else:
                self.world.reset()
            self.tick = 0
            self._pending_crashes.clear()
            for view in self.clients.values():
                view.forget()
        log.info("simulation reset (strategy=%s)", self.strategy)
        await self.broadcast()

    def step(self) -> None:
        self.world.step(self.tick)
        self._pending_crashes.extend(self.world.crash_events)
        self.tick += 1

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step)
            if not self.running:
                continue
            async with self._lock:
                self.step()
            if self.tick % self.frame_interval == 0:
                await self.broadcast()

    def status(self) -> dict:
        stats = self.world.stats
        return {
            "running": self.running,
            "tick": self.tick,
            "strategy": self.strategy,
            "clients": len(self.clients),
            "cars_alive": stats.cars_alive,
            "max_score": stats.max_current_score,
            "max_distance_travelled": stats.max_distance_travelled,
        }

    def init_message(self, view: ClientView) -> Dict[str, Any]:
        snapshot = self.world.snapshot(self.tick)
        view.forget()
        paths = []
        for car in self.world.cars:
            view.known_cars.add(car.id)
            navigator = car.navigator
            if isinstance(navigator, AStarNavigator):
                paths.append(_path_update(car, navigator))
                view.path_revisions[car.id] = navigator.revision
        view.initialized = True
        return {
            "type": "init",
            "tick": self.tick,
            "world": asdict(snapshot.world),
            "metadata": asdict(snapshot.metadata),
            "obstacles": snapshot.obstacles,
            "metrics": asdict(snapshot.metrics),
            "cars": [_car_state(car) for car in self.world.cars],
            "paths": paths,
        }

    def frame_message(self, view: ClientView, crashes: List[CrashEvent]) -> Dict[str, Any]:
        if not view.initialized:
            return self.init_message(view)

        cars = []
        paths = []
        alive: Set[int] = set()
        for car in self.world.cars:
            alive.add(car.id)
            cars.append(_car_state(car))
            navigator = car.navigator
            if isinstance(navigator, AStarNavigator) and view.path_revisions.get(car.id) != navigator.revision:
                paths.append(_path_update(car, navigator))
                view.path_revisions[car.id] = navigator.revision

        removed = sorted(view.known_cars - alive)
        for car_id in removed:
            view.path_revisions.pop(car_id, None)
        view.known_cars = alive

        metrics = self.world.metrics
        return {
            "type": "frame",
            "tick": self.tick,
            "metrics": asdict(metrics) if metrics is not None else None,
            "cars": cars,
            "paths": paths,
            "removed": removed,
            "crashes": [asdict(event) for event in crashes],
        }

    async def send_initial(self, client: WebSocket) -> None:
        view = self.clients.setdefault(client, ClientView())
        await client.send_json(self.init_message(view))

    async def broadcast(self) -> None:
        crashes = self._pending_crashes
        self._pending_crashes = []
        stale: List[WebSocket] = []
        for client, view in list(self.clients.items()):
            try:
                await client.send_json(self.frame_message(view, crashes))
            except WebSocketDisconnect:
                stale.append(client)
        for client in stale:
            log.debug("dropping disconnected client")
            self.clients.pop(client, None)


app_config = AppConfig()
app = FastAPI(title="Corridor Pathfinding Telemetry")
controller = TelemetryController(app_config.simulation, frame_interval=app_config.broadcast_interval)


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    return JSONResponse(controller.status())


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/strategy")
async def switch_strategy(payload: dict) -> JSONResponse:
    strategy = payload.get("strategy")
    if not isinstance(strategy, str):
        raise HTTPException(status_code=400, detail="'strategy' must be a string")
    try:
        await controller.reset(strategy=strategy)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    return JSONResponse({"strategy": controller.strategy, "tick": controller.tick})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    await controller.send_initial(websocket)
    try:
        while True:
            # Clients only listen; reading keeps the disconnect visible.
            await websocket.receive_text()
    except WebSocketDisconnect:
        controller.clients.pop(websocket, None)


__all__ = ["app", "controller"]
