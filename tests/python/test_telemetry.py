import asyncio

import pytest
from pygame.math import Vector2

from carsim.app.server import ClientView, TelemetryController
from carsim.sim.core.agent import CruiseNavigator
from carsim.sim.core.config import ObstacleConfig, SimulationConfig, SpawnConfig
from carsim.sim.core.oracle import Collider


class RecordingClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)


def _controller() -> TelemetryController:
    return TelemetryController(SimulationConfig(spawn=SpawnConfig(population=2), obstacles=ObstacleConfig(count=3)))


def test_init_message_carries_world_and_full_paths() -> None:
    controller = _controller()
    view = ClientView()

    message = controller.init_message(view)

    assert message["type"] == "init"
    assert message["metadata"]["strategy"] == "astar"
    assert len(message["obstacles"]) == 3
    assert [car["id"] for car in message["cars"]] == [0, 1]
    assert [path["id"] for path in message["paths"]] == [0, 1]
    assert view.initialized
    assert view.known_cars == {0, 1}


def test_frames_only_resend_paths_after_a_replan() -> None:
    controller = _controller()
    view = ClientView()
    controller.init_message(view)

    # Every car plans on its first tick.
    controller.step()
    first = controller.frame_message(view, [])
    assert first["type"] == "frame"
    assert [path["id"] for path in first["paths"]] == [0, 1]
    assert all(path["revision"] == 1 for path in first["paths"])
    assert all(path["path"] for path in first["paths"])
    assert all("current_target" in car for car in first["cars"])

    controller.step()
    second = controller.frame_message(view, [])
    assert len(second["cars"]) == 2
    assert second["paths"] == []
    assert second["removed"] == []


def test_blocked_cells_are_streamed_with_the_path() -> None:
    controller = TelemetryController(SimulationConfig(spawn=SpawnConfig(population=1), obstacles=ObstacleConfig(count=0)))
    car = controller.world.cars[0]
    field = controller.world.obstacle_field
    field.insert(Collider.cuboid(len(field.colliders), car.position + Vector2(0.0, 150.0), 20.0, 20.0))
    view = ClientView()
    controller.init_message(view)

    controller.step()
    update = controller.frame_message(view, [])["paths"][0]

    assert update["blocked_cells"]
    grid = car.navigator.grid
    assert sorted(update["blocked_cells"]) == sorted([x, y] for x, y in grid.obstacles)


def test_crashes_are_broadcast_once_and_cars_removed() -> None:
    controller = _controller()
    car = controller.world.cars[0]
    field = controller.world.obstacle_field
    field.insert(Collider.cuboid(len(field.colliders), car.position, 5.0, 5.0))
    client = RecordingClient()

    async def exercise() -> None:
        await controller.send_initial(client)
        controller.step()
        await controller.broadcast()
        controller.step()
        await controller.broadcast()

    asyncio.run(exercise())

    init, crash_frame, next_frame = client.sent
    assert init["type"] == "init"
    assert crash_frame["removed"] == [0]
    assert [c["car_id"] for c in crash_frame["crashes"]] == [0]
    assert crash_frame["crashes"][0]["tag"] == "obstacle"
    assert [c["id"] for c in crash_frame["cars"]] == [1]
    assert next_frame["crashes"] == []
    assert next_frame["removed"] == []


def test_strategy_switch_restarts_and_reinitializes_clients() -> None:
    controller = _controller()
    client = RecordingClient()

    async def exercise() -> None:
        await controller.send_initial(client)
        controller.step()
        await controller.reset(strategy="cruise")

    asyncio.run(exercise())

    assert controller.strategy == "cruise"
    assert controller.tick == 0
    assert all(isinstance(car.navigator, CruiseNavigator) for car in controller.world.cars)
    message = client.sent[-1]
    assert message["type"] == "init"
    assert message["metadata"]["strategy"] == "cruise"
    assert message["paths"] == []
    assert all("current_target" not in car for car in message["cars"])


def test_unknown_strategy_keeps_running_world() -> None:
    controller = _controller()
    world = controller.world

    with pytest.raises(ValueError, match="Unknown navigation strategy"):
        asyncio.run(controller.reset(strategy="genetic"))

    assert controller.world is world
    assert controller.strategy == "astar"
