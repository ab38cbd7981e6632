from __future__ import annotations

import math

import pytest
from pygame.math import Vector2

from carsim.sim.core.agent import AStarNavigator
from carsim.sim.core.config import ControllerConfig
from carsim.sim.core.grid import Grid
from carsim.sim.core.timer import RepeatingTimer
from carsim.sim.systems.movement import follow_path, forward_motion
from carsim.sim.utils.math2d import _forward_from_heading, _normalize_angle

DT = 0.1


def _navigator(path: list[Vector2]) -> AStarNavigator:
    return AStarNavigator(
        grid=Grid(10, 10, 20.0, Vector2()),
        recalculate_timer=RepeatingTimer(1.0),
        path=path,
    )


def test_advances_waypoint_without_moving_when_close():
    navigator = _navigator([Vector2(0.0, 10.0), Vector2(0.0, 200.0)])

    motion = follow_path(navigator, Vector2(0.0, 0.0), 0.0, ControllerConfig(), DT)

    assert navigator.current_target == 1
    assert motion.displacement == Vector2()
    assert motion.rotation == 0.0


def test_moves_toward_far_waypoint_at_constant_speed():
    navigator = _navigator([Vector2(0.0, 200.0)])
    controller = ControllerConfig(speed=100.0)

    motion = follow_path(navigator, Vector2(0.0, 0.0), 0.0, controller, DT)

    assert navigator.current_target == 0
    assert motion.displacement.x == pytest.approx(0.0)
    assert motion.displacement.y == pytest.approx(10.0)
    # Already facing +Y, so no turn is needed.
    assert motion.rotation == pytest.approx(0.0)


def test_controller_terminates_and_clears_path():
    waypoints = [Vector2(0.0, 5.0), Vector2(5.0, 0.0), Vector2(-5.0, -5.0)]
    navigator = _navigator(list(waypoints))
    position = Vector2(0.0, 0.0)

    seen = []
    for _ in range(len(waypoints)):
        follow_path(navigator, position, 0.0, ControllerConfig(), DT)
        seen.append(navigator.current_target)

    assert seen == [1, 2, 0]
    assert navigator.path == []


def test_empty_path_drives_forward_along_heading():
    navigator = _navigator([])

    motion = follow_path(navigator, Vector2(3.0, 4.0), math.pi / 2, ControllerConfig(speed=100.0), DT)

    assert motion.displacement.x == pytest.approx(-10.0)
    assert motion.displacement.y == pytest.approx(0.0, abs=1e-9)
    assert motion.rotation == 0.0


def test_degenerate_direction_falls_back_to_forward_motion():
    navigator = _navigator([Vector2(1.0, 1.0)])
    controller = ControllerConfig(waypoint_threshold=0.0)

    motion = follow_path(navigator, Vector2(1.0, 1.0), 0.0, controller, DT)

    assert navigator.current_target == 0
    assert motion.displacement == forward_motion(0.0, controller.speed, DT).displacement


def test_out_of_range_index_clears_path():
    navigator = _navigator([Vector2(0.0, 500.0)])
    navigator.current_target = 1

    motion = follow_path(navigator, Vector2(), 0.0, ControllerConfig(), DT)

    assert navigator.path == []
    assert navigator.current_target == 0
    assert motion.displacement == Vector2()


def test_turn_is_proportional_to_shortest_angle():
    # Target due east while facing +Y: the desired heading is -pi/2.
    navigator = _navigator([Vector2(500.0, 0.0)])
    controller = ControllerConfig(rotation_gain=2.0)

    motion = follow_path(navigator, Vector2(), 0.0, controller, DT)

    assert motion.rotation == pytest.approx(-math.pi / 2 * 2.0 * DT)


def test_turn_wraps_across_pi():
    # Facing just west of south; a target just east of south is a 10 degree turn, not 350.
    heading = math.radians(175.0)
    target_direction = _forward_from_heading(math.radians(-175.0))
    navigator = _navigator([target_direction * 500.0])

    motion = follow_path(navigator, Vector2(), heading, ControllerConfig(rotation_gain=1.0), 1.0)

    assert motion.rotation == pytest.approx(math.radians(10.0))


@pytest.mark.parametrize(
    "angle,expected",
    [
        (0.0, 0.0),
        (math.pi, math.pi),
        (-math.pi, math.pi),
        (3 * math.pi / 2, -math.pi / 2),
        (-3 * math.pi / 2, math.pi / 2),
        (4 * math.pi + 0.5, 0.5),
    ],
)
def test_normalize_angle_range(angle, expected):
    assert _normalize_angle(angle) == pytest.approx(expected)
