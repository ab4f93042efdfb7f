"""Tests for Box geometry and the warm-up fallback box."""

import pytest

from domain.geometry import Box, fallback_box


def test_derived_edges_and_area():
    b = Box(10, 20, 100, 50)
    assert b.right == 110
    assert b.bottom == 70
    assert b.area == 5000
    assert b.center == (60, 45)
    assert b.center_x == 60


def test_aspect_of_degenerate_box_is_zero():
    assert Box(0, 0, 10, 0).aspect == 0.0
    assert not Box(0, 0, 10, 0).is_valid


def test_tall_box_is_not_a_vehicle():
    # Person-shaped: taller than wide
    assert not Box(0, 0, 50, 120).looks_like_vehicle()
    assert Box(0, 0, 120, 50).looks_like_vehicle()
    # Square passes the default aspect gate
    assert Box(0, 0, 80, 80).looks_like_vehicle()


def test_center_distance():
    a = Box(0, 0, 10, 10)
    b = Box(30, 40, 10, 10)
    assert a.center_distance(b) == pytest.approx(50.0)


def test_union_covers_both():
    u = Box(0, 0, 10, 10).union(Box(20, 5, 10, 10))
    assert u == Box(0, 0, 30, 15)


def test_clipped_to_frame():
    assert Box(-10, -10, 50, 50).clipped(100, 100) == Box(0, 0, 40, 40)
    assert Box(200, 200, 10, 10).clipped(100, 100) is None


def test_fallback_box_640x480():
    b = fallback_box(640, 480)
    assert b == Box(64.0, 96.0, 512.0, 288.0)


def test_fallback_box_needs_dimensions():
    assert fallback_box(0, 480) is None
    assert fallback_box(640, -1) is None
