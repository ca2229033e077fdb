"""Zoom and pan state for the full-size image viewer.

Touch, mouse and wheel input is folded into a single bounded transform::

    IDLE --1 point--> PANNING --2nd point--> ZOOMING
      ^                  |                      |
      +------ end / cancel / mouse up ----------+

Panning and zooming never run at the same time. Translation on each axis is
bounded by ``max(0, (scale - 0.3) * dimension / 2)`` and re-clamped whenever
the scale changes.
"""
from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from imagestage.models import GestureTransform, ZoomIndicator
from imagestage.models.transform import MAX_SCALE, MIN_SCALE

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

ZOOM_LEVELS: Tuple[float, ...] = (0.3, 0.5, 1.0, 1.5, 2.0, 3.0)
PAN_SCALE_OFFSET = 0.3
WHEEL_STEP = 0.15
DOUBLE_TAP_SECONDS = 0.3
INDICATOR_SECONDS = 1.8


class GestureState(str, Enum):
    IDLE = "idle"
    PANNING = "panning"
    ZOOMING = "zooming"


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def closest_zoom_index(scale: float) -> int:
    """Index of the ladder entry nearest *scale*; ties go to the lower entry."""

    closest = 0
    min_diff = abs(scale - ZOOM_LEVELS[0])
    for index, level in enumerate(ZOOM_LEVELS[1:], start=1):
        diff = abs(scale - level)
        if diff < min_diff:
            min_diff = diff
            closest = index
    return closest


def next_zoom_level(scale: float) -> float:
    return ZOOM_LEVELS[(closest_zoom_index(scale) + 1) % len(ZOOM_LEVELS)]


def auto_fit_scale(viewport_width: float, viewport_height: float, image_width: float, image_height: float) -> float:
    """Shrink large images to fit; never go below natural size."""

    if not (image_width and image_height):
        return 1.0
    fit = min(viewport_width / image_width, viewport_height / image_height)
    return clamp(max(fit, 1.0), MIN_SCALE, MAX_SCALE)


def _distance(first: Point, second: Point) -> float:
    return math.hypot(first[0] - second[0], first[1] - second[1])


class ZoomPanGesture:
    """Gesture tracker for one open viewer.

    *width* and *height* are the laid-out size of the image element, which
    bounds how far it may be dragged.
    """

    def __init__(
        self,
        width: float,
        height: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.width = width
        self.height = height
        self._clock = clock
        self.state = GestureState.IDLE
        self.transform = GestureTransform()

        self._start_distance = 0.0
        self._start_scale = 1.0
        self._last_point: Optional[Point] = None
        self._last_touch_end: Optional[float] = None
        self._last_update: Optional[float] = None

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def max_translate(self, scale: float | None = None) -> Tuple[float, float]:
        scale = self.transform.scale if scale is None else scale
        factor = max(0.0, (scale - PAN_SCALE_OFFSET) / 2)
        return factor * self.width, factor * self.height

    # ------------------------------------------------------------------
    # Touch input
    # ------------------------------------------------------------------

    def touch_start(self, points: Sequence[Point]) -> None:
        if len(points) >= 2:
            self._start_distance = _distance(points[0], points[1])
            self._start_scale = self.transform.scale
            self._last_point = None
            self.state = GestureState.ZOOMING
        elif len(points) == 1 and self.state is GestureState.IDLE:
            self._last_point = points[0]
            self.state = GestureState.PANNING

    def touch_move(self, points: Sequence[Point]) -> None:
        if len(points) >= 2 and self.state is GestureState.ZOOMING:
            if self._start_distance <= 0:
                return
            ratio = _distance(points[0], points[1]) / self._start_distance
            self._apply(scale=self._start_scale * ratio)
        elif len(points) == 1 and self.state is GestureState.PANNING:
            self._pan_to(points[0])

    def touch_end(self) -> bool:
        """End the current touch; returns True when it completed a double tap."""

        self.state = GestureState.IDLE
        self._last_point = None
        now = self._clock()
        double_tap = self._last_touch_end is not None and now - self._last_touch_end <= DOUBLE_TAP_SECONDS
        self._last_touch_end = now
        if double_tap:
            self.cycle_zoom()
        return double_tap

    def touch_cancel(self) -> None:
        self.state = GestureState.IDLE
        self._last_point = None

    # ------------------------------------------------------------------
    # Mouse input
    # ------------------------------------------------------------------

    def mouse_down(self, point: Point) -> None:
        self._last_point = point
        self.state = GestureState.PANNING

    def mouse_move(self, point: Point) -> None:
        if self.state is GestureState.PANNING:
            self._pan_to(point)

    def mouse_up(self) -> None:
        if self.state is GestureState.PANNING:
            self.state = GestureState.IDLE
            self._last_point = None

    mouse_leave = mouse_up

    def wheel(self, delta_y: float) -> None:
        step = -WHEEL_STEP if delta_y > 0 else WHEEL_STEP
        scale = clamp(self.transform.scale + step, MIN_SCALE, MAX_SCALE)
        if scale <= 0.5 or scale >= 3.0:
            self._apply(scale=scale, translate_x=0.0, translate_y=0.0)
        else:
            self._apply(scale=scale)

    def double_click(self) -> None:
        self.cycle_zoom()

    # ------------------------------------------------------------------
    # Discrete changes
    # ------------------------------------------------------------------

    def cycle_zoom(self) -> float:
        scale = next_zoom_level(self.transform.scale)
        if scale <= 0.5 or scale >= 2.0:
            self._apply(scale=scale, translate_x=0.0, translate_y=0.0)
        else:
            self._apply(scale=scale)
        return scale

    def auto_fit(self, viewport_width: float, viewport_height: float, image_width: float, image_height: float) -> float:
        scale = auto_fit_scale(viewport_width, viewport_height, image_width, image_height)
        self._apply(scale=scale, translate_x=0.0, translate_y=0.0)
        logger.debug("Auto-fit %sx%s into %sx%s at %.2f", image_width, image_height, viewport_width, viewport_height, scale)
        return scale

    # ------------------------------------------------------------------
    # Indicator
    # ------------------------------------------------------------------

    def indicator(self, now: float | None = None) -> Optional[ZoomIndicator]:
        """The magnitude badge for the last update, or None before any update."""

        if self._last_update is None:
            return None
        now = self._clock() if now is None else now
        scale = self.transform.scale
        text = f"{round(scale * 100)}%"
        tone = ""
        if scale <= 0.5:
            tone = "small"
        elif scale >= 2.5:
            tone = "large"
        elif abs(scale - 1) < 0.1:
            tone = "normal"
            text = "100%"
        return ZoomIndicator(text=text, tone=tone, visible=now - self._last_update < INDICATOR_SECONDS)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _pan_to(self, point: Point) -> None:
        if self._last_point is None:
            self._last_point = point
            return
        dx = point[0] - self._last_point[0]
        dy = point[1] - self._last_point[1]
        self._last_point = point
        self._apply(
            translate_x=self.transform.translate_x + dx,
            translate_y=self.transform.translate_y + dy,
        )

    def _apply(
        self,
        *,
        scale: float | None = None,
        translate_x: float | None = None,
        translate_y: float | None = None,
    ) -> None:
        scale = clamp(self.transform.scale if scale is None else scale, MIN_SCALE, MAX_SCALE)
        max_x, max_y = self.max_translate(scale)
        tx = self.transform.translate_x if translate_x is None else translate_x
        ty = self.transform.translate_y if translate_y is None else translate_y
        self.transform = GestureTransform(
            scale=scale,
            translate_x=clamp(tx, -max_x, max_x),
            translate_y=clamp(ty, -max_y, max_y),
        )
        self._last_update = self._clock()
