from __future__ import annotations
import math
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

ADDRESS_MAX = 2**64 - 1
TICK_MAX = 2**32 - 1

Number = Union[int, float]


class Saturation(Enum):
    """Outcome of a saturating addition"""

    UNDERFLOW = -1
    NONE = 0
    OVERFLOW = 1


def saturating_addition(
    value: int, delta: Number, upper: int, lower: int = 0
) -> Tuple[int, Saturation]:
    """
    Add a signed delta to an unsigned bound without leaving ``[lower, upper]``.

    Float deltas are truncated toward zero before they are applied, so only
    whole units ever reach the bound.

    Args:
        value (int): The current bound, inside ``[lower, upper]``.
        delta (int | float): The signed amount to add.
        upper (int): The largest representable value.
        lower (int): The smallest representable value. Defaults to 0.

    Returns:
        Tuple[int, Saturation]: The new bound and which clamp fired, if any.

    Example:
        >>> saturating_addition(10, -20, TICK_MAX)
        (0, <Saturation.UNDERFLOW: -1>)
        >>> saturating_addition(10, 2.9, TICK_MAX)
        (12, <Saturation.NONE: 0>)
    """
    if isinstance(delta, float):
        if math.isnan(delta):
            raise ValueError("Cannot add NaN to a window bound")
        if math.isinf(delta):
            return (upper, Saturation.OVERFLOW) if delta > 0 else (lower, Saturation.UNDERFLOW)
    step = int(delta)
    if step > 0 and step > upper - value:
        return upper, Saturation.OVERFLOW
    if step < 0 and -step > value - lower:
        return lower, Saturation.UNDERFLOW
    return value + step, Saturation.NONE


def _check_bounds(axis: str, minimum: int, maximum: int, limit: int):
    if not 0 <= minimum <= limit or not 0 <= maximum <= limit:
        raise ValueError(f"{axis} bounds [{minimum}, {maximum}] outside [0, {limit}]")
    if maximum < minimum:
        raise ValueError(f"{axis} maximum {maximum} is below minimum {minimum}")


def _check_finite(**values: Number):
    for name, value in values.items():
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")


@dataclass
class HeapWindow:
    """Integer rectangle in (address, tick) space"""

    minimum_address: int = 0
    maximum_address: int = 0
    minimum_tick: int = 0
    maximum_tick: int = 0

    def __post_init__(self):
        _check_bounds("address", self.minimum_address, self.maximum_address, ADDRESS_MAX)
        _check_bounds("tick", self.minimum_tick, self.maximum_tick, TICK_MAX)

    @property
    def height(self) -> int:
        """Address span of the window"""
        return self.maximum_address - self.minimum_address

    @property
    def width(self) -> int:
        """Tick span of the window"""
        return self.maximum_tick - self.minimum_tick

    def reset(self, window: HeapWindow):
        self.minimum_address = window.minimum_address
        self.maximum_address = window.maximum_address
        self.minimum_tick = window.minimum_tick
        self.maximum_tick = window.maximum_tick

    def extend(
        self, address_low: int, address_high: int, tick_low: int, tick_high: int
    ):
        """Grow the window to cover the given extent. Bounds only ever widen."""
        self.minimum_address = max(0, min(self.minimum_address, address_low))
        self.maximum_address = min(ADDRESS_MAX, max(self.maximum_address, address_high))
        self.minimum_tick = max(0, min(self.minimum_tick, tick_low))
        self.maximum_tick = min(TICK_MAX, max(self.maximum_tick, tick_high))

    def contains_point(self, address: int, tick: int) -> bool:
        return (
            self.minimum_address <= address <= self.maximum_address
            and self.minimum_tick <= tick <= self.maximum_tick
        )

    def copy(self) -> HeapWindow:
        return HeapWindow(
            self.minimum_address,
            self.maximum_address,
            self.minimum_tick,
            self.maximum_tick,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export window bounds in dictionary form"""
        return {
            "minimum_address": self.minimum_address,
            "minimum_address_hex": hex(self.minimum_address),
            "maximum_address": self.maximum_address,
            "maximum_address_hex": hex(self.maximum_address),
            "minimum_tick": self.minimum_tick,
            "maximum_tick": self.maximum_tick,
            "height": self.height,
            "width": self.width,
        }


class ContinuousHeapWindow:
    """
    The interactive view over the heap history.

    Bounds are kept as integers so that 64-bit addresses stay exact. The
    fractional part of float pans is kept in ``x_shift`` (ticks) and
    ``y_shift`` (addresses), always in ``[0, 1)``, so the true position of a
    bound is the bound plus its shift.
    """

    def __init__(
        self,
        minimum_address: int = 0,
        maximum_address: int = 0,
        minimum_tick: int = 0,
        maximum_tick: int = 0,
    ):
        self.reset(
            HeapWindow(minimum_address, maximum_address, minimum_tick, maximum_tick)
        )

    @classmethod
    def from_window(cls, window: HeapWindow) -> ContinuousHeapWindow:
        return cls(
            window.minimum_address,
            window.maximum_address,
            window.minimum_tick,
            window.maximum_tick,
        )

    def reset(self, window: HeapWindow):
        self._minimum_address = window.minimum_address
        self._maximum_address = window.maximum_address
        self._minimum_tick = window.minimum_tick
        self._maximum_tick = window.maximum_tick
        self._x_shift = 0.0
        self._y_shift = 0.0

    def to_window(self) -> HeapWindow:
        return HeapWindow(
            self._minimum_address,
            self._maximum_address,
            self._minimum_tick,
            self._maximum_tick,
        )

    @property
    def minimum_address(self) -> int:
        return self._minimum_address

    @property
    def maximum_address(self) -> int:
        return self._maximum_address

    @property
    def minimum_tick(self) -> int:
        return self._minimum_tick

    @property
    def maximum_tick(self) -> int:
        return self._maximum_tick

    @property
    def x_shift(self) -> float:
        return self._x_shift

    @property
    def y_shift(self) -> float:
        return self._y_shift

    @property
    def height(self) -> float:
        return float(self._maximum_address - self._minimum_address)

    @property
    def width(self) -> float:
        return float(self._maximum_tick - self._minimum_tick)

    @property
    def minimum_address_low32(self) -> int:
        return self._minimum_address & 0xFFFFFFFF

    @property
    def minimum_address_high32(self) -> int:
        return self._minimum_address >> 32

    @property
    def maximum_address_low32(self) -> int:
        return self._maximum_address & 0xFFFFFFFF

    @property
    def maximum_address_high32(self) -> int:
        return self._maximum_address >> 32

    @property
    def minimum_address_as_double(self) -> float:
        return float(self._minimum_address)

    @property
    def maximum_address_as_double(self) -> float:
        return float(self._maximum_address)

    @property
    def minimum_tick_as_double(self) -> float:
        return float(self._minimum_tick)

    @property
    def maximum_tick_as_double(self) -> float:
        return float(self._maximum_tick)

    @staticmethod
    def _accumulate(shift: float, delta: Number) -> Tuple[int, float]:
        if isinstance(delta, int):
            return delta, shift
        whole = math.floor(delta)
        total = shift + (delta - whole)
        carry = math.floor(total)
        return whole + carry, total - carry

    def _move_ticks(self, low_delta: Number, high_delta: Number) -> Saturation:
        low, low_state = saturating_addition(self._minimum_tick, low_delta, TICK_MAX)
        high, high_state = saturating_addition(self._maximum_tick, high_delta, TICK_MAX)
        self._minimum_tick, self._maximum_tick = low, max(low, high)
        return low_state if low_state is not Saturation.NONE else high_state

    def _move_addresses(self, low_delta: Number, high_delta: Number) -> Saturation:
        low, low_state = saturating_addition(
            self._minimum_address, low_delta, ADDRESS_MAX
        )
        high, high_state = saturating_addition(
            self._maximum_address, high_delta, ADDRESS_MAX
        )
        self._minimum_address, self._maximum_address = low, max(low, high)
        return low_state if low_state is not Saturation.NONE else high_state

    def pan(self, dx: Number, dy: Number) -> Tuple[Saturation, Saturation]:
        """
        Shift the window by ``dx`` ticks and ``dy`` addresses.

        A bound that would leave the representable range is pinned at the
        limit while the opposite bound still moves, so the window can shrink
        against an edge. The remainder of a clamped axis is discarded.

        Args:
            dx (int | float): Tick delta.
            dy (int | float): Address delta.

        Returns:
            Tuple[Saturation, Saturation]: Clamp outcome for the tick and address axes.

        Example:
            >>> window = ContinuousHeapWindow(0x1000, 0x2000, 10, 20)
            >>> window.pan(5, -0x100)
            (<Saturation.NONE: 0>, <Saturation.NONE: 0>)
            >>> window.minimum_tick, hex(window.minimum_address)
            (15, '0xf00')
        """
        _check_finite(dx=dx, dy=dy)
        tick_step, self._x_shift = self._accumulate(self._x_shift, dx)
        address_step, self._y_shift = self._accumulate(self._y_shift, dy)

        tick_state = self._move_ticks(tick_step, tick_step)
        if tick_state is not Saturation.NONE:
            self._x_shift = 0.0
        address_state = self._move_addresses(address_step, address_step)
        if address_state is not Saturation.NONE:
            self._y_shift = 0.0
        return tick_state, address_state

    def zoom_to_point(
        self, dx: float, dy: float, how_much_x: float, how_much_y: float
    ) -> Tuple[Saturation, Saturation]:
        """
        Scale the window around a point given in relative window coordinates.

        ``(dx, dy) == (0.5, 0.5)`` is the centre of the window. The tick span is
        multiplied by ``how_much_x`` and the address span by ``how_much_y``;
        factors below 1.0 zoom in, above 1.0 zoom out.

        Args:
            dx (float): Relative tick position of the fixed point.
            dy (float): Relative address position of the fixed point.
            how_much_x (float): Tick span factor.
            how_much_y (float): Address span factor.

        Returns:
            Tuple[Saturation, Saturation]: Clamp outcome for the tick and address axes.
        """
        _check_finite(dx=dx, dy=dy, how_much_x=how_much_x, how_much_y=how_much_y)
        if how_much_x <= 0 or how_much_y <= 0:
            raise ValueError(
                f"Zoom factors must be positive, got ({how_much_x}, {how_much_y})"
            )

        # Deltas vanish for a factor of exactly 1.0, so that case never moves a bound.
        width = self._maximum_tick - self._minimum_tick
        tick_state = self._move_ticks(
            round((1.0 - how_much_x) * dx * width),
            -round((1.0 - how_much_x) * (1.0 - dx) * width),
        )
        height = self._maximum_address - self._minimum_address
        address_state = self._move_addresses(
            round((1.0 - how_much_y) * dy * height),
            -round((1.0 - how_much_y) * (1.0 - dy) * height),
        )
        return tick_state, address_state

    def __eq__(self, other):
        if not isinstance(other, ContinuousHeapWindow):
            return NotImplemented
        return self.to_window() == other.to_window()

    def __repr__(self):
        return (
            f"ContinuousHeapWindow(addresses=[{hex(self._minimum_address)}, "
            f"{hex(self._maximum_address)}], ticks=[{self._minimum_tick}, "
            f"{self._maximum_tick}])"
        )
