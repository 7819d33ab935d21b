"""
Step 3: Timing Indicator
A marker sweeping a looping one-dimensional track.

Track layout (percent of track width):

    -10 ........ 30 ............ 49.5 | 50.5 ............ 110 -> wrap to -10
       idle          prepare       capture       idle

The marker never stops. Only its output is gated: a trigger fires once per
pass through the capture zone, and only while the indicator is armed and the
owning session is active.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import config

logger = logging.getLogger(__name__)


class Zone(Enum):
    """Named sub-range of the track."""
    IDLE = "idle"
    PREPARE = "prepare"
    CAPTURE = "capture"


ZoneCallback = Callable[[Zone, Optional[int]], None]


@dataclass
class TimingState:
    """Mutable marker state, updated once per tick."""
    position: float = config.TRACK_START
    armed: bool = False
    # Set when the trigger fired on the current pass, cleared on wrap
    fired_this_pass: bool = False


def zone_for_position(position: float) -> Zone:
    """Derive the zone for a track position."""
    if config.CAPTURE_ZONE_START <= position <= config.CAPTURE_ZONE_END:
        return Zone.CAPTURE
    if config.PREPARE_ZONE_START <= position < config.CAPTURE_ZONE_START:
        return Zone.PREPARE
    return Zone.IDLE


class TimingIndicator:
    """
    Frame-rate independent timing marker.

    The indicator holds no thread. A frame scheduler calls tick() (or
    advance() with an explicit delta) at display rate. Callbacks, velocity and
    the active flag are plain attributes read fresh on every tick, so they can
    be swapped while the marker keeps running.

    Example:
        >>> indicator = TimingIndicator(on_trigger=orchestrator.on_trigger)
        >>> indicator.is_active = True
        >>> indicator.arm()
        >>> while running:
        ...     indicator.tick(now_ms())
    """

    def __init__(
        self,
        velocity: float = config.INDICATOR_VELOCITY,
        on_trigger: Optional[Callable[[], None]] = None,
        on_zone_change: Optional[ZoneCallback] = None,
        is_active: bool = False
    ):
        """
        Args:
            velocity: Percent of track per nominal 60Hz tick
            on_trigger: Called once per armed pass through the capture zone
            on_zone_change: Called with (zone, seconds_remaining) on zone or countdown change
            is_active: Whether the owning session accepts triggers
        """
        self.state = TimingState()
        self.velocity = velocity
        self.on_trigger = on_trigger
        self.on_zone_change = on_zone_change
        self._is_active = bool(is_active)

        self._last_tick_ms: Optional[float] = None
        self._last_zone = self.zone
        self._last_countdown: Optional[int] = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def velocity(self) -> float:
        return self._velocity

    @velocity.setter
    def velocity(self, value: float) -> None:
        if value < 0:
            raise ValueError("velocity must be >= 0")
        self._velocity = float(value)

    @property
    def is_active(self) -> bool:
        return self._is_active

    @is_active.setter
    def is_active(self, value: bool) -> None:
        self._is_active = bool(value)
        if not self._is_active:
            self.state.armed = False

    def arm(self) -> None:
        """Allow one trigger on the next capture-zone entry."""
        self.state.armed = True

    def disarm(self) -> None:
        self.state.armed = False

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def position(self) -> float:
        return self.state.position

    @property
    def armed(self) -> bool:
        return self.state.armed

    @property
    def zone(self) -> Zone:
        return zone_for_position(self.state.position)

    @property
    def velocity_per_second(self) -> float:
        return self._velocity * (1000.0 / config.NOMINAL_TICK_MS)

    def seconds_remaining(self) -> Optional[int]:
        """Whole seconds until the capture zone, only while in the prepare zone."""
        if self.zone is not Zone.PREPARE or self._velocity <= 0:
            return None
        progress_remaining = config.CAPTURE_ZONE_START - self.state.position
        return int(math.ceil(max(1.0, progress_remaining / self.velocity_per_second)))

    # ------------------------------------------------------------------
    # Scheduler entry points
    # ------------------------------------------------------------------

    def tick(self, now_ms: float) -> None:
        """Advance by the wall time elapsed since the previous tick."""
        if self._last_tick_ms is None:
            delta_ms = 0.0
        else:
            delta_ms = max(0.0, now_ms - self._last_tick_ms)
        self._last_tick_ms = now_ms
        self.advance(delta_ms)

    def advance(self, delta_ms: float) -> None:
        """
        Move the marker by velocity * (delta_ms / 16.67).

        Order within one call: position update, zone/countdown notification,
        trigger check, wrap.
        """
        state = self.state
        if not self._is_active:
            state.armed = False

        state.position += self._velocity * (delta_ms / config.NOMINAL_TICK_MS)
        self._notify_zone()

        if (self.zone is Zone.CAPTURE
                and state.armed
                and self._is_active
                and not state.fired_this_pass):
            state.fired_this_pass = True
            state.armed = False
            logger.debug("Trigger at position %.2f", state.position)
            if self.on_trigger is not None:
                self.on_trigger()

        if state.position > config.TRACK_END:
            state.position = config.TRACK_START
            state.fired_this_pass = False
            self._notify_zone()

    def _notify_zone(self) -> None:
        zone = self.zone
        countdown = self.seconds_remaining()

        if zone is Zone.PREPARE:
            changed = zone is not self._last_zone or countdown != self._last_countdown
        else:
            changed = zone is not self._last_zone

        self._last_zone = zone
        self._last_countdown = countdown

        if changed and self.on_zone_change is not None:
            self.on_zone_change(zone, countdown)
