"""
Step 6: Assessment Orchestrator
Binds timing-indicator triggers to pose comparison.

Flow:
    pose stream --> on_pose_sample()   (latest sample kept, nothing else)
    indicator   --> on_trigger()       (snapshot latest sample, score, lock)
    timer       --> expiry             (clear, unlock, session_complete)

At most one assessment is in flight. Everything runs inside the control loop
callbacks, so there is no locking; the expiry timer is polled by the same loop.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import config
from .pose_data import PoseSample
from .step4_pose_similarity import AssessmentResult, assess, normalize
from .step5_score_stabilizer import ScoreStabilizer
from .step3_timing_indicator import TimingIndicator

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class AssessmentSettings:
    """Runtime configuration consumed by the timing/scoring core."""
    indicator_velocity: float = config.INDICATOR_VELOCITY
    assessment_duration_ms: float = config.ASSESSMENT_DURATION_MS
    normalization_width: float = config.NORMALIZATION_WIDTH
    normalization_height: float = config.NORMALIZATION_HEIGHT
    sample_throttle_ms: float = config.SAMPLE_THROTTLE_MS

    def __post_init__(self):
        if self.assessment_duration_ms < 0:
            raise ValueError("assessment_duration_ms must be >= 0")
        if self.normalization_width <= 0 or self.normalization_height <= 0:
            raise ValueError("normalization size must be positive")


@dataclass
class SessionCallbacks:
    """Lifecycle events raised by the orchestrator."""
    session_started: Optional[Callable[[], None]] = None
    score_computed: Optional[Callable[[float], None]] = None
    session_complete: Optional[Callable[[], None]] = None


@dataclass
class AssessmentSession:
    """State of the one active session."""
    locked: bool = False
    final_score: Optional[float] = None
    expires_at: Optional[float] = None
    captured: Optional[PoseSample] = None
    result: Optional[AssessmentResult] = None


class ExpiryTimer:
    """
    Single-shot cancellable timer polled by the control loop.

    Scheduling again replaces the pending deadline; a cancelled timer never
    fires.
    """

    def __init__(self, clock: Callable[[], float] = monotonic_ms):
        self.clock = clock
        self.deadline: Optional[float] = None
        self._callback: Optional[Callable[[], None]] = None

    @property
    def pending(self) -> bool:
        return self.deadline is not None

    def schedule(self, duration_ms: float, callback: Callable[[], None]) -> float:
        self.deadline = self.clock() + duration_ms
        self._callback = callback
        return self.deadline

    def cancel(self) -> None:
        self.deadline = None
        self._callback = None

    def poll(self, now_ms: Optional[float] = None) -> bool:
        """Fire the callback if the deadline has passed. Returns True if fired."""
        if self.deadline is None:
            return False
        now = self.clock() if now_ms is None else now_ms
        if now < self.deadline:
            return False
        callback = self._callback
        self.cancel()
        if callback is not None:
            callback()
        return True


class AssessmentOrchestrator:
    """
    Top-level coordinator for timed pose assessment.

    Example:
        >>> orchestrator = AssessmentOrchestrator(repository)
        >>> indicator = TimingIndicator(on_trigger=orchestrator.on_trigger)
        >>> if orchestrator.start():
        ...     indicator.arm()
        >>> # each frame:
        >>> indicator.is_active = orchestrator.is_accepting
        >>> indicator.tick(now)
        >>> orchestrator.poll(now)
    """

    def __init__(
        self,
        reference_source,
        stabilizer: Optional[ScoreStabilizer] = None,
        callbacks: Optional[SessionCallbacks] = None,
        settings: Optional[AssessmentSettings] = None,
        timer: Optional[ExpiryTimer] = None
    ):
        """
        Args:
            reference_source: Object with load() -> PoseSample | None (ReferencePoseRepository)
            stabilizer: Display score holder (created if None)
            callbacks: Lifecycle event handlers
            settings: Durations and normalization size
            timer: Expiry timer (inject a fake clock in tests)
        """
        self.reference_source = reference_source
        self.stabilizer = stabilizer or ScoreStabilizer()
        self.callbacks = callbacks or SessionCallbacks()
        self.settings = settings or AssessmentSettings()
        self.timer = timer or ExpiryTimer()

        self.session_active = False
        self.session = AssessmentSession()
        self.reference: Optional[PoseSample] = None
        self.latest_sample: Optional[PoseSample] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_locked(self) -> bool:
        return self.session.locked

    @property
    def is_accepting(self) -> bool:
        """True while a trigger would be accepted (feeds TimingIndicator.is_active)."""
        return self.session_active and not self.session.locked and self.reference is not None

    @property
    def captured_snapshot(self) -> Optional[PoseSample]:
        return self.session.captured

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start a new session.

        Reads the reference pose; refuses to activate when there is none.
        Any pending expiry from a previous session is cancelled first.

        Returns:
            True if the session is active
        """
        self.reset()
        self.stabilizer.clear_all()

        reference = self.reference_source.load()
        if reference is None:
            logger.warning("No reference pose stored, session not started")
            return False

        self.reference = reference
        self.session_active = True
        logger.info("Session started (reference: %d keypoints)", len(reference))
        if self.callbacks.session_started is not None:
            self.callbacks.session_started()
        return True

    def reset(self) -> None:
        """Manual interruption: cancel expiry and clear state without session_complete."""
        self.timer.cancel()
        self.session = AssessmentSession()
        self.session_active = False

    def poll(self, now_ms: Optional[float] = None) -> bool:
        """Drive the expiry timer from the control loop."""
        return self.timer.poll(now_ms)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def on_pose_sample(self, sample: Optional[PoseSample]) -> None:
        """
        Store the latest sample. None means no pose visible; it clears the
        latest sample but never the snapshot of an in-flight assessment.
        """
        self.latest_sample = sample

    def on_trigger(self) -> Optional[AssessmentResult]:
        """
        Snapshot the latest sample and score it.

        Silently ignored (returns None) when no session is active, an
        assessment is already locked, or no sample is available.
        """
        if not self.session_active or self.session.locked:
            logger.debug("Trigger ignored (active=%s, locked=%s)",
                         self.session_active, self.session.locked)
            return None
        if self.latest_sample is None or self.reference is None:
            logger.debug("Trigger ignored, no pose sample available")
            return None

        self.session.locked = True

        snapshot = normalize(
            self.latest_sample,
            self.settings.normalization_width,
            self.settings.normalization_height
        )
        result = assess(self.reference, snapshot)

        self.session.captured = snapshot
        self.session.result = result
        self.session.final_score = result.score

        self.stabilizer.set_final(result.score)
        self.stabilizer.set_display(result.score)
        logger.info("Score %.1f (%s, %d keypoints matched)",
                    result.score, result.classification, result.matched_keypoints)
        if self.callbacks.score_computed is not None:
            self.callbacks.score_computed(result.score)
        self.stabilizer.lock()

        self.session.expires_at = self.timer.schedule(
            self.settings.assessment_duration_ms, self._expire
        )
        return result

    def _expire(self) -> None:
        self.session = AssessmentSession()
        self.session_active = False
        self.stabilizer.clear_all()
        logger.info("Session complete")
        if self.callbacks.session_complete is not None:
            self.callbacks.session_complete()


class SessionRunner:
    """
    Wires a TimingIndicator to an orchestrator for a control loop.

    - the indicator is active only while the orchestrator accepts a trigger
    - a trigger that finds no pose re-arms the indicator for the next pass
    - an expired session is restarted and the indicator re-armed

    Example:
        >>> runner = SessionRunner(orchestrator, TimingIndicator())
        >>> runner.start()
        >>> while running:
        ...     runner.step(monotonic_ms())
    """

    def __init__(
        self,
        orchestrator: AssessmentOrchestrator,
        indicator: TimingIndicator,
        auto_restart: bool = True,
        on_result: Optional[Callable[[AssessmentResult], None]] = None,
        on_missed: Optional[Callable[[], None]] = None
    ):
        self.orchestrator = orchestrator
        self.indicator = indicator
        self.auto_restart = auto_restart
        self.on_result = on_result
        self.on_missed = on_missed

        self.indicator.on_trigger = self._on_trigger
        self._next_session_complete = orchestrator.callbacks.session_complete
        orchestrator.callbacks.session_complete = self._on_session_complete

    def start(self) -> bool:
        """Start a session and arm the indicator. False without a reference."""
        started = self.orchestrator.start()
        self.indicator.is_active = self.orchestrator.is_accepting
        if started:
            self.indicator.arm()
        return started

    def reset(self) -> None:
        self.orchestrator.reset()
        self.indicator.is_active = False

    def step(self, now_ms: float) -> None:
        """One control-loop iteration: gate, tick, then poll expiry."""
        self.indicator.is_active = self.orchestrator.is_accepting
        self.indicator.tick(now_ms)
        self.orchestrator.poll(now_ms)

    def _on_trigger(self) -> None:
        result = self.orchestrator.on_trigger()
        if result is None:
            if self.orchestrator.is_accepting:
                logger.debug("Trigger missed, re-armed for next pass")
                self.indicator.arm()
            if self.on_missed is not None:
                self.on_missed()
            return
        if self.on_result is not None:
            self.on_result(result)

    def _on_session_complete(self) -> None:
        if self._next_session_complete is not None:
            self._next_session_complete()
        if self.auto_restart:
            self.start()
