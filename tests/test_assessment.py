import pytest

import config
from conftest import make_pose
from pipeline.step3_timing_indicator import TimingIndicator
from pipeline.step5_score_stabilizer import ScoreStabilizer
from pipeline.step6_assessment import (
    AssessmentOrchestrator, AssessmentSettings, ExpiryTimer, SessionCallbacks,
    SessionRunner
)
from utils.reference_store import MemoryStore, ReferencePoseRepository


class EventLog:
    def __init__(self):
        self.events = []

    def callbacks(self):
        return SessionCallbacks(
            session_started=lambda: self.events.append('started'),
            score_computed=lambda score: self.events.append(('score', score)),
            session_complete=lambda: self.events.append('complete'),
        )


def make_orchestrator(repository, timer, log=None):
    log = log or EventLog()
    return AssessmentOrchestrator(
        repository,
        stabilizer=ScoreStabilizer(),
        callbacks=log.callbacks(),
        timer=timer,
    )


def test_scored_assessment_locks_then_expires(repository, timer, clock, pixel_pose):
    log = EventLog()
    orchestrator = make_orchestrator(repository, timer, log)

    assert orchestrator.start()
    assert orchestrator.is_accepting
    orchestrator.on_pose_sample(pixel_pose)

    result = orchestrator.on_trigger()
    assert result.score == pytest.approx(100.0)
    assert result.classification == "Excellent"
    assert result.matched_keypoints == 3
    assert orchestrator.is_locked
    assert not orchestrator.is_accepting
    assert orchestrator.stabilizer.display == pytest.approx(100.0)
    assert orchestrator.stabilizer.final == pytest.approx(100.0)
    assert orchestrator.stabilizer.is_locked
    assert orchestrator.session.expires_at == config.ASSESSMENT_DURATION_MS
    assert log.events == ['started', ('score', pytest.approx(100.0))]

    clock.now = 7999.0
    assert not orchestrator.poll()
    assert orchestrator.is_locked

    clock.now = 8000.0
    assert orchestrator.poll()
    assert log.events[-1] == 'complete'
    assert not orchestrator.is_locked
    assert not orchestrator.session_active
    assert orchestrator.captured_snapshot is None
    assert orchestrator.stabilizer.display is None
    assert orchestrator.stabilizer.final is None


def test_snapshot_is_normalized(repository, timer, pixel_pose):
    orchestrator = make_orchestrator(repository, timer)
    orchestrator.start()
    orchestrator.on_pose_sample(pixel_pose)
    orchestrator.on_trigger()

    snapshot = orchestrator.captured_snapshot
    assert snapshot.keypoints[1].x == pytest.approx(0.5)
    assert snapshot.keypoints[1].y == pytest.approx(0.5)


def test_trigger_while_locked_is_ignored(repository, timer, pixel_pose):
    log = EventLog()
    orchestrator = make_orchestrator(repository, timer, log)
    orchestrator.start()
    orchestrator.on_pose_sample(pixel_pose)
    orchestrator.on_trigger()

    orchestrator.on_pose_sample(make_pose([(0, 0), (0, 0), (0, 0)]))
    assert orchestrator.on_trigger() is None
    assert orchestrator.stabilizer.display == pytest.approx(100.0)
    assert len([e for e in log.events if isinstance(e, tuple)]) == 1


def test_refuses_to_start_without_reference(timer, pixel_pose):
    log = EventLog()
    orchestrator = make_orchestrator(ReferencePoseRepository(MemoryStore()), timer, log)

    assert not orchestrator.start()
    assert not orchestrator.is_accepting
    orchestrator.on_pose_sample(pixel_pose)
    assert orchestrator.on_trigger() is None
    assert log.events == []


def test_corrupt_reference_counts_as_missing(timer):
    store = MemoryStore({config.REFERENCE_POSE_KEY: "{not json"})
    orchestrator = make_orchestrator(ReferencePoseRepository(store), timer)
    assert not orchestrator.start()


def test_trigger_without_session_is_ignored(repository, timer, pixel_pose):
    orchestrator = make_orchestrator(repository, timer)
    orchestrator.on_pose_sample(pixel_pose)
    assert orchestrator.on_trigger() is None
    assert not orchestrator.is_locked


def test_trigger_without_sample_is_ignored(repository, timer):
    orchestrator = make_orchestrator(repository, timer)
    orchestrator.start()
    assert orchestrator.on_trigger() is None
    assert not orchestrator.is_locked
    assert orchestrator.is_accepting


def test_no_pose_does_not_clear_snapshot(repository, timer, pixel_pose):
    orchestrator = make_orchestrator(repository, timer)
    orchestrator.start()
    orchestrator.on_pose_sample(pixel_pose)
    orchestrator.on_trigger()
    snapshot = orchestrator.captured_snapshot

    orchestrator.on_pose_sample(None)
    assert orchestrator.captured_snapshot is snapshot
    assert orchestrator.latest_sample is None
    assert orchestrator.is_locked


def test_reset_cancels_pending_expiry(repository, timer, clock, pixel_pose):
    log = EventLog()
    orchestrator = make_orchestrator(repository, timer, log)
    orchestrator.start()
    orchestrator.on_pose_sample(pixel_pose)
    orchestrator.on_trigger()

    orchestrator.reset()
    assert not orchestrator.timer.pending
    assert orchestrator.start()

    clock.now = 9000.0
    assert not orchestrator.poll()
    assert 'complete' not in log.events
    assert orchestrator.is_accepting


def test_custom_duration_and_dimensions(repository, timer, clock):
    settings = AssessmentSettings(assessment_duration_ms=500,
                                  normalization_width=100,
                                  normalization_height=100)
    orchestrator = AssessmentOrchestrator(repository, settings=settings, timer=timer)
    orchestrator.start()
    orchestrator.on_pose_sample(make_pose([(10, 10), (50, 50), (90, 90)]))

    assert orchestrator.on_trigger().score == pytest.approx(100.0)
    clock.now = 500.0
    assert orchestrator.poll()


def test_settings_validation():
    with pytest.raises(ValueError):
        AssessmentSettings(assessment_duration_ms=-1)
    with pytest.raises(ValueError):
        AssessmentSettings(normalization_width=0)


def test_expiry_timer_reschedule_replaces_deadline(clock):
    fired = []
    timer = ExpiryTimer(clock=clock)
    timer.schedule(100, lambda: fired.append('first'))
    timer.schedule(200, lambda: fired.append('second'))

    assert not timer.poll(150)
    assert timer.poll(200)
    assert fired == ['second']
    assert not timer.pending


def test_runner_rearms_after_missed_trigger(repository, timer, clock, pixel_pose):
    missed, results = [], []
    orchestrator = make_orchestrator(repository, timer)
    indicator = TimingIndicator(velocity=1.0)
    runner = SessionRunner(orchestrator, indicator,
                           on_result=results.append,
                           on_missed=lambda: missed.append(indicator.position))
    assert runner.start()

    # First pass reaches the capture zone on tick 60 with no pose
    for step in range(61):
        clock.now = step * config.NOMINAL_TICK_MS
        runner.step(clock.now)
    assert len(missed) == 1
    assert indicator.armed

    orchestrator.on_pose_sample(pixel_pose)
    for step in range(61, 200):
        clock.now = step * config.NOMINAL_TICK_MS
        runner.step(clock.now)
    assert len(results) == 1
    assert results[0].classification == "Excellent"
    assert orchestrator.is_locked
    assert not indicator.is_active


def test_runner_restarts_session_on_expiry(repository, timer, clock, pixel_pose):
    log = EventLog()
    orchestrator = make_orchestrator(repository, timer, log)
    indicator = TimingIndicator(velocity=1.0)
    runner = SessionRunner(orchestrator, indicator)
    runner.start()
    orchestrator.on_pose_sample(pixel_pose)

    for step in range(61):
        clock.now = step * config.NOMINAL_TICK_MS
        runner.step(clock.now)
    assert orchestrator.is_locked

    clock.now = 60 * config.NOMINAL_TICK_MS + config.ASSESSMENT_DURATION_MS
    runner.step(clock.now)

    assert log.events.count('complete') == 1
    assert log.events.count('started') == 2
    assert orchestrator.is_accepting
    assert indicator.armed


def test_runner_start_without_reference(timer):
    orchestrator = make_orchestrator(ReferencePoseRepository(MemoryStore()), timer)
    indicator = TimingIndicator(velocity=1.0)
    runner = SessionRunner(orchestrator, indicator)
    assert not runner.start()
    assert not indicator.armed
    assert not indicator.is_active
