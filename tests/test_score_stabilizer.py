from pipeline.step5_score_stabilizer import ScoreStabilizer


def test_initially_empty():
    stabilizer = ScoreStabilizer()
    assert stabilizer.display is None
    assert stabilizer.final is None
    assert stabilizer.last is None
    assert not stabilizer.is_locked


def test_display_updates_until_locked():
    stabilizer = ScoreStabilizer()
    stabilizer.set_display(40.0)
    stabilizer.set_display(75.0)
    stabilizer.lock()
    stabilizer.set_display(10.0)
    assert stabilizer.display == 75.0
    assert stabilizer.is_locked


def test_none_unlocks_and_clears():
    stabilizer = ScoreStabilizer()
    stabilizer.set_display(75.0)
    stabilizer.lock()
    stabilizer.set_display(None)
    assert stabilizer.display is None
    assert not stabilizer.is_locked
    stabilizer.set_display(20.0)
    assert stabilizer.display == 20.0


def test_final_ignores_display_lock():
    stabilizer = ScoreStabilizer()
    stabilizer.lock()
    stabilizer.set_final(88.0)
    assert stabilizer.final == 88.0
    assert stabilizer.last == 88.0


def test_clear_all():
    stabilizer = ScoreStabilizer()
    stabilizer.set_final(50.0)
    stabilizer.set_display(50.0)
    stabilizer.lock()
    stabilizer.clear_all()
    assert stabilizer.display is None
    assert stabilizer.final is None
    assert stabilizer.last is None
    assert not stabilizer.is_locked
