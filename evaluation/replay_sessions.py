"""
Replay Recorded Sessions

Feeds recorded pose sample streams (main.py --record) through the timing
indicator and the assessment orchestrator with a simulated 60Hz clock, so
scoring can be checked offline without a camera or a pose model.

Usage:
    python evaluation/replay_sessions.py data/session.jsonl
    python evaluation/replay_sessions.py data/*.jsonl --velocity 0.5 --output evaluation/replay_report.csv
"""

import sys
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from tqdm import tqdm

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import config
from pipeline.pose_data import PoseSample
from pipeline.step3_timing_indicator import TimingIndicator
from pipeline.step6_assessment import (
    AssessmentOrchestrator, AssessmentSettings, ExpiryTimer, SessionCallbacks,
    SessionRunner
)
from utils.recording import RecordedSample, read_recording
from utils.reference_store import JsonFileStore, MemoryStore, ReferencePoseRepository

REPORT_COLUMNS = ['recording', 'session', 't_ms', 'event', 'score',
                  'classification', 'matched_keypoints']


class SimulatedClock:
    """Millisecond clock advanced by the replay loop."""

    def __init__(self, start_ms: float = 0.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now


def replay_stream(
    events: Sequence[RecordedSample],
    reference: PoseSample,
    settings: Optional[AssessmentSettings] = None,
    tick_ms: float = config.NOMINAL_TICK_MS,
    end_ms: Optional[float] = None
) -> List[Dict[str, Any]]:
    """
    Replay one recorded stream.

    Args:
        events: (t_ms, sample) pairs sorted by time; None means no pose
        reference: Normalized reference pose
        settings: Core settings (velocity, duration, normalization size)
        tick_ms: Simulated frame interval
        end_ms: Stop time, defaults to last event + assessment duration

    Returns:
        One record per trigger: event is "scored" or "missed" (no pose)
    """
    settings = settings or AssessmentSettings()
    if end_ms is None:
        last_ms = events[-1][0] if events else 0.0
        end_ms = last_ms + settings.assessment_duration_ms

    store = MemoryStore()
    repository = ReferencePoseRepository(store)
    repository.save(reference)

    clock = SimulatedClock()
    records: List[Dict[str, Any]] = []
    session = {'index': 0}

    def on_started():
        session['index'] += 1

    orchestrator = AssessmentOrchestrator(
        repository,
        callbacks=SessionCallbacks(session_started=on_started),
        settings=settings,
        timer=ExpiryTimer(clock=clock),
    )

    def on_result(result):
        records.append({
            'session': session['index'],
            't_ms': clock.now,
            'event': 'scored',
            'score': result.score,
            'classification': result.classification,
            'matched_keypoints': result.matched_keypoints,
        })

    def on_missed():
        records.append({
            'session': session['index'],
            't_ms': clock.now,
            'event': 'missed',
            'score': None,
            'classification': None,
            'matched_keypoints': 0,
        })

    indicator = TimingIndicator(velocity=settings.indicator_velocity)
    runner = SessionRunner(orchestrator, indicator,
                           on_result=on_result, on_missed=on_missed)
    runner.start()

    index = 0
    step = 0
    while step * tick_ms <= end_ms:
        clock.now = step * tick_ms
        while index < len(events) and events[index][0] <= clock.now:
            orchestrator.on_pose_sample(events[index][1])
            index += 1
        runner.step(clock.now)
        step += 1

    return records


def summarize(records: List[Dict[str, Any]]) -> pd.DataFrame:
    """Per-recording statistics from replay records."""
    df = pd.DataFrame(records, columns=REPORT_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=['recording', 'triggers', 'scored', 'missed',
                                     'mean_score', 'min_score', 'max_score'])
    df['score'] = pd.to_numeric(df['score'], errors='coerce')

    grouped = df.groupby('recording')
    summary = pd.DataFrame({
        'triggers': grouped.size(),
        'scored': grouped['event'].apply(lambda e: int((e == 'scored').sum())),
        'missed': grouped['event'].apply(lambda e: int((e == 'missed').sum())),
        'mean_score': grouped['score'].mean(),
        'min_score': grouped['score'].min(),
        'max_score': grouped['score'].max(),
    })
    return summary.reset_index()


def main():
    """Replay recordings and write the report."""
    import argparse

    parser = argparse.ArgumentParser(description='Replay recorded pose sessions')
    parser.add_argument('recordings', nargs='+', help='.jsonl recordings from main.py --record')
    parser.add_argument('--store', type=str, default=config.REFERENCE_STORE_PATH,
                        help='Reference store file')
    parser.add_argument('--velocity', type=float, default=config.INDICATOR_VELOCITY,
                        help='Indicator velocity (percent per 60Hz tick)')
    parser.add_argument('--duration', type=float, default=config.ASSESSMENT_DURATION_MS,
                        help='Assessment duration (ms)')
    parser.add_argument('--output', type=str, default='evaluation/replay_report.csv',
                        help='Output CSV path')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    print("=" * 60)
    print("SESSION REPLAY")
    print("=" * 60)

    reference = ReferencePoseRepository(JsonFileStore(args.store)).load()
    if reference is None:
        print(f"No reference pose in {args.store}. Run capture_reference.py first.")
        sys.exit(1)

    settings = AssessmentSettings(indicator_velocity=args.velocity,
                                  assessment_duration_ms=args.duration)
    print(f"Reference: {len(reference)} keypoints")
    print(f"Velocity: {settings.indicator_velocity} | Duration: {settings.assessment_duration_ms:.0f}ms")
    print()

    all_records = []
    for path in tqdm(args.recordings, desc="Replaying"):
        events = read_recording(path)
        for record in replay_stream(events, reference, settings):
            record['recording'] = Path(path).name
            all_records.append(record)

    df = pd.DataFrame(all_records, columns=REPORT_COLUMNS)
    summary = summarize(all_records)

    print("\n" + "=" * 60)
    print("REPLAY RESULTS")
    print("=" * 60)
    if summary.empty:
        print("No triggers fired. Recordings may be shorter than one marker pass.")
    else:
        print(summary.to_string(index=False))

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    print(f"\nResults saved to: {output_path}")

    return df


if __name__ == '__main__':
    main()
