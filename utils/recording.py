"""
Sample Recording
JSON-lines log of the pose samples delivered to the orchestrator.

Each line is {"t_ms": <ms since recording start>, "sample": <pose record or null>}.
A null sample means "no pose visible".
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from pipeline.pose_data import PoseSample

logger = logging.getLogger(__name__)

RecordedSample = Tuple[float, Optional[PoseSample]]


class SampleRecorder:
    """Append delivered samples to a .jsonl file."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'w', encoding='utf-8')
        self._start_ms: Optional[float] = None
        self.count = 0

    def write(self, now_ms: float, sample: Optional[PoseSample]) -> None:
        if self._start_ms is None:
            self._start_ms = now_ms
        line = {
            't_ms': round(now_ms - self._start_ms, 3),
            'sample': sample.to_record() if sample is not None else None,
        }
        self._file.write(json.dumps(line) + '\n')
        self.count += 1

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            logger.info("Recorded %d samples to %s", self.count, self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def read_recording(path: str) -> List[RecordedSample]:
    """
    Load a recording, sorted by time.

    Malformed lines are skipped with a warning.
    """
    events: List[RecordedSample] = []
    with open(path, 'r', encoding='utf-8') as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                raw = data.get('sample')
                sample = PoseSample.from_record(raw) if raw is not None else None
                events.append((float(data['t_ms']), sample))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning("%s:%d skipped (%s)", path, line_no, e)
    events.sort(key=lambda event: event[0])
    return events
