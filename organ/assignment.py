# organ/assignment.py
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from notes.model import NUM_KEYS, KeyTable
from organ.pipes import Pipe

log = logging.getLogger(__name__)

DEFAULT_BASENOTE = 43   # G2, used when no alignment scores above zero

# (stage label, fold intervals applied in that stage)
FOLD_STAGES: Tuple[Tuple[str, Tuple[int, ...]], ...] = (
    ("With octaves", (12, -12)),
    ("With fifths", (7,)),
    ("With thirds", (16,)),
)


@dataclass
class Assignment:
    basenote: int
    coverage: List[Tuple[str, float]] = field(default_factory=list)


def fold(keys: KeyTable, interval: int):
    """Copy pipe assignments to unassigned keys `interval` semitones away.

    Upward folds walk ascending and downward folds descending, so an
    assignment can chain across several octaves in one pass.
    """
    if interval > 0:
        sources = range(0, NUM_KEYS - interval)
    else:
        sources = range(NUM_KEYS - 1, -interval - 1, -1)
    for k in sources:
        target = keys[k + interval]
        if target.pipe is None and keys[k].pipe is not None:
            target.pipe = keys[k].pipe


class PipeAssignor:
    def __init__(self, pipes: Sequence[Pipe], keys: KeyTable):
        self.pipes = pipes
        self.keys = keys
        self.coverage: List[Tuple[str, float]] = []

    def score(self, base: int) -> float:
        return sum(self.keys[base + p.offset].weight for p in self.pipes if base + p.offset < NUM_KEYS)

    def best_basenote(self) -> int:
        best, best_score = DEFAULT_BASENOTE, 0.0
        for base in range(NUM_KEYS - 1):
            s = self.score(base)
            if s > best_score:      # strict: lowest base wins ties
                best, best_score = base, s
        return best

    def assign_direct(self, basenote: int):
        for idx, pipe in enumerate(self.pipes):
            pitch = basenote + pipe.offset
            if pitch < NUM_KEYS and self.keys[pitch].pipe is None:
                self.keys[pitch].pipe = idx

    def _report(self, stage: str):
        pct = self.keys.coverage()
        self.coverage.append((stage, pct))
        log.info("%s: %.1f%% notes can be played", stage, pct)

    def run(self) -> Assignment:
        basenote = self.best_basenote()
        log.info("Lowest pipe sounds MIDI note %d", basenote)
        self.assign_direct(basenote)
        self._report("Without harmonics")
        for stage, intervals in FOLD_STAGES:
            for interval in intervals:
                fold(self.keys, interval)
            self._report(stage)
        return Assignment(basenote=basenote, coverage=list(self.coverage))
