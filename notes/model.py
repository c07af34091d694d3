# notes/model.py
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

NUM_KEYS = 128

@dataclass
class Note:
    channel: int     # 1..16
    start: int       # ms from start of performance
    pitch: int       # MIDI note number
    duration: int    # ms, 0 = cancelled
    velocity: float  # 0.0 .. 1.0

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def cancelled(self) -> bool:
        return self.duration <= 0


@dataclass
class Key:
    weight: float = 0.0          # sum of duration * velocity
    pipe: Optional[int] = None   # index into the pipe table


@dataclass
class KeyTable:
    """Pitch slot -> pipe mapping, plus the usage histogram that drives it."""
    keys: List[Key] = field(default_factory=lambda: [Key() for _ in range(NUM_KEYS)])
    total_weight: float = 0.0

    @classmethod
    def from_notes(cls, notes: Iterable[Note]) -> "KeyTable":
        table = cls()
        for n in notes:
            table.keys[n.pitch].weight += n.duration * n.velocity
        table.total_weight = sum(k.weight for k in table.keys)
        return table

    def __getitem__(self, pitch: int) -> Key:
        return self.keys[pitch]

    def pipe_for(self, pitch: int) -> Optional[int]:
        return self.keys[pitch].pipe

    def coverage(self) -> float:
        """Percentage of the total weight that has a pipe to sound it."""
        if self.total_weight <= 0:
            return 0.0
        covered = sum(k.weight for k in self.keys if k.pipe is not None)
        return 100.0 * covered / self.total_weight
