# ========================= notes/reduction.py =========================
import logging
from typing import List

from config import ReductionConfig
from notes.model import KeyTable, Note

log = logging.getLogger(__name__)

class ReductionStrategy:
    def apply(self, notes: List[Note], keys: KeyTable, cfg: ReductionConfig) -> List[Note]:
        raise NotImplementedError

class DynamicsReduction(ReductionStrategy):
    """A valve cannot play softer, so play quieter notes shorter instead.

    Durations shrink again on every call, so an instance applies itself once.
    """
    def __init__(self):
        self.applied = False

    def apply(self, notes: List[Note], keys: KeyTable, cfg: ReductionConfig) -> List[Note]:
        if self.applied:
            log.warning("Dynamics already applied, skipping")
            return notes
        self.applied = True
        max_vel = max((n.velocity for n in notes), default=0.0)
        if max_vel <= 0:
            return notes
        for n in notes:
            n.duration = int(n.duration * n.velocity / max_vel)
        return notes

class ConflictReduction(ReductionStrategy):
    """Keep one sounding note per pipe.

    A louder note arriving while its pipe still sounds a quieter one cuts
    the quieter note short and takes over its remaining sustain. Anything
    else landing on the busy pipe is a duplicate and gets cancelled.
    """
    def apply(self, notes: List[Note], keys: KeyTable, cfg: ReductionConfig) -> List[Note]:
        cancelled = shortened = 0
        for i, n in enumerate(notes):
            pipe = keys.pipe_for(n.pitch)
            if pipe is None or n.cancelled:
                continue
            end = n.end
            for m in notes[i + 1:]:
                if m.start >= end + cfg.grace_ms:
                    break
                if m.cancelled or keys.pipe_for(m.pitch) != pipe:
                    continue
                if m.start > n.start + cfg.restrike_ms and m.velocity > n.velocity:
                    n.duration = m.start - n.start - cfg.grace_ms
                    if m.end + cfg.restrike_ms < end:
                        m.duration = end - m.start
                    shortened += 1
                    break
                m.duration = 0
                cancelled += 1
        log.info("Conflicts: %d notes shortened, %d duplicates cancelled", shortened, cancelled)
        return notes

def make_reduction(cfg: ReductionConfig) -> List[ReductionStrategy]:
    chain: List[ReductionStrategy] = []
    if cfg.dynamics:
        chain.append(DynamicsReduction())
    chain.append(ConflictReduction())
    return chain

def reduce_notes(notes: List[Note], keys: KeyTable, cfg: ReductionConfig) -> List[Note]:
    for step in make_reduction(cfg):
        notes = step.apply(notes, keys, cfg)
    return notes
