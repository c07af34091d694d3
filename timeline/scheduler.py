# timeline/scheduler.py
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from config import PlaybackConfig
from notes.model import KeyTable, Note
from organ.pipes import Pipe

log = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> int: ...
    def sleep(self, ms: int) -> None: ...


class PlaybackState(enum.Enum):
    IDLE = "idle"
    SCHEDULING = "scheduling"
    DRAINING = "draining"
    DONE = "done"


@dataclass
class PlaybackReport:
    scheduled: int = 0
    skipped: int = 0            # cancelled notes
    missing: int = 0            # notes without a pipe
    drift_resyncs: int = 0
    busy_wait_ms: int = 0       # time spent blocked on busy pipes
    exclusivity_delay_ms: int = 0  # fire times pushed back by busy pipes


class Scheduler:
    """Walks time-ordered notes and issues one delayed pulse per note.

    A pipe never gets a new pulse before its previous one has finished:
    if it is still busy the scheduler blocks until it is free. When the
    scheduler falls behind real time, the time base is moved to "now".

    Besides the busy-pipe wait and the flush window, play() blocks once
    more at the end (drain) until the last pulse is over, so the hub
    connection is not closed while pulses are still queued.
    """
    def __init__(self, pipes: Sequence[Pipe], keys: KeyTable, clock: Clock,
                 cfg: Optional[PlaybackConfig] = None, basenote: int = 0):
        self.pipes = pipes
        self.keys = keys
        self.clock = clock
        self.cfg = cfg or PlaybackConfig()
        self.basenote = basenote
        self.state = PlaybackState.IDLE
        self.start_time = 0
        self._channel = -1

    def _flush(self, note: Note):
        flush = self.start_time + note.start - self.clock.now() - self.cfg.flush_margin_ms
        flush = min(flush, self.cfg.flush_ms)
        if flush > 0:
            self.clock.sleep(flush)

    def _trace(self, note: Note, pipe: Pipe):
        if note.channel != self._channel:
            self._channel = note.channel
            log.debug("#%d:", note.channel)
        log.debug("[%d(%d):%d@%.0f%%]", note.pitch, self.basenote + pipe.offset,
                  note.duration, 100 * note.velocity)

    def play_note(self, note: Note, report: PlaybackReport):
        idx = self.keys.pipe_for(note.pitch)
        if idx is None:
            report.missing += 1
            log.info("[/%d] no pipe for note", note.pitch)
            return
        pipe = self.pipes[idx]

        report.exclusivity_delay_ms += max(0, pipe.busy_until - (self.start_time + note.start))
        busy = pipe.busy_until - self.clock.now()
        if busy > 0:
            log.debug("(%d) waiting for %s", busy, pipe.name or pipe.offset)
            report.busy_wait_ms += busy
            self.clock.sleep(busy)
        else:
            self._flush(note)

        wait = self.start_time + note.start - self.clock.now()
        if wait < 0:
            log.warning("Running %dms late at %dms, resyncing", -wait, note.start)
            self.start_time = self.clock.now() - note.start
            report.drift_resyncs += 1
            wait = 0

        pipe.busy_until = self.start_time + note.start + note.duration
        if not self.cfg.dry_run:
            pipe.pulse(wait, note.duration)
        report.scheduled += 1
        if self.cfg.verbose:
            self._trace(note, pipe)

    def drain(self):
        last = max((p.busy_until for p in self.pipes), default=0)
        remaining = last - self.clock.now()
        if remaining > 0:
            self.clock.sleep(remaining)

    def play(self, notes: Sequence[Note]) -> PlaybackReport:
        report = PlaybackReport()
        if not notes:
            self.state = PlaybackState.DONE
            return report
        self.state = PlaybackState.SCHEDULING
        self.start_time = self.clock.now() + self.cfg.lead_in_ms - notes[0].start
        for note in notes:
            if note.cancelled:
                report.skipped += 1
                continue
            self.play_note(note, report)
        self.state = PlaybackState.DRAINING
        self.drain()
        self.state = PlaybackState.DONE
        log.info("Played %d notes (%d cancelled, %d missing, %d resyncs)",
                 report.scheduled, report.skipped, report.missing, report.drift_resyncs)
        return report
