# midi/extractor.py
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

import mido

from config import ExtractionConfig
from errors import ExtractionError
from midi.parser import MidiEvent
from notes.model import Note

log = logging.getLogger(__name__)

DEFAULT_TEMPO = 120.0
PERCUSSION_PROGRAM = 112   # programs 112..127: percussive / sound effects
DRUM_CHANNEL = 10
MAX_VOLUME = 10


def ticks_to_ms(ticks: int, ms_per_tick: float) -> int:
    # round half up, both for the running clock and for durations
    return int(math.floor(ticks * ms_per_tick + 0.5))


class ChannelVolumes:
    """Volume level per channel, -10..10.

    0 silences the channel for the whole run. A negative level is a
    temporary mute while the channel plays a percussion instrument.
    """
    def __init__(self, initial: Optional[Dict[int, int]] = None):
        self.levels: Dict[int, int] = {
            ch: (0 if ch == DRUM_CHANNEL else MAX_VOLUME) for ch in range(1, 17)
        }
        for ch, vol in (initial or {}).items():
            if 1 <= ch <= 16:
                self.levels[ch] = max(0, min(MAX_VOLUME, int(vol)))

    def __getitem__(self, channel: int) -> int:
        return self.levels.get(channel, 0)

    def audible(self, channel: int) -> bool:
        return self[channel] > 0

    def change_program(self, channel: int, program: int):
        level = self[channel]
        if level == 0:
            return
        if program >= PERCUSSION_PROGRAM:
            self.levels[channel] = -abs(level)
        else:
            self.levels[channel] = abs(level)

    def change_volume(self, channel: int, value: int):
        if self.audible(channel):
            self.levels[channel] = value * MAX_VOLUME // 127


@dataclass
class ExtractorState:
    ticks_per_beat: int
    tempo: float = DEFAULT_TEMPO
    tempo_locked: bool = False
    clock_ms: int = 0
    last_tick: int = 0
    tempo_logged: bool = False
    volumes: ChannelVolumes = field(default_factory=ChannelVolumes)

    @property
    def ms_per_tick(self) -> float:
        return 60000.0 / (self.tempo * self.ticks_per_beat)

    def advance(self, tick: int):
        self.clock_ms += ticks_to_ms(tick - self.last_tick, self.ms_per_tick)
        self.last_tick = tick


@dataclass
class Extraction:
    notes: List[Note]
    tempo: float
    track_names: Dict[int, str]
    volumes: ChannelVolumes


def _track_channel(events: Sequence[MidiEvent], track: int) -> int:
    return next((e.channel for e in events if e.track == track and e.is_channel_message), 0)


def _note_off_durations(events: Sequence[MidiEvent], index: int, ms_per_tick: float) -> Iterator[int]:
    on = events[index]
    for j in range(index + 1, len(events)):
        off = events[j]
        if off.is_note_off and off.track == on.track and off.msg.note == on.msg.note:
            yield ticks_to_ms(off.tick - on.tick, ms_per_tick)


def _set_tempo(state: ExtractorState, ev: MidiEvent):
    bpm = mido.tempo2bpm(ev.msg.tempo)
    if state.tempo_locked:
        log.debug("Ignoring file tempo %.1f/min (override %.1f/min)", bpm, state.tempo)
        return
    state.tempo = bpm
    if not state.tempo_logged:
        log.info("Tempo: %g/min", bpm)
        state.tempo_logged = True


def extract_notes(events: Sequence[MidiEvent], ticks_per_beat: int,
                  cfg: Optional[ExtractionConfig] = None) -> Extraction:
    """Turn a joined, tick-ordered event stream into time-ordered Notes."""
    cfg = cfg or ExtractionConfig()
    state = ExtractorState(
        ticks_per_beat=ticks_per_beat,
        tempo=cfg.tempo or DEFAULT_TEMPO,
        tempo_locked=cfg.tempo is not None,
        volumes=ChannelVolumes(cfg.channel_volumes),
    )
    vols = state.volumes
    notes: List[Note] = []
    track_names: Dict[int, str] = {}

    for i, ev in enumerate(events):
        state.advance(ev.tick)
        ch = ev.channel
        if ev.is_tempo:
            _set_tempo(state, ev)
        elif ev.is_track_name:
            owner = _track_channel(events, ev.track)
            track_names[owner] = ev.msg.name
            log.info("Channel %d: %s", owner, ev.msg.name)
        elif ev.is_program_change:
            vols.change_program(ch, ev.msg.program)
        elif ev.is_volume_change:
            vols.change_volume(ch, ev.msg.value)
        elif ev.is_note_on and vols.audible(ch):
            duration = next((d for d in _note_off_durations(events, i, state.ms_per_tick) if d > 0), 0)
            if duration <= 0:
                log.debug("Dropping unmatched note %d on channel %d at %dms", ev.msg.note, ch, state.clock_ms)
                continue
            notes.append(Note(
                channel=ch,
                start=state.clock_ms,
                pitch=ev.msg.note,
                duration=duration,
                velocity=ev.msg.velocity * vols[ch] / 1270.0,
            ))

    if not notes:
        raise ExtractionError("Could not load any note")
    notes.sort(key=lambda n: n.start)
    log.info("Extracted %d notes (%.1fs)", len(notes), max(n.end for n in notes) / 1000.0)
    return Extraction(notes=notes, tempo=state.tempo, track_names=track_names, volumes=vols)
