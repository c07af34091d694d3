# midi/parser.py
import logging
from dataclasses import dataclass
from typing import List

import mido

from errors import ConfigurationError, ExtractionError

log = logging.getLogger(__name__)

VOLUME_CONTROLLER = 7


@dataclass(frozen=True)
class MidiEvent:
    """One message of the joined stream, with absolute tick and source track."""
    tick: int
    track: int
    msg: mido.Message

    @property
    def is_channel_message(self) -> bool:
        return not self.msg.is_meta and hasattr(self.msg, "channel")

    @property
    def channel(self) -> int:
        return self.msg.channel + 1 if self.is_channel_message else 0

    @property
    def is_note_on(self) -> bool:
        return self.msg.type == "note_on" and self.msg.velocity > 0

    @property
    def is_note_off(self) -> bool:
        return self.msg.type == "note_off" or (self.msg.type == "note_on" and self.msg.velocity == 0)

    @property
    def is_program_change(self) -> bool:
        return self.msg.type == "program_change"

    @property
    def is_volume_change(self) -> bool:
        return self.msg.type == "control_change" and self.msg.control == VOLUME_CONTROLLER

    @property
    def is_tempo(self) -> bool:
        return self.msg.type == "set_tempo"

    @property
    def is_track_name(self) -> bool:
        return self.msg.type == "track_name" and bool(self.msg.name)


def load_midi(path: str) -> mido.MidiFile:
    try:
        return mido.MidiFile(path)
    except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    except (OSError, EOFError, ValueError, KeyError) as e:
        # mido reports a missing MThd header as a plain OSError
        raise ExtractionError(f"Malformed MIDI file {path}: {e}") from e


def join_tracks(mid: mido.MidiFile) -> List[MidiEvent]:
    """Flatten all tracks into one stream ordered by absolute tick.

    The sort is stable, so events sharing a tick keep their track order.
    """
    events: List[MidiEvent] = []
    for idx, track in enumerate(mid.tracks):
        tick = 0
        for msg in track:
            tick += msg.time
            events.append(MidiEvent(tick=tick, track=idx, msg=msg))
    events.sort(key=lambda e: e.tick)
    log.debug("Joined %d tracks into %d events", len(mid.tracks), len(events))
    return events
