"""Test doubles for the hub, its clock and its relays, plus MIDI builders."""

from typing import List, Optional, Sequence, Tuple

import mido


class FakeClock:
    """Virtual millisecond clock; sleep() advances time instantly."""

    def __init__(self, start: int = 0, overshoot: int = 0):
        self.t = start
        self.overshoot = overshoot
        self.sleeps: List[int] = []

    def now(self) -> int:
        return self.t

    def sleep(self, ms: int) -> None:
        self.sleeps.append(ms)
        self.t += int(ms) + self.overshoot


class FakeRelay:
    """Records every pulse as (fire time, duration) on the shared clock."""

    def __init__(self, clock: FakeClock, name: str = ""):
        self.clock = clock
        self.name = name
        self.pulses: List[Tuple[int, int]] = []

    def delayedPulse(self, delay_ms: int, duration_ms: int) -> None:
        assert delay_ms >= 0
        self.pulses.append((self.clock.now() + delay_ms, duration_ms))


class FakeHub(FakeClock):
    """Stand-in for organ.hub.RelayHub."""

    def __init__(self, names: Sequence[str] = (), reachable: bool = True):
        super().__init__()
        self.reachable = reachable
        self.relays = {name: FakeRelay(self, name) for name in names}
        self.connected = False
        self.closed = False

    def connect(self) -> None:
        from errors import HardwareDiscoveryError
        if not self.reachable:
            raise HardwareDiscoveryError("Cannot reach hub fake")
        self.connected = True

    def endpoints(self):
        return list(self.relays.items())

    def close(self) -> None:
        self.closed = True

    def all_pulses(self) -> List[Tuple[int, int]]:
        return [p for r in self.relays.values() for p in r.pulses]


def note_on(note: int, time: int = 0, velocity: int = 127, channel: int = 0) -> mido.Message:
    return mido.Message("note_on", note=note, velocity=velocity, channel=channel, time=time)


def note_off(note: int, time: int = 0, channel: int = 0) -> mido.Message:
    return mido.Message("note_off", note=note, velocity=0, channel=channel, time=time)


def make_midi(*tracks: Sequence[mido.Message], ticks_per_beat: int = 480) -> mido.MidiFile:
    mid = mido.MidiFile(ticks_per_beat=ticks_per_beat)
    for msgs in tracks:
        track = mido.MidiTrack()
        track.extend(msgs)
        mid.tracks.append(track)
    return mid


def save_midi(tmp_path, mid: mido.MidiFile, name: str = "song.mid") -> str:
    path = str(tmp_path / name)
    mid.save(path)
    return path


def two_notes(gap_ticks: int = 480, length_ticks: int = 384, pitch: int = 60,
              velocity: Optional[int] = 127) -> mido.MidiFile:
    """Two notes on one pitch; at 120bpm/480tpb: 400ms long, 500ms apart."""
    return make_midi([
        note_on(pitch, velocity=velocity),
        note_off(pitch, time=length_ticks),
        note_on(pitch, time=gap_ticks - length_ticks, velocity=velocity),
        note_off(pitch, time=length_ticks),
    ])
