"""Basenote search, direct assignment and harmonic folding."""

import pytest

from notes.model import KeyTable, Note
from organ.assignment import DEFAULT_BASENOTE, PipeAssignor, fold
from organ.pipes import Pipe


def pipes(*offsets):
    return [Pipe(relay=None, offset=o, name=f"tune{o:02d}") for o in offsets]


def table(weights):
    keys = KeyTable()
    for pitch, w in weights.items():
        keys[pitch].weight = w
    keys.total_weight = sum(weights.values())
    return keys


class TestKeyTable:

    def test_weights_from_notes(self):
        keys = KeyTable.from_notes([
            Note(channel=1, start=0, pitch=60, duration=400, velocity=0.5),
            Note(channel=1, start=500, pitch=60, duration=100, velocity=1.0),
            Note(channel=2, start=500, pitch=64, duration=200, velocity=0.25),
        ])
        assert keys[60].weight == pytest.approx(300.0)
        assert keys[64].weight == pytest.approx(50.0)
        assert keys.total_weight == pytest.approx(350.0)

    def test_coverage_empty_table(self):
        assert KeyTable().coverage() == 0.0


class TestBasenote:

    def test_best_alignment(self):
        keys = table({60: 10, 62: 10, 64: 10, 50: 5})
        assert PipeAssignor(pipes(0, 2, 4), keys).best_basenote() == 60

    def test_ties_pick_lowest_base(self):
        keys = table({10: 7, 22: 7})
        assert PipeAssignor(pipes(0), keys).best_basenote() == 10

    def test_offsets_past_top_key_are_ignored(self):
        keys = table({127: 5, 20: 1})
        assert PipeAssignor(pipes(0, 40), keys).best_basenote() == 127 - 40

    def test_deterministic(self):
        weights = {40: 3, 47: 8, 52: 8, 59: 2, 64: 11}
        results = []
        for _ in range(2):
            keys = table(weights)
            a = PipeAssignor(pipes(0, 5, 12, 17), keys).run()
            results.append((a.basenote, [k.pipe for k in keys.keys]))
        assert results[0] == results[1]

    def test_no_pipes(self):
        keys = table({60: 10})
        a = PipeAssignor([], keys).run()
        assert a.basenote == DEFAULT_BASENOTE
        assert all(pct == 0.0 for _, pct in a.coverage)
        assert all(k.pipe is None for k in keys.keys)


class TestDirectAssignment:

    def test_pipes_land_on_basenote_plus_offset(self):
        keys = table({60: 1})
        PipeAssignor(pipes(0, 2, 4), keys).assign_direct(60)
        assert (keys[60].pipe, keys[62].pipe, keys[64].pipe) == (0, 1, 2)

    def test_first_pipe_keeps_shared_key(self):
        keys = table({60: 1})
        PipeAssignor(pipes(3, 3), keys).assign_direct(57)
        assert keys[60].pipe == 0


class TestFolding:

    def test_octaves_chain_both_ways(self):
        keys = table({60: 1})
        keys[60].pipe = 0
        fold(keys, 12)
        fold(keys, -12)
        assigned = [k for k in range(128) if keys[k].pipe == 0]
        assert assigned == list(range(0, 128, 12))

    def test_fold_never_overwrites(self):
        keys = table({60: 1})
        keys[60].pipe = 0
        keys[72].pipe = 1
        fold(keys, 12)
        assert keys[72].pipe == 1
        assert keys[84].pipe == 1

    def test_fifth_and_third(self):
        keys = table({60: 1})
        keys[0].pipe = 0
        fold(keys, 7)
        assert keys[7].pipe == 0
        keys = table({60: 1})
        keys[0].pipe = 0
        fold(keys, 16)
        assert keys[16].pipe == 0
        assert keys[32].pipe == 0

    def test_coverage_never_decreases(self):
        keys = table({48: 4, 55: 6, 60: 10, 63: 3, 67: 5, 71: 2, 76: 4})
        a = PipeAssignor(pipes(0, 7, 12), keys).run()
        stages = [name for name, _ in a.coverage]
        assert stages == ["Without harmonics", "With octaves", "With fifths", "With thirds"]
        pcts = [pct for _, pct in a.coverage]
        assert pcts == sorted(pcts)
        assert pcts[-1] <= 100.0
