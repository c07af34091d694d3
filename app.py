# app.py
import logging
import os
from typing import Optional

from config import AppConfig
from midi.extractor import Extraction, extract_notes
from midi.parser import join_tracks, load_midi
from notes.model import KeyTable
from notes.reduction import reduce_notes
from organ.assignment import PipeAssignor
from organ.hub import RelayHub
from organ.pipes import discover_pipes
from timeline.scheduler import PlaybackReport, Scheduler

log = logging.getLogger(__name__)

class App:
    """File -> notes -> pipe mapping -> relay pulses, start to finish."""
    def __init__(self, cfg: AppConfig, hub=None):
        self.cfg = cfg
        self.hub = hub if hub is not None else RelayHub(cfg.organ.address)
        self.extraction: Optional[Extraction] = None
        self.keys: Optional[KeyTable] = None
        self.scheduler: Optional[Scheduler] = None

    def load(self) -> Extraction:
        mid = load_midi(self.cfg.midi_path)
        log.info("Loaded %s (%d tracks, %d ticks/beat)",
                 os.path.basename(self.cfg.midi_path), len(mid.tracks), mid.ticks_per_beat)
        self.extraction = extract_notes(join_tracks(mid), mid.ticks_per_beat, self.cfg.extract)
        self.keys = KeyTable.from_notes(self.extraction.notes)
        return self.extraction

    def run(self) -> PlaybackReport:
        extraction = self.extraction or self.load()
        try:
            self.hub.connect()
            pipes = discover_pipes(self.hub.endpoints(), self.cfg.organ.max_offset)
            assignment = PipeAssignor(pipes, self.keys).run()
            notes = reduce_notes(extraction.notes, self.keys, self.cfg.reduce)
            self.scheduler = Scheduler(pipes, self.keys, self.hub, self.cfg.playback,
                                       basenote=assignment.basenote)
            return self.scheduler.play(notes)
        finally:
            self.hub.close()
