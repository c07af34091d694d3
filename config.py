# ========================= config.py =========================
from dataclasses import dataclass, field
from typing import Dict, Optional

DEFAULT_HUB = "192.168.1.71"

@dataclass
class ExtractionConfig:
    tempo: Optional[float] = None                    # @<tempo>, replaces file tempo
    channel_volumes: Dict[int, int] = field(default_factory=dict)  # ch -> 0..10

@dataclass
class OrganConfig:
    address: str = DEFAULT_HUB
    max_offset: int = 99              # ignore tune## relays above this

@dataclass
class ReductionConfig:
    dynamics: bool = False            # scale duration by velocity
    grace_ms: int = 10
    restrike_ms: int = 20

@dataclass
class PlaybackConfig:
    lead_in_ms: int = 100
    flush_ms: int = 25
    flush_margin_ms: int = 4
    dry_run: bool = False             # bookkeeping only, no pulses
    verbose: bool = False

@dataclass
class AppConfig:
    midi_path: str = ""
    extract: ExtractionConfig = field(default_factory=ExtractionConfig)
    organ: OrganConfig = field(default_factory=OrganConfig)
    reduce: ReductionConfig = field(default_factory=ReductionConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
