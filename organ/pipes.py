# organ/pipes.py
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from errors import HardwareDiscoveryError

log = logging.getLogger(__name__)

MAX_PIPES = 32           # relay channels the organ hub can address
_TUNE_NAME = re.compile(r"^tune(\d+)")


@dataclass
class Pipe:
    relay: Any               # exposes delayedPulse(delay_ms, duration_ms)
    offset: int              # semitones above the organ's lowest pipe
    name: str = ""
    busy_until: int = 0      # hub clock ms, updated during playback

    def pulse(self, delay_ms: int, duration_ms: int):
        self.relay.delayedPulse(int(delay_ms), int(duration_ms))


def parse_pipe_offset(name: str) -> Optional[int]:
    """'tune07' -> 7; anything not named tune## is not a pipe."""
    m = _TUNE_NAME.match(name or "")
    return int(m.group(1)) if m else None


def discover_pipes(endpoints: Iterable[Tuple[str, Any]], max_offset: int = 99) -> List[Pipe]:
    pipes: List[Pipe] = []
    for name, relay in endpoints:
        offset = parse_pipe_offset(name)
        if offset is None:
            continue
        if offset > max_offset:
            log.info("Dropping pipe %02d", offset)
            continue
        if len(pipes) >= MAX_PIPES:
            log.warning("More than %d pipes, ignoring %s", MAX_PIPES, name)
            continue
        pipes.append(Pipe(relay=relay, offset=offset, name=name))
    if not pipes:
        raise HardwareDiscoveryError("No organ pipe found on the hub")
    log.info("Found %d pipes: %s", len(pipes), " ".join(f"{p.offset:02d}" for p in pipes))
    return pipes
