# main.py
import sys, os
sys.path.append(os.path.dirname(__file__))  # make config.py / errors.py importable

import argparse
import logging
import re
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from app import App
from config import AppConfig, ExtractionConfig, OrganConfig, PlaybackConfig, ReductionConfig, DEFAULT_HUB
from errors import ConfigurationError, OrganError
from utils.crashlog import setup_crashlog, log_exception, log_dir

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
USAGE = ("relay-organ <file.midi> [@<tempo>] [<channel1-16>:<volume0-10>] "
         "[-ip:x.x.x.x] [-dyn] [-mute] [-verbose] [-max:#]")

_VOLUME = re.compile(r"^(\d+):(\d+(?:\.\d*)?)$")

log = logging.getLogger("main")

class _ErrorBelow(logging.Filter):
    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record):
        return record.levelno < self.level

def _init_logging(verbose: bool = False):
    root = logging.getLogger()
    if root.handlers:
        return
    root.setLevel(logging.DEBUG)

    out = logging.StreamHandler(sys.stdout)
    out.setLevel(logging.DEBUG if verbose else logging.INFO)
    out.addFilter(_ErrorBelow(logging.ERROR))
    out.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(out)

    err = logging.StreamHandler(sys.stderr)
    err.setLevel(logging.ERROR)
    err.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(err)

    try:
        fh = RotatingFileHandler(os.path.join(log_dir(), "organ.log"),
                                 maxBytes=2*1024*1024, backupCount=3, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(fh)
    except OSError as e:
        log.warning("File logging disabled: %s", e)

class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise ConfigurationError(f"{message}\nUsage: {USAGE}")

def get_parser() -> argparse.ArgumentParser:
    ap = _Parser(prog="relay-organ", usage=USAGE,
                 description="Play a MIDI file on relay-driven organ pipes.")
    ap.add_argument("midi", help="MIDI file to play")
    ap.add_argument("settings", nargs="*", default=[],
                    help="@<tempo> to force the tempo, <channel>:<volume> to set a channel volume")
    ap.add_argument("-ip", dest="address", default=DEFAULT_HUB, help="hub address")
    ap.add_argument("-max", dest="max_offset", type=int, default=99, help="ignore pipes above tune##")
    ap.add_argument("-dyn", action="store_true", help="shorten quiet notes")
    ap.add_argument("-mute", action="store_true", help="dry run, no relay pulses")
    ap.add_argument("-verbose", action="store_true", help="print every note")
    return ap

def _normalize(argv: List[str]) -> List[str]:
    # -ip:1.2.3.4 -> -ip 1.2.3.4, same for -max:
    out: List[str] = []
    for a in argv:
        for opt in ("-ip:", "-max:"):
            if a.startswith(opt):
                out.extend([opt[:-1], a[len(opt):]])
                break
        else:
            out.append(a)
    return out

def _parse_settings(tokens: List[str], extract: ExtractionConfig):
    for tok in tokens:
        if tok.startswith("@"):
            try:
                tempo = float(tok[1:])
            except ValueError:
                raise ConfigurationError(f"Bad tempo: {tok}")
            if tempo <= 0:
                raise ConfigurationError(f"Tempo must be positive: {tok}")
            extract.tempo = tempo
            continue
        m = _VOLUME.match(tok)
        if not m:
            raise ConfigurationError(f"Unexpected argument: {tok}\nUsage: {USAGE}")
        channel, volume = int(m.group(1)), float(m.group(2))
        if not 1 <= channel <= 16 or not 0 <= volume <= 10:
            raise ConfigurationError(f"Channel must be 1-16 and volume 0-10: {tok}")
        extract.channel_volumes[channel] = int(volume)

def parse_config(argv: List[str]) -> AppConfig:
    args = get_parser().parse_intermixed_args(_normalize(argv))
    extract = ExtractionConfig()
    _parse_settings(args.settings, extract)
    return AppConfig(
        midi_path=args.midi,
        extract=extract,
        organ=OrganConfig(address=args.address, max_offset=args.max_offset),
        reduce=ReductionConfig(dynamics=args.dyn),
        playback=PlaybackConfig(dry_run=args.mute, verbose=args.verbose),
    )

def main(argv: Optional[List[str]] = None, hub=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    _init_logging(verbose="-verbose" in argv)
    try:
        cfg = parse_config(argv)
        App(cfg, hub=hub).run()
    except OrganError as e:
        log.error("%s", e)
        return 1
    except Exception as e:
        path = log_exception("Top-level exception", e)
        log.error("Unexpected error, details in %s", path, exc_info=True)
        raise
    return 0

def run():
    setup_crashlog()
    sys.exit(main())

if __name__ == '__main__':
    run()
