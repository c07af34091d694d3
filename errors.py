# errors.py


class OrganError(Exception):
    """Base class for fatal conditions; main() turns these into exit code 1."""


class ConfigurationError(OrganError):
    """Bad command line or unreadable input file."""


class HardwareDiscoveryError(OrganError):
    """Hub unreachable, or no usable pipe relay found on it."""


class ExtractionError(OrganError):
    """The performance file yielded nothing playable."""
