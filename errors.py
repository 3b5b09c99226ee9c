# errors.py
"""Exception types shared by the routers, parsers and the refresh loop."""


class SourceUnavailable(Exception):
    """A data source could not be read this cycle."""


class LeaseSourceError(SourceUnavailable):
    """The DHCP lease file is missing or unreadable."""


class NeighborSourceError(SourceUnavailable):
    """The neighbor command failed, exited non-zero or timed out."""


class RecordParseError(Exception):
    """One lease block or neighbor line could not be decoded.

    These are collected by the parsers rather than raised out of a parse pass.
    """

    def __init__(self, message: str, line_number: int = 0, text: str = ""):
        super().__init__(message)
        self.line_number = line_number
        self.text = text

    def __str__(self) -> str:
        base = super().__str__()
        if self.line_number:
            return f"line {self.line_number}: {base}"
        return base


class AggregationInconsistency(Exception):
    """Merged data contradicts itself. Indicates a bug, not bad input."""
