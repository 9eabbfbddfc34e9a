"""
Exceptions raised while decoding NEV files.

Every fatal condition derives from :class:`NevReadError`, so callers that do
not care about the cause can catch a single type. A decode that raises one of
these never returns a partial result.

:class:`MarkerGrammarError` is different: it is local to one segment of the
digital marker stream and is always recovered from inside the marker parser.
"""


class NevReadError(IOError):
    """Base class of the fatal NEV decoding errors."""


class UnsupportedFormatError(NevReadError):
    """The file type id or the file spec version is not one we can decode."""


class CorruptExtendedHeaderError(NevReadError):
    """An extended header record carries a tag that is not part of the format."""


class CorruptFileError(NevReadError):
    """The event region does not hold a whole number of packets, or a read ran past the end."""


class UnknownPacketTagError(NevReadError):
    """A data packet carries a packet id outside every known class."""

    def __init__(self, packet_id, packet_index):
        self.packet_id = int(packet_id)
        self.packet_index = int(packet_index)
        super().__init__(f"Unknown packet id {self.packet_id} at packet index {self.packet_index}")


class MarkerGrammarError(ValueError):
    """A digital marker segment does not match the marker grammar."""

    def __init__(self, text, position, reason):
        self.text = text
        self.position = position
        self.reason = reason
        super().__init__(f"{reason} at position {position} in {text!r}")
