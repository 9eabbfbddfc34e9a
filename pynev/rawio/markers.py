"""
Parser of the text markers embedded in the digital IO stream.

Acquisition software can send text through the serial/digital port one
character per packet. Three record forms are understood, each opened by
``*`` and closed by ``#``::

    *ParamLabel:Parameter1=value1;Parameter2=value2;#    parameter record
    *MarkerName=Value;#                                  single marker
    *MarkerValue#                                        bare marker

for example ``*Stimulation:StimCount=5;Duration=10;#``, ``*JuiceStatus=ON;#``
or ``*JuiceOff#``. Labels, names and keys are made of letters, digits and
underscores; values may hold any character except ``:=;#*``. Values are kept
as strings.

The stream is split on ``*`` and every segment is parsed on its own, so a
malformed segment only turns itself into an ``UnparsedData`` record.
"""

import logging
import re

import numpy as np

from pynev.core.errors import MarkerGrammarError
from pynev.core.events import DigitalMarker, MarkerKind

logger = logging.getLogger(__name__)

SEGMENT_DELIMITER = "*"
RECORD_TERMINATOR = "#"

_token_pat = re.compile(r"(?P<punct>[:=;#])|(?P<word>[^:=;#*]+)")
_ident_pat = re.compile(r"[A-Za-z0-9_]+")

# (bit of the insertion reason, input name), highest priority first
_input_type_bits = (
    (7, "Serial"),
    (6, "PerSamp"),
    (5, "AnCh5"),
    (4, "AnCh4"),
    (3, "AnCh3"),
    (2, "AnCh2"),
    (1, "AnCh1"),
    (0, "Digital"),
)


def input_type_from_reason(reason):
    """Name of the input that produced a digital IO packet, from its insertion reason bits."""
    reason = int(reason)
    for bit, name in _input_type_bits:
        if reason & (1 << bit):
            return name
    return "Digital"


def tokenize(text):
    """
    Split a segment into ``(kind, value, position)`` tuples, ``kind`` being
    ``"punct"`` or ``"word"``.
    """
    tokens = []
    position = 0
    while position < len(text):
        match = _token_pat.match(text, position)
        if match is None:
            raise MarkerGrammarError(text, position, f"unexpected character {text[position]!r}")
        tokens.append((match.lastgroup, match.group(), position))
        position = match.end()
    return tokens


class MarkerParser:
    """
    Recursive descent parser of one ``*``-delimited segment (without the ``*``).

    :meth:`parse` returns a dict with ``kind``, ``label``, ``value`` and
    ``parameters`` or raises :class:`MarkerGrammarError`.
    """

    def __init__(self, text):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    def _peek(self):
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _position(self):
        token = self._peek()
        return len(self.text) if token is None else token[2]

    def _error(self, reason):
        return MarkerGrammarError(self.text, self._position(), reason)

    def _next(self):
        token = self._peek()
        if token is None:
            raise self._error("unexpected end of segment")
        self.index += 1
        return token

    def _accept(self, punct):
        token = self._peek()
        if token is not None and token[0] == "punct" and token[1] == punct:
            self.index += 1
            return True
        return False

    def _expect(self, punct):
        if not self._accept(punct):
            raise self._error(f"expected {punct!r}")

    def _ident(self, what):
        kind, value, _ = self._next()
        if kind != "word" or _ident_pat.fullmatch(value) is None:
            self.index -= 1
            raise self._error(f"invalid {what} {value!r}")
        return value

    def _word(self, what):
        kind, value, _ = self._next()
        if kind != "word":
            self.index -= 1
            raise self._error(f"expected {what}, got {value!r}")
        return value

    def _end(self):
        if self._peek() is not None:
            raise self._error(f"trailing data after {RECORD_TERMINATOR!r}")

    def parse(self):
        name = self._ident("label")

        if self._accept(":"):
            parameters = self._parameter_list()
            self._end()
            return dict(kind=MarkerKind.PARAMETER, label=name, value=None, parameters=parameters)

        if self._accept("="):
            value = self._word("value")
            self._expect(";")
            self._expect(RECORD_TERMINATOR)
            self._end()
            return dict(kind=MarkerKind.MARKER, label=name, value=value, parameters={name: value})

        self._expect(RECORD_TERMINATOR)
        self._end()
        return dict(kind=MarkerKind.MARKER, label=None, value=name, parameters={})

    def _parameter_list(self):
        parameters = {}
        while True:
            key = self._ident("parameter name")
            self._expect("=")
            parameters[key] = self._word("parameter value")
            if self._accept(RECORD_TERMINATOR):
                return parameters
            self._expect(";")
            if self._accept(RECORD_TERMINATOR):
                return parameters


def parse_segment(text):
    return MarkerParser(text).parse()


def split_segments(characters):
    """
    Split the character stream on ``*``.

    Returns ``(event_index, text)`` pairs where ``event_index`` is the index of
    the digital event that opened the segment: the ``*`` itself, or the first
    event for content preceding the first ``*``.
    """
    segments = []
    start_index = 0
    current = []
    for i, char in enumerate(characters):
        if char == SEGMENT_DELIMITER:
            if i > 0:
                segments.append((start_index, "".join(current)))
            start_index = i
            current = []
        else:
            current.append(char)
    if characters:
        segments.append((start_index, "".join(current)))
    return segments


def parse_digital_markers(values, timestamps, insertion_reasons, sample_resolution):
    """
    Run the marker grammar over the digital IO values.

    Parameters
    ----------
    values: array of uint
        Inline digital values, one character each.
    timestamps, insertion_reasons: arrays
        Prefix fields of the same packets.
    sample_resolution: int
        Clock of the timestamps in Hz, for the ``time`` of each marker.

    Returns
    -------
    markers: tuple of DigitalMarker
    has_unparsed: bool
        True when at least one segment did not match the grammar.
    """
    characters = "".join(chr(v) for v in np.asarray(values, dtype="int64"))
    markers = []
    has_unparsed = False
    # same float division as DigitalIOEvents.times, a zero resolution gives inf
    times = np.asarray(timestamps) / float(sample_resolution)
    for event_index, text in split_segments(characters):
        timestamp = int(timestamps[event_index])
        common = dict(
            timestamp=timestamp,
            time=float(times[event_index]),
            input_type=input_type_from_reason(insertion_reasons[event_index]),
            text=text,
        )
        try:
            parsed = parse_segment(text)
        except MarkerGrammarError as e:
            logger.debug(f"Digital segment {len(markers)} left unparsed: {e}")
            has_unparsed = True
            markers.append(DigitalMarker(kind=MarkerKind.UNPARSED, **common))
            continue
        markers.append(DigitalMarker(**parsed, **common))
    return tuple(markers), has_unparsed
