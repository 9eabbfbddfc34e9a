"""
Options of a NEV decode.

:class:`DecodeOptions` is immutable and handed to the reader once; every
stage receives it by parameter.
"""

from dataclasses import dataclass, replace

waveform_unit_choices = ("raw", "uV")
digital_io_bit_choices = (8, 16)

# openNEV style string flags
_flag_table = {
    "headeronly": ("header_only", True),
    "read": ("read_waveforms", True),
    "noread": ("read_waveforms", False),
    "parse": ("parse_digital_markers", True),
    "noparse": ("parse_digital_markers", False),
    "uv": ("waveform_units", "uV"),
    "raw": ("waveform_units", "raw"),
    "8bits": ("digital_io_bits", 8),
    "16bits": ("digital_io_bits", 16),
    "warning": ("warnings", True),
    "nowarning": ("warnings", False),
}


@dataclass(frozen=True)
class DecodeOptions:
    """
    Parameters
    ----------
    header_only: bool, default: False
        Decode the fixed and extended headers only; the event region is not read.
    read_waveforms: bool, default: False
        Materialize the spike waveform samples.
    parse_digital_markers: bool, default: False
        Run the marker grammar over the digital IO values.
    digital_io_bits: 8 | 16, default: 8
        Width of the inline digital value of digital IO packets.
    waveform_units: "raw" | "uV", default: "raw"
        Keep raw samples or convert them to microvolts (lossy integer conversion).
    warnings: bool, default: True
        Emit a RuntimeWarning for unparsed digital data and lossy waveform conversion.
    """

    header_only: bool = False
    read_waveforms: bool = False
    parse_digital_markers: bool = False
    digital_io_bits: int = 8
    waveform_units: str = "raw"
    warnings: bool = True

    def __post_init__(self):
        if self.digital_io_bits not in digital_io_bit_choices:
            raise ValueError(f"digital_io_bits must be one of {digital_io_bit_choices}, not {self.digital_io_bits!r}")
        if self.waveform_units not in waveform_unit_choices:
            raise ValueError(f"waveform_units must be one of {waveform_unit_choices}, not {self.waveform_units!r}")

    @classmethod
    def from_flags(cls, *flags, **kwargs):
        """
        Build options from openNEV style string flags, e.g.
        ``DecodeOptions.from_flags("read", "parse", "uV", "16bits")``.
        Keyword arguments are applied after the flags.
        """
        values = {}
        for flag in flags:
            try:
                name, value = _flag_table[flag.lower()]
            except KeyError:
                raise ValueError(f"Invalid argument {flag!r}") from None
            values[name] = value
        values.update(kwargs)
        return cls(**values)

    def replace(self, **changes):
        return replace(self, **changes)
