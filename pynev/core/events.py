"""
Decoded event containers.

Spikes and digital IO carry dedicated classes because they have optional
parts (waveforms, parsed markers). The auxiliary packet classes stay plain
numpy structured arrays, one record per packet (see pynev.rawio.nevpackets).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import quantities as pq

from .header import (
    ArrayInfo,
    ElectrodeTable,
    FileHeader,
    NsasInfo,
)


@dataclass(frozen=True)
class SpikeEvents:
    """
    Spike packets, one entry per spike.

    ``waveforms`` is an int16 array of shape (n_spikes, n_samples) or ``None``
    when waveforms were not requested. ``waveform_unit`` is ``"raw"`` or
    ``"uV"``; in the latter case the samples went through the integer
    conversion and lost precision.
    """

    timestamps: np.ndarray
    electrodes: np.ndarray
    units: np.ndarray
    waveforms: Optional[np.ndarray] = None
    waveform_unit: str = "raw"

    def __len__(self):
        return self.timestamps.size

    def waveform_quantity(self):
        if self.waveforms is None:
            return None
        unit = pq.uV if self.waveform_unit == "uV" else pq.dimensionless
        return pq.Quantity(self.waveforms, units=unit)


class MarkerKind(enum.Enum):
    PARAMETER = "Parameter"
    MARKER = "Marker"
    UNPARSED = "UnparsedData"


@dataclass(frozen=True)
class DigitalMarker:
    """
    One ``*``-delimited segment of the digital marker stream.

    For a parameter record (``*Label:Key=Val;Key2=Val2;#``) ``label`` is the
    label and ``parameters`` maps keys to values in order. A single marker
    (``*Name=Value;#``) sets ``label`` and ``value`` and a one-entry
    ``parameters``. A bare marker (``*Name#``) only sets ``value``. Unparsed
    segments keep their raw ``text`` only.
    """

    timestamp: int
    time: float
    input_type: str
    kind: MarkerKind
    text: str
    label: Optional[str] = None
    value: Optional[str] = None
    parameters: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DigitalIOEvents:
    """
    Digital and serial IO packets.

    ``times`` is ``timestamps`` divided by the sample resolution, in seconds.
    ``markers`` is ``None`` unless marker parsing was requested; then
    ``unparsed_data`` is ``None`` and ``has_unparsed`` tells whether any
    segment fell back to :attr:`MarkerKind.UNPARSED`.
    """

    timestamps: np.ndarray
    times: pq.Quantity
    insertion_reasons: np.ndarray
    values: np.ndarray
    markers: Optional[tuple] = None
    has_unparsed: bool = False

    def __len__(self):
        return self.timestamps.size

    @property
    def unparsed_data(self):
        if self.markers is None:
            return self.values
        return None


@dataclass(frozen=True)
class DecodedNev:
    """
    The complete result of decoding one NEV file.

    Event fields are ``None`` for a header-only decode.
    """

    header: FileHeader
    electrodes: ElectrodeTable
    array_info: ArrayInfo
    io_labels: dict
    nsas: Optional[NsasInfo]
    video_sync_sources: tuple
    trackable_objects: tuple
    packet_count: int
    data_duration: Optional[int] = None
    spikes: Optional[SpikeEvents] = None
    digital_io: Optional[DigitalIOEvents] = None
    comments: Optional[np.ndarray] = None
    video_sync: Optional[np.ndarray] = None
    tracking: Optional[np.ndarray] = None
    patient_triggers: Optional[np.ndarray] = None
    reconfig: Optional[np.ndarray] = None

    @property
    def header_only(self) -> bool:
        return self.spikes is None

    @property
    def has_unparsed_digital_data(self) -> bool:
        return self.digital_io is not None and self.digital_io.has_unparsed
