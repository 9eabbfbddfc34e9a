"""
Header-level objects of a decoded NEV file.

:class:`FileHeader` mirrors the fixed 336 byte header. The extended header
records populate an :class:`ElectrodeTable` of :class:`ElectrodeInfo`, a
single :class:`ArrayInfo`, the digital IO labels, an optional
:class:`NsasInfo` and the lists of :class:`VideoSyncSource` and
:class:`TrackableObject`.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, fields
from typing import Optional

import numpy as np
import quantities as pq
from packaging.version import Version


@dataclass(frozen=True)
class FileHeader:
    """
    The fixed leading header of a NEV file.

    Text fields are already truncated at their first NUL byte.
    ``date_time_raw`` holds the eight uint16 timestamp components in file order:
    year, month, weekday, day, hour, minute, second, millisecond.
    """

    file_type_id: str
    file_spec: Version
    additional_flags: int
    bytes_in_headers: int
    bytes_in_data_packets: int
    timestamp_resolution: int
    sample_resolution: int
    date_time_raw: tuple
    application: str
    comment: str
    nb_ext_headers: int

    @property
    def ver_major(self) -> int:
        return self.file_spec.major

    @property
    def ver_minor(self) -> int:
        return self.file_spec.minor

    @property
    def waveforms_are_16bit(self) -> bool:
        # bit 0 of the flags forces 16 bit waveforms for every electrode
        return bool(self.additional_flags & 1)

    @property
    def timestamp_rate(self):
        return self.timestamp_resolution * pq.Hz

    @property
    def sampling_rate(self):
        return self.sample_resolution * pq.Hz

    @property
    def rec_datetime(self) -> Optional[datetime.datetime]:
        """
        The recording start, or None when the raw components do not form a
        valid date.
        """
        year, month, _, day, hour, minute, second, millisecond = self.date_time_raw
        try:
            return datetime.datetime(
                year=year,
                month=month,
                day=day,
                hour=hour,
                minute=minute,
                second=second,
                microsecond=millisecond * 1000,
            )
        except ValueError:
            return None

    @property
    def date_time_string(self) -> str:
        year, month, weekday, day, hour, minute, second, millisecond = self.date_time_raw
        # the stored weekday counts from Sunday = 0
        if weekday < len(_weekday_names):
            weekday = _weekday_names[weekday]
        return f"{month}/{day}/{year} {weekday} {hour}:{minute}:{second}.{millisecond}"


_weekday_names = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass
class ElectrodeInfo:
    """
    Configuration of one electrode, merged from the NEUEVWAV, NEUEVLBL and
    NEUEVFLT extended headers. Fields stay ``None`` until a record sets them.
    """

    electrode_id: int
    connector_bank: Optional[str] = None
    connector_pin: Optional[int] = None
    digital_factor: Optional[int] = None
    energy_threshold: Optional[int] = None
    high_threshold: Optional[int] = None
    low_threshold: Optional[int] = None
    units: Optional[int] = None
    waveform_bytes: Optional[int] = None
    spike_width: Optional[int] = None
    label: Optional[str] = None
    high_freq_corner: Optional[int] = None
    high_freq_order: Optional[int] = None
    high_filter_type: Optional[int] = None
    low_freq_corner: Optional[int] = None
    low_freq_order: Optional[int] = None
    low_filter_type: Optional[int] = None

    def update(self, **values):
        for name, value in values.items():
            if name not in _electrode_field_names:
                raise AttributeError(f"ElectrodeInfo has no field {name!r}")
            setattr(self, name, value)


_electrode_field_names = {f.name for f in fields(ElectrodeInfo)}


class ElectrodeTable:
    """
    Electrode configurations indexed directly by their 1-based electrode id.

    Ids can be sparse: the table is grown to the highest id seen and holes
    stay ``None``, so lookup by id is a plain list index.
    """

    def __init__(self):
        self._slots = [None]

    def __len__(self):
        return sum(1 for info in self._slots if info is not None)

    def __iter__(self):
        return (info for info in self._slots if info is not None)

    def __contains__(self, electrode_id):
        return self.get(electrode_id) is not None

    def __getitem__(self, electrode_id):
        info = self.get(electrode_id)
        if info is None:
            raise KeyError(electrode_id)
        return info

    def __repr__(self):
        return f"ElectrodeTable(ids={self.ids})"

    @property
    def max_id(self) -> int:
        return len(self._slots) - 1

    @property
    def ids(self) -> list:
        return [info.electrode_id for info in self]

    def get(self, electrode_id, default=None):
        electrode_id = int(electrode_id)
        if 0 < electrode_id < len(self._slots):
            info = self._slots[electrode_id]
            if info is not None:
                return info
        return default

    def ensure(self, electrode_id) -> ElectrodeInfo:
        """Return the entry for ``electrode_id``, creating it (and growing the table) on first sight."""
        electrode_id = int(electrode_id)
        if electrode_id < 1:
            raise ValueError(f"Electrode ids are 1-based, got {electrode_id}")
        if electrode_id >= len(self._slots):
            self._slots.extend([None] * (electrode_id + 1 - len(self._slots)))
        if self._slots[electrode_id] is None:
            self._slots[electrode_id] = ElectrodeInfo(electrode_id=electrode_id)
        return self._slots[electrode_id]

    def digital_factors(self, electrode_ids):
        """Vector of digitization factors for ``electrode_ids``, 0 where an id is unknown."""
        lookup = np.zeros(len(self._slots), dtype="int64")
        for info in self:
            if info.digital_factor is not None:
                lookup[info.electrode_id] = info.digital_factor
        electrode_ids = np.asarray(electrode_ids, dtype="int64")
        factors = np.zeros(electrode_ids.shape, dtype="int64")
        known = electrode_ids < len(lookup)
        factors[known] = lookup[electrode_ids[known]]
        return factors


@dataclass
class ArrayInfo:
    electrode_name: Optional[str] = None
    array_comment: Optional[str] = None
    array_comment_cont: Optional[str] = None
    map_file: Optional[str] = None


@dataclass(frozen=True)
class NsasInfo:
    """Digital and analog input configuration of the NSAS (NSASEXEV) record."""

    frequency: int
    digital_input_config: int
    analog_configs: tuple
    analog_detect_values: tuple


@dataclass(frozen=True)
class VideoSyncSource:
    source_id: int
    source_name: str
    frame_rate: float


@dataclass(frozen=True)
class TrackableObject:
    trackable_type: int
    trackable_id: int
    trackable_name: str


@dataclass
class ExtendedHeaderInfo:
    """Everything the extended header records describe, accumulated in file order."""

    electrodes: ElectrodeTable = field(default_factory=ElectrodeTable)
    array_info: ArrayInfo = field(default_factory=ArrayInfo)
    io_labels: dict = field(default_factory=dict)
    nsas: Optional[NsasInfo] = None
    video_sync_sources: list = field(default_factory=list)
    trackable_objects: list = field(default_factory=list)
