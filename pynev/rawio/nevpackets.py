"""
Event region decoding of NEV files.

The event region is a flat run of fixed size packets. Every packet starts
with the same prefix:

    bytes 0-3   timestamp (uint32)
    bytes 4-5   packet id (uint16): electrode id for spikes, a sentinel otherwise
    byte  6     unit class (spikes) or insertion reason (digital IO)
    byte  7     reserved
    bytes 8-9   inline digital value (digital IO only; 8 or 16 bits wide)

:func:`read_packet_table` copies only this prefix out of the region,
:func:`classify_packets` splits the packet indices by packet id and the
``decode_*`` functions then read the class specific payload bytes for the
indices of their class only.
"""

import enum
from dataclasses import dataclass

import numpy as np

from pynev.core.errors import CorruptFileError, UnknownPacketTagError
from pynev.core.events import SpikeEvents

from .utils import PACKET_PREFIX_SIZE, decode_text, get_packet_count


class PacketClass(enum.IntEnum):
    DIGITAL_IO = 0
    SPIKE = 1
    COMMENT = 2
    VIDEO_SYNC = 3
    TRACKING = 4
    PATIENT_TRIGGER = 5
    RECONFIG = 6
    UNRECOGNIZED = 7


# Single values indicate equality check, tuples (min, max) indicate an inclusive range check.
NEV_PACKET_IDENTIFIERS = {
    PacketClass.DIGITAL_IO: 0,
    PacketClass.SPIKE: (1, 16384),
    PacketClass.COMMENT: 0xFFFF,
    PacketClass.VIDEO_SYNC: 0xFFFE,
    PacketClass.TRACKING: 0xFFFD,
    PacketClass.PATIENT_TRIGGER: 0xFFFC,
    PacketClass.RECONFIG: 0xFFFB,
}

_packet_prefix_dtype = np.dtype(
    [
        ("timestamp", "<u4"),
        ("packet_id", "<u2"),
        ("class_or_reason", "u1"),
        ("reserved", "u1"),
        ("digital_value", "<u2"),
    ]
)

# Output record layouts of the auxiliary classes, built from the packet size like
# the text fields they hold.
NEV_EVENT_DTYPES = {
    PacketClass.COMMENT: lambda packet_size_bytes: [
        ("timestamp", "uint32"),
        ("char_set", "uint8"),
        ("flag", "uint8"),
        ("color", "uint32"),
        ("comment", f"U{max(packet_size_bytes - 12, 1)}"),
    ],
    PacketClass.VIDEO_SYNC: lambda packet_size_bytes: [
        ("timestamp", "uint32"),
        ("file_number", "uint16"),
        ("frame_number", "uint32"),
        ("elapsed_time", "uint32"),
        ("source_id", "uint32"),
    ],
    PacketClass.TRACKING: lambda packet_size_bytes: [
        ("timestamp", "uint32"),
        ("child_id", "uint16"),
        ("trackable_id", "uint32"),
        ("center_x", "uint32"),
        ("center_y", "uint32"),
        ("center_z", "uint32"),
        ("direction_x2", "uint32"),
        ("direction_y2", "uint32"),
        ("direction_z2", "uint32"),
        ("volume", "uint32"),
        ("radius1", "uint32"),
        ("radius2", "uint32"),
        ("radius3", "uint32"),
        ("obj_child_count", "uint32"),
    ],
    PacketClass.PATIENT_TRIGGER: lambda packet_size_bytes: [
        ("timestamp", "uint32"),
        ("trigger_type", "uint16"),
    ],
    PacketClass.RECONFIG: lambda packet_size_bytes: [
        ("timestamp", "uint32"),
        ("change_type", "uint16"),
        ("comp_name", "U16"),
        ("config_changed", f"U{max(packet_size_bytes - 24, 1)}"),
    ],
}

# smallest packet able to hold the payload of each class
_min_packet_size = {
    PacketClass.COMMENT: 12,
    PacketClass.VIDEO_SYNC: 20,
    PacketClass.TRACKING: 56,
    PacketClass.PATIENT_TRIGGER: 8,
    PacketClass.RECONFIG: 24,
}

CHARSET_UTF16 = 1


@dataclass(frozen=True)
class PacketTable:
    """
    The common prefix of every packet of the event region.

    ``records`` is a (count, packet_size_bytes) uint8 view over the region
    (a memmap when reading from a file); payloads are sliced from it lazily.
    """

    start: int
    packet_size_bytes: int
    count: int
    timestamps: np.ndarray
    packet_ids: np.ndarray
    class_or_reason: np.ndarray
    digital_values: np.ndarray
    records: np.ndarray

    @property
    def end(self):
        return self.start + self.count * self.packet_size_bytes

    @property
    def data_duration(self):
        """Timestamp of the last packet, 0 for an empty region."""
        if self.count == 0:
            return 0
        return int(self.timestamps[-1])

    def payload(self, indices, first_byte, last_byte=None):
        """Contiguous copy of bytes [first_byte, last_byte) of the packets at ``indices``."""
        if last_byte is None:
            last_byte = self.packet_size_bytes
        return np.ascontiguousarray(self.records[indices, first_byte:last_byte])


def read_packet_table(cursor, start, packet_size_bytes, digital_io_bits=8):
    """
    Locate the event region of ``cursor`` and extract the prefix of every packet.

    The region runs from ``start`` to the end of the source and must hold a
    whole number of packets.
    """
    count = get_packet_count(len(cursor) - int(start), packet_size_bytes)
    records = cursor.records(start, count, packet_size_bytes)

    prefix = np.ascontiguousarray(records[:, :PACKET_PREFIX_SIZE]).view(_packet_prefix_dtype)[:, 0]
    digital_values = prefix["digital_value"]
    if digital_io_bits == 8:
        digital_values = digital_values & 0xFF

    return PacketTable(
        start=int(start),
        packet_size_bytes=int(packet_size_bytes),
        count=count,
        timestamps=prefix["timestamp"].copy(),
        packet_ids=prefix["packet_id"].copy(),
        class_or_reason=prefix["class_or_reason"].copy(),
        digital_values=np.asarray(digital_values, dtype="uint16"),
        records=records,
    )


def classify_packets(packet_ids):
    """
    Partition packet indices by :class:`PacketClass`.

    Returns a dict mapping every known class to the sorted array of indices
    whose packet id falls in that class. The partitions are disjoint and
    cover every index; a packet id outside all classes raises
    :class:`UnknownPacketTagError`.
    """
    packet_ids = np.asarray(packet_ids)
    masks = {}
    for packet_class, packet_id_spec in NEV_PACKET_IDENTIFIERS.items():
        if isinstance(packet_id_spec, tuple):
            min_val, max_val = packet_id_spec
            masks[packet_class] = (min_val <= packet_ids) & (packet_ids <= max_val)
        else:
            masks[packet_class] = packet_ids == packet_id_spec

    known = np.zeros(packet_ids.shape, dtype=bool)
    for mask in masks.values():
        known |= mask
    unknown = np.flatnonzero(~known)
    if unknown.size > 0:
        raise UnknownPacketTagError(packet_ids[unknown[0]], unknown[0])

    return {packet_class: np.flatnonzero(mask) for packet_class, mask in masks.items()}


def _check_packet_size(table, packet_class, indices):
    needed = _min_packet_size[packet_class]
    if indices.size > 0 and table.packet_size_bytes < needed:
        raise CorruptFileError(
            f"{packet_class.name} packets need at least {needed} bytes, packet size is {table.packet_size_bytes}"
        )


def _empty_events(packet_class, table):
    return np.zeros(0, dtype=NEV_EVENT_DTYPES[packet_class](table.packet_size_bytes))


def _field(payload, first_byte, dtype):
    """Reinterpret ``payload[:, first_byte:first_byte + itemsize]`` as one little-endian value per row."""
    dtype = np.dtype(dtype)
    chunk = np.ascontiguousarray(payload[:, first_byte : first_byte + dtype.itemsize])
    return chunk.view(dtype)[:, 0]


def waveform_divisors(digital_factors):
    """
    Per spike divisor turning raw samples into microvolts: ``1000 / digital_factor``
    stored as int16 (rounded half away from zero, saturating). An unknown
    electrode (factor 0) saturates.
    """
    factors = np.asarray(digital_factors, dtype="float64")
    with np.errstate(divide="ignore"):
        ratio = 1000.0 / factors
    divisors = np.sign(ratio) * np.floor(np.abs(ratio) + 0.5)
    divisors = np.clip(divisors, np.iinfo("int16").min, np.iinfo("int16").max)
    divisors[divisors == 0] = 1
    return divisors.astype("int16")


def convert_waveforms_to_uv(waveforms, divisors):
    """Divide each spike's samples by its divisor, truncating toward zero and staying int16."""
    divisors = np.asarray(divisors, dtype="int32")[:, np.newaxis]
    quotient = np.trunc(waveforms.astype("int32") / divisors)
    return quotient.astype("int16")


def decode_spikes(table, indices, electrodes, read_waveforms=False, waveform_units="raw"):
    """
    Spike packets: timestamp, electrode id (the packet id) and unit class.

    Waveform samples are the int16 values following the 8 byte prefix, read
    only when ``read_waveforms`` is set. With ``waveform_units="uV"`` they are
    scaled by the electrode digitization factors of ``electrodes``.
    """
    spike_electrodes = table.packet_ids[indices]
    waveforms = None
    if read_waveforms:
        n_samples = (table.packet_size_bytes - 8) // 2
        payload = table.payload(indices, 8, 8 + 2 * n_samples)
        waveforms = payload.view("<i2").reshape(indices.size, n_samples).astype("int16")
        if waveform_units == "uV":
            divisors = waveform_divisors(electrodes.digital_factors(spike_electrodes))
            waveforms = convert_waveforms_to_uv(waveforms, divisors)

    return SpikeEvents(
        timestamps=table.timestamps[indices],
        electrodes=spike_electrodes,
        units=table.class_or_reason[indices],
        waveforms=waveforms,
        waveform_unit=waveform_units,
    )


def decode_comments(table, indices):
    packet_class = PacketClass.COMMENT
    _check_packet_size(table, packet_class, indices)
    events = np.zeros(indices.size, dtype=NEV_EVENT_DTYPES[packet_class](table.packet_size_bytes))
    if indices.size == 0:
        return events
    payload = table.payload(indices, 0)
    events["timestamp"] = table.timestamps[indices]
    events["char_set"] = payload[:, 6]
    events["flag"] = payload[:, 7]
    events["color"] = _field(payload, 8, "<u4")
    for i, (char_set, text) in enumerate(zip(events["char_set"], payload[:, 12:])):
        encoding = "utf-16-le" if char_set == CHARSET_UTF16 else "latin-1"
        events["comment"][i] = decode_text(text, encoding=encoding)
    return events


def decode_video_sync(table, indices):
    packet_class = PacketClass.VIDEO_SYNC
    _check_packet_size(table, packet_class, indices)
    if indices.size == 0:
        return _empty_events(packet_class, table)
    payload = table.payload(indices, 0, 20)
    events = np.zeros(indices.size, dtype=NEV_EVENT_DTYPES[packet_class](table.packet_size_bytes))
    events["timestamp"] = table.timestamps[indices]
    events["file_number"] = _field(payload, 6, "<u2")
    events["frame_number"] = _field(payload, 8, "<u4")
    events["elapsed_time"] = _field(payload, 12, "<u4")
    events["source_id"] = _field(payload, 16, "<u4")
    return events


_tracking_geometry_fields = (
    "center_x",
    "center_y",
    "center_z",
    "direction_x2",
    "direction_y2",
    "direction_z2",
    "volume",
    "radius1",
    "radius2",
    "radius3",
)


def decode_tracking(table, indices):
    packet_class = PacketClass.TRACKING
    _check_packet_size(table, packet_class, indices)
    if indices.size == 0:
        return _empty_events(packet_class, table)
    payload = table.payload(indices, 0, 56)
    events = np.zeros(indices.size, dtype=NEV_EVENT_DTYPES[packet_class](table.packet_size_bytes))
    events["timestamp"] = table.timestamps[indices]
    events["child_id"] = _field(payload, 6, "<u2")
    events["trackable_id"] = _field(payload, 8, "<u4")
    for i, name in enumerate(_tracking_geometry_fields):
        events[name] = _field(payload, 12 + 4 * i, "<u4")
    events["obj_child_count"] = _field(payload, 52, "<u4")
    return events


def decode_patient_triggers(table, indices):
    packet_class = PacketClass.PATIENT_TRIGGER
    _check_packet_size(table, packet_class, indices)
    if indices.size == 0:
        return _empty_events(packet_class, table)
    payload = table.payload(indices, 0, 8)
    events = np.zeros(indices.size, dtype=NEV_EVENT_DTYPES[packet_class](table.packet_size_bytes))
    events["timestamp"] = table.timestamps[indices]
    events["trigger_type"] = _field(payload, 6, "<u2")
    return events


def decode_reconfig(table, indices):
    packet_class = PacketClass.RECONFIG
    _check_packet_size(table, packet_class, indices)
    events = np.zeros(indices.size, dtype=NEV_EVENT_DTYPES[packet_class](table.packet_size_bytes))
    if indices.size == 0:
        return events
    payload = table.payload(indices, 0)
    events["timestamp"] = table.timestamps[indices]
    events["change_type"] = _field(payload, 6, "<u2")
    for i, row in enumerate(payload):
        events["comp_name"][i] = decode_text(row[8:24])
        events["config_changed"][i] = decode_text(row[24:])
    return events
