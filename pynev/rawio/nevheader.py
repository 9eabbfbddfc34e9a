"""
Fixed and extended header decoding of NEV files.

The fixed header is a single 336 byte record. It is followed by
``nb_ext_headers`` extended header records of 32 bytes each, every one of
them starting with an 8 byte ASCII tag that selects its layout.

All multi-byte integers are little-endian. The layouts are the same for
every supported file spec; versions only differ in which records appear.
"""

import enum

import numpy as np
from packaging.version import Version

from pynev.core.errors import CorruptExtendedHeaderError, UnsupportedFormatError
from pynev.core.header import (
    ExtendedHeaderInfo,
    FileHeader,
    NsasInfo,
    TrackableObject,
    VideoSyncSource,
)

from .utils import ByteCursor, decode_text

SUPPORTED_FILE_TYPE_ID = "NEURALEV"
SUPPORTED_FILE_SPECS = (Version("2.1"), Version("2.2"), Version("2.3"))

NEV_BASIC_HEADER_DTYPE = np.dtype(
    [
        # Set to "NEURALEV"
        ("file_type_id", "S8"),
        ("ver_major", "u1"),
        ("ver_minor", "u1"),
        # Flags
        ("additional_flags", "<u2"),
        # File index of first data sample
        ("bytes_in_headers", "<u4"),
        # Number of bytes per data packet (sample)
        ("bytes_in_data_packets", "<u4"),
        # Time resolution of time stamps in Hz
        ("timestamp_resolution", "<u4"),
        # Sampling frequency of waveforms in Hz
        ("sample_resolution", "<u4"),
        # year, month, weekday, day, hour, minute, second, millisecond
        ("date_time_raw", "<u2", (8,)),
        ("application_to_create_file", "V32"),
        ("comment_field", "V256"),
        # Number of extended headers
        ("nb_ext_headers", "<u4"),
    ]
)

NEV_EXT_HEADER_SIZE = 32


class ExtHeaderTag(enum.Enum):
    ARRAYNME = b"ARRAYNME"
    ECOMMENT = b"ECOMMENT"
    CCOMMENT = b"CCOMMENT"
    MAPFILE = b"MAPFILE"
    NEUEVWAV = b"NEUEVWAV"
    NEUEVLBL = b"NEUEVLBL"
    NEUEVFLT = b"NEUEVFLT"
    DIGLABEL = b"DIGLABEL"
    NSASEXEV = b"NSASEXEV"
    VIDEOSYN = b"VIDEOSYN"
    TRACKOBJ = b"TRACKOBJ"
    UNRECOGNIZED = b""

    @classmethod
    def from_raw(cls, raw):
        # "MAPFILE" is 7 characters long and NUL padded
        raw = bytes(raw).rstrip(b"\x00")
        for tag in cls:
            if tag.value == raw and tag is not cls.UNRECOGNIZED:
                return tag
        return cls.UNRECOGNIZED


_text24 = [("packet_id", "S8"), ("text", "V24")]

NEV_EXT_HEADER_TYPES = {
    ExtHeaderTag.ARRAYNME: _text24,
    ExtHeaderTag.ECOMMENT: _text24,
    ExtHeaderTag.CCOMMENT: _text24,
    ExtHeaderTag.MAPFILE: _text24,
    ExtHeaderTag.NEUEVWAV: [
        ("packet_id", "S8"),
        ("electrode_id", "<u2"),
        ("physical_connector", "u1"),
        ("connector_pin", "u1"),
        ("digitization_factor", "<u2"),
        ("energy_threshold", "<u2"),
        ("hi_threshold", "<i2"),
        ("lo_threshold", "<i2"),
        ("nb_sorted_units", "u1"),
        ("bytes_per_waveform", "u1"),
        ("spike_width", "<u2"),
        ("unused", "V8"),
    ],
    ExtHeaderTag.NEUEVLBL: [
        ("packet_id", "S8"),
        ("electrode_id", "<u2"),
        ("label", "V16"),
        ("unused", "V6"),
    ],
    ExtHeaderTag.NEUEVFLT: [
        ("packet_id", "S8"),
        ("electrode_id", "<u2"),
        ("hi_freq_corner", "<u4"),
        ("hi_freq_order", "<u4"),
        ("hi_freq_type", "<u2"),
        ("lo_freq_corner", "<u4"),
        ("lo_freq_order", "<u4"),
        ("lo_freq_type", "<u2"),
        ("unused", "V2"),
    ],
    ExtHeaderTag.DIGLABEL: [
        ("packet_id", "S8"),
        ("label", "V16"),
        ("mode", "u1"),
        ("unused", "V7"),
    ],
    ExtHeaderTag.NSASEXEV: [
        ("packet_id", "S8"),
        ("frequency", "<u2"),
        ("digital_input_config", "u1"),
        ("analog_channel_1_config", "u1"),
        ("analog_channel_1_edge_detec_val", "<u2"),
        ("analog_channel_2_config", "u1"),
        ("analog_channel_2_edge_detec_val", "<u2"),
        ("analog_channel_3_config", "u1"),
        ("analog_channel_3_edge_detec_val", "<u2"),
        ("analog_channel_4_config", "u1"),
        ("analog_channel_4_edge_detec_val", "<u2"),
        ("analog_channel_5_config", "u1"),
        ("analog_channel_5_edge_detec_val", "<u2"),
        ("unused", "V6"),
    ],
    ExtHeaderTag.VIDEOSYN: [
        ("packet_id", "S8"),
        ("video_source_id", "<u2"),
        ("video_source", "V16"),
        ("frame_rate", "<f4"),
        ("unused", "V2"),
    ],
    ExtHeaderTag.TRACKOBJ: [
        ("packet_id", "S8"),
        ("trackable_type", "<u2"),
        ("trackable_id", "<u4"),
        ("trackable_name", "V16"),
        ("unused", "V2"),
    ],
}


def read_basic_header(cursor):
    """
    Decode the fixed header at the cursor position into a :class:`FileHeader`.

    Raises :class:`UnsupportedFormatError` for a source too short to hold the
    header, a file type other than NEURALEV or a file spec outside
    ``SUPPORTED_FILE_SPECS``.
    """
    if cursor.remaining < NEV_BASIC_HEADER_DTYPE.itemsize:
        raise UnsupportedFormatError(
            f"Source holds {cursor.remaining} bytes, a NEV header needs {NEV_BASIC_HEADER_DTYPE.itemsize}"
        )
    raw = cursor.read_struct(NEV_BASIC_HEADER_DTYPE)[0]

    file_type_id = decode_text(raw["file_type_id"], encoding="ascii")
    if file_type_id != SUPPORTED_FILE_TYPE_ID:
        raise UnsupportedFormatError(f"NEV file type {file_type_id!r} is not supported")

    file_spec = Version(f"{raw['ver_major']}.{raw['ver_minor']}")
    if file_spec not in SUPPORTED_FILE_SPECS:
        supported = ", ".join(str(v) for v in SUPPORTED_FILE_SPECS)
        raise UnsupportedFormatError(f"NEV file spec {file_spec} is not supported (supported: {supported})")

    return FileHeader(
        file_type_id=file_type_id,
        file_spec=file_spec,
        additional_flags=int(raw["additional_flags"]),
        bytes_in_headers=int(raw["bytes_in_headers"]),
        bytes_in_data_packets=int(raw["bytes_in_data_packets"]),
        timestamp_resolution=int(raw["timestamp_resolution"]),
        sample_resolution=int(raw["sample_resolution"]),
        date_time_raw=tuple(int(v) for v in raw["date_time_raw"]),
        application=decode_text(raw["application_to_create_file"]),
        comment=decode_text(raw["comment_field"]),
        nb_ext_headers=int(raw["nb_ext_headers"]),
    )


def _array_text(attribute):
    def handler(record, info):
        setattr(info.array_info, attribute, decode_text(record["text"]))

    return handler


def _neuevwav(record, info):
    electrode = info.electrodes.ensure(record["electrode_id"])
    electrode.update(
        connector_bank=chr(64 + int(record["physical_connector"])),
        connector_pin=int(record["connector_pin"]),
        digital_factor=int(record["digitization_factor"]),
        energy_threshold=int(record["energy_threshold"]),
        high_threshold=int(record["hi_threshold"]),
        low_threshold=int(record["lo_threshold"]),
        units=int(record["nb_sorted_units"]),
        waveform_bytes=int(record["bytes_per_waveform"]),
        spike_width=int(record["spike_width"]),
    )


def _neuevlbl(record, info):
    electrode = info.electrodes.ensure(record["electrode_id"])
    electrode.update(label=decode_text(record["label"]))


def _neuevflt(record, info):
    electrode = info.electrodes.ensure(record["electrode_id"])
    electrode.update(
        high_freq_corner=int(record["hi_freq_corner"]),
        high_freq_order=int(record["hi_freq_order"]),
        high_filter_type=int(record["hi_freq_type"]),
        low_freq_corner=int(record["lo_freq_corner"]),
        low_freq_order=int(record["lo_freq_order"]),
        low_filter_type=int(record["lo_freq_type"]),
    )


def _diglabel(record, info):
    info.io_labels[int(record["mode"])] = decode_text(record["label"])


def _nsasexev(record, info):
    channels = range(1, 6)
    info.nsas = NsasInfo(
        frequency=int(record["frequency"]),
        digital_input_config=int(record["digital_input_config"]),
        analog_configs=tuple(int(record[f"analog_channel_{ch}_config"]) for ch in channels),
        analog_detect_values=tuple(int(record[f"analog_channel_{ch}_edge_detec_val"]) for ch in channels),
    )


def _videosyn(record, info):
    info.video_sync_sources.append(
        VideoSyncSource(
            source_id=int(record["video_source_id"]),
            source_name=decode_text(record["video_source"]),
            frame_rate=float(record["frame_rate"]),
        )
    )


def _trackobj(record, info):
    info.trackable_objects.append(
        TrackableObject(
            trackable_type=int(record["trackable_type"]),
            trackable_id=int(record["trackable_id"]),
            trackable_name=decode_text(record["trackable_name"]),
        )
    )


_ext_header_handlers = {
    ExtHeaderTag.ARRAYNME: _array_text("electrode_name"),
    ExtHeaderTag.ECOMMENT: _array_text("array_comment"),
    ExtHeaderTag.CCOMMENT: _array_text("array_comment_cont"),
    ExtHeaderTag.MAPFILE: _array_text("map_file"),
    ExtHeaderTag.NEUEVWAV: _neuevwav,
    ExtHeaderTag.NEUEVLBL: _neuevlbl,
    ExtHeaderTag.NEUEVFLT: _neuevflt,
    ExtHeaderTag.DIGLABEL: _diglabel,
    ExtHeaderTag.NSASEXEV: _nsasexev,
    ExtHeaderTag.VIDEOSYN: _videosyn,
    ExtHeaderTag.TRACKOBJ: _trackobj,
}


def read_extended_headers(cursor, nb_ext_headers):
    """
    Decode ``nb_ext_headers`` consecutive 32 byte records at the cursor position.

    Returns an :class:`ExtendedHeaderInfo`. A tag outside :class:`ExtHeaderTag`
    aborts with :class:`CorruptExtendedHeaderError`: skipping it could leave
    the following records misinterpreted.
    """
    info = ExtendedHeaderInfo()
    for i in range(int(nb_ext_headers)):
        offset = cursor.tell()
        raw = np.asarray(cursor.read(NEV_EXT_HEADER_SIZE))
        tag = ExtHeaderTag.from_raw(raw[:8])
        if tag is ExtHeaderTag.UNRECOGNIZED:
            raise CorruptExtendedHeaderError(
                f"PacketID {bytes(raw[:8])!r} of extended header {i} (offset {offset}) is invalid"
            )
        record = raw.view(NEV_EXT_HEADER_TYPES[tag])[0]
        try:
            _ext_header_handlers[tag](record, info)
        except ValueError as e:
            raise CorruptExtendedHeaderError(f"{tag.name} extended header {i} (offset {offset}): {e}") from e
    return info
