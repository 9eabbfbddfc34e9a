"""
Module for reading Blackrock NEV (Neural Event) files.

This IO supports reading only.
This IO is able to read the nev file which contains:
  * spikes (packet ids 1 - 16384), optionally with their waveforms
  * digital and serial IO events, optionally parsed into text markers
  * comments
  * video sync, tracking, patient trigger and reconfiguration events

This IO can handle the following NEV file specifications:
  * 2.1
  * 2.2
  * 2.3

The neural data channels are 1 - 128.
The analog inputs are 129 - 144. (129 - 137 AC coupled, 138 - 144 DC coupled)

The decode runs in two steps: `parse_header()` reads the fixed and extended
headers, `read()` reads the event region. A header only decode never touches
the event region.
"""

import copy
import warnings

import quantities as pq

from pynev.core.events import DecodedNev, DigitalIOEvents

from .baserawio import BaseRawIO, pprint_vector
from .markers import parse_digital_markers
from .nevheader import read_basic_header, read_extended_headers
from .nevpackets import (
    PacketClass,
    classify_packets,
    decode_comments,
    decode_patient_triggers,
    decode_reconfig,
    decode_spikes,
    decode_tracking,
    decode_video_sync,
    read_packet_table,
)
from .options import DecodeOptions
from .utils import ByteCursor, open_source

_auxiliary_decoders = {
    PacketClass.COMMENT: ("comments", decode_comments),
    PacketClass.VIDEO_SYNC: ("video_sync", decode_video_sync),
    PacketClass.TRACKING: ("tracking", decode_tracking),
    PacketClass.PATIENT_TRIGGER: ("patient_triggers", decode_patient_triggers),
    PacketClass.RECONFIG: ("reconfig", decode_reconfig),
}


class NevRawIO(BaseRawIO):
    """
    Class for reading a Blackrock NEV file.

    Parameters
    ----------
    filename: str | Path | bytes
        Path of the .nev file, or its whole content as a bytes-like object
    options: DecodeOptions | None, default: None
        Options of the decode, the defaults when None
    **kwargs:
        Individual DecodeOptions fields, applied on top of `options`

    Examples
    --------
    >>> reader = NevRawIO(filename="FileSpec2.3001.nev", read_waveforms=True)
    >>> reader.parse_header()
    >>> nev = reader.read()
    >>> nev.spikes.waveforms.shape
    """

    extensions = ["nev"]
    rawmode = "one-file"
    name = "NevRawIO"
    description = "This IO reads .nev files of the Blackrock (Cerebus) recording system."

    def __init__(self, filename=None, options=None, **kwargs):
        BaseRawIO.__init__(self)
        if options is None:
            options = DecodeOptions(**kwargs)
        elif kwargs:
            options = options.replace(**kwargs)
        self.filename = filename
        self.options = options

    def _source_name(self):
        if isinstance(self.filename, (bytes, bytearray, memoryview)):
            return f"<{len(bytes(self.filename))} bytes>"
        return str(self.filename)

    def _parse_header(self):
        self._buffer = open_source(self.filename)
        cursor = ByteCursor(self._buffer)

        file_header = read_basic_header(cursor)
        ext_header = read_extended_headers(cursor, file_header.nb_ext_headers)
        self.logger.debug(
            f"NEV file spec {file_header.file_spec}: {file_header.nb_ext_headers} extended headers, "
            f"{len(ext_header.electrodes)} electrodes"
        )

        self.header = {
            "file": file_header,
            "extended": ext_header,
        }

    def _repr_header(self):
        file_header = self.header["file"]
        electrodes = self.header["extended"].electrodes
        txt = f"file_spec: {file_header.file_spec}\n"
        txt += f"sampling_rate: {file_header.sampling_rate}\n"
        txt += f"electrodes: {pprint_vector(electrodes.ids)}\n"
        return txt

    def _read(self):
        file_header = self.header["file"]
        ext_header = self.header["extended"]
        options = self.options
        start = file_header.bytes_in_headers
        packet_size_bytes = file_header.bytes_in_data_packets

        result = dict(
            header=file_header,
            electrodes=copy.deepcopy(ext_header.electrodes),
            array_info=copy.deepcopy(ext_header.array_info),
            io_labels=dict(ext_header.io_labels),
            nsas=ext_header.nsas,
            video_sync_sources=tuple(ext_header.video_sync_sources),
            trackable_objects=tuple(ext_header.trackable_objects),
        )

        if options.header_only:
            # packet count from the source length only, the region is left unread
            region_length = max(self._buffer.size - start, 0)
            result["packet_count"] = region_length // packet_size_bytes if packet_size_bytes > 0 else 0
            return DecodedNev(**result)

        cursor = ByteCursor(self._buffer)
        table = read_packet_table(cursor, start, packet_size_bytes, digital_io_bits=options.digital_io_bits)
        partition = classify_packets(table.packet_ids)
        self.logger.debug(
            f"{table.count} packets of {packet_size_bytes} bytes: "
            + ", ".join(f"{packet_class.name}={indices.size}" for packet_class, indices in partition.items())
        )

        spike_indices = partition[PacketClass.SPIKE]
        if options.waveform_units == "uV" and options.read_waveforms and spike_indices.size > 0 and options.warnings:
            warnings.warn(
                "Waveforms are converted to uV with integer arithmetic, this conversion loses precision.",
                RuntimeWarning,
            )
        result["spikes"] = decode_spikes(
            table,
            spike_indices,
            ext_header.electrodes,
            read_waveforms=options.read_waveforms,
            waveform_units=options.waveform_units,
        )
        result["digital_io"] = self._decode_digital_io(table, partition[PacketClass.DIGITAL_IO])

        for packet_class, (key, decoder) in _auxiliary_decoders.items():
            result[key] = decoder(table, partition[packet_class])

        result["packet_count"] = table.count
        result["data_duration"] = table.data_duration
        return DecodedNev(**result)

    def _decode_digital_io(self, table, indices):
        sample_resolution = self.header["file"].sample_resolution
        timestamps = table.timestamps[indices]
        reasons = table.class_or_reason[indices]
        values = table.digital_values[indices]
        times = (timestamps / float(sample_resolution)) * pq.s

        if not self.options.parse_digital_markers:
            return DigitalIOEvents(timestamps=timestamps, times=times, insertion_reasons=reasons, values=values)

        markers, has_unparsed = parse_digital_markers(values, timestamps, reasons, sample_resolution)
        self.logger.debug(f"{len(markers)} digital marker segments parsed")
        if has_unparsed and self.options.warnings:
            warnings.warn("The NEV file contains unparsed digital data.", RuntimeWarning)
        return DigitalIOEvents(
            timestamps=timestamps,
            times=times,
            insertion_reasons=reasons,
            values=values,
            markers=markers,
            has_unparsed=has_unparsed,
        )


def decode(source, options=None, **kwargs):
    """
    Decode a whole NEV file.

    Parameters
    ----------
    source: str | Path | bytes
        Path of the .nev file or its content
    options: DecodeOptions | None
        Options of the decode
    **kwargs:
        Individual DecodeOptions fields

    Returns
    -------
    DecodedNev
    """
    reader = NevRawIO(filename=source, options=options, **kwargs)
    reader.parse_header()
    return reader.read()
