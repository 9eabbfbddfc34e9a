"""
Tests of pynev.rawio.nevrawio
"""

import logging
import unittest
import warnings

import numpy as np
import quantities as pq
from numpy.testing import assert_array_equal

import pynev
from pynev.core.errors import (
    CorruptExtendedHeaderError,
    CorruptFileError,
    UnknownPacketTagError,
    UnsupportedFormatError,
)
from pynev.core.events import DecodedNev, MarkerKind
from pynev.rawio import DecodeOptions, NevRawIO, decode
from pynev.test.rawiotest import tools

logging.getLogger().setLevel(logging.INFO)


def make_recording(packet_size=tools.PACKET_SIZE, file_spec=(2, 3)):
    samples = (np.arange((packet_size - 8) // 2) * 5 - 100).astype("int16")
    packets = [
        tools.spike_packet(100, 1, unit=1, samples=samples, packet_size=packet_size),
        tools.comment_packet(150, b"trial 1", packet_size=packet_size),
    ]
    packets += [
        tools.digital_packet(200 + 10 * i, ord(c), packet_size=packet_size)
        for i, c in enumerate("*Stim:Count=5;Duration=10;#*JuiceOff#")
    ]
    packets += [
        tools.spike_packet(900, 3, unit=0, samples=samples, packet_size=packet_size),
        tools.video_sync_packet(950, 1, 10, 333, 1, packet_size=packet_size),
        tools.tracking_packet(960, 1, 4, (1, 2, 3, 4, 5, 6, 7, 8, 9, 10), 0, packet_size=packet_size),
        tools.patient_trigger_packet(970, 1, packet_size=packet_size),
        tools.reconfig_packet(980, 1, b"cbmex", b"threshold", packet_size=packet_size),
    ]
    ext_headers = tools.default_ext_headers() + [
        tools.ext_videosyn(1, b"camera", 30.0),
        tools.ext_trackobj(2, 4, b"hand"),
    ]
    return tools.make_nev(ext_headers, packets, packet_size=packet_size, file_spec=file_spec), samples


class TestNevRawIO(unittest.TestCase):
    def setUp(self):
        self.data, self.samples = make_recording()

    def test_full_decode(self):
        nev = decode(self.data)
        self.assertIsInstance(nev, DecodedNev)
        self.assertFalse(nev.header_only)
        self.assertEqual(nev.packet_count, 2 + 37 + 5)
        self.assertEqual(nev.data_duration, 980)

        self.assertEqual(nev.header.file_spec.minor, 3)
        self.assertEqual(nev.electrodes.ids, [1, 3])
        self.assertEqual(nev.electrodes[1].label, "elec1")
        self.assertEqual(nev.array_info.electrode_name, "Utah96")
        self.assertEqual(nev.io_labels, {0: "serial", 1: "digin"})
        self.assertEqual(nev.video_sync_sources[0].source_name, "camera")
        self.assertEqual(nev.trackable_objects[0].trackable_name, "hand")

        assert_array_equal(nev.spikes.timestamps, [100, 900])
        assert_array_equal(nev.spikes.electrodes, [1, 3])
        self.assertIsNone(nev.spikes.waveforms)

        self.assertEqual(len(nev.digital_io), 37)
        self.assertIsNone(nev.digital_io.markers)
        assert_array_equal(nev.digital_io.unparsed_data[:2], [ord("*"), ord("S")])
        self.assertEqual(nev.digital_io.times[0], 200 / 30000.0 * pq.s)
        self.assertFalse(nev.has_unparsed_digital_data)

        self.assertEqual(nev.comments["comment"][0], "trial 1")
        self.assertEqual(nev.video_sync["frame_number"][0], 10)
        self.assertEqual(nev.tracking["radius3"][0], 10)
        self.assertEqual(nev.patient_triggers["trigger_type"][0], 1)
        self.assertEqual(nev.reconfig["config_changed"][0], "threshold")

    def test_packet_count_invariant(self):
        nev = decode(self.data)
        header = nev.header
        self.assertEqual(header.bytes_in_headers + nev.packet_count * header.bytes_in_data_packets, len(self.data))

    def test_decode_from_file(self):
        with tools.temp_directory() as dirname:
            filename = tools.write_temp_file(self.data, dirname)
            reader = NevRawIO(filename=filename)
            reader.parse_header()
            nev = reader.read()
            self.assertEqual(reader.source_name(), filename)
            self.assertEqual(nev.packet_count, 44)
            assert_array_equal(nev.spikes.timestamps, [100, 900])
            del reader, nev

    def test_waveforms(self):
        nev = decode(self.data, read_waveforms=True)
        self.assertEqual(nev.spikes.waveforms.shape, (2, 48))
        assert_array_equal(nev.spikes.waveforms[1], self.samples)
        self.assertEqual(nev.spikes.waveform_unit, "raw")

    def test_waveforms_uv(self):
        with self.assertWarns(RuntimeWarning):
            nev = decode(self.data, read_waveforms=True, waveform_units="uV")
        # electrode 1 digitization factor 250: divisor 4; electrode 3 factor 400: divisor 3
        assert_array_equal(nev.spikes.waveforms[0], np.trunc(self.samples / 4).astype("int16"))
        assert_array_equal(nev.spikes.waveforms[1], np.trunc(self.samples / 3).astype("int16"))
        self.assertEqual(str(nev.spikes.waveform_quantity().dimensionality), "uV")

    def test_parse_markers(self):
        nev = decode(self.data, parse_digital_markers=True)
        markers = nev.digital_io.markers
        self.assertEqual(len(markers), 2)
        self.assertEqual(markers[0].kind, MarkerKind.PARAMETER)
        self.assertEqual(markers[0].label, "Stim")
        self.assertEqual(markers[0].parameters, {"Count": "5", "Duration": "10"})
        self.assertEqual(markers[0].timestamp, 200)
        self.assertEqual(markers[0].input_type, "Serial")
        self.assertEqual(markers[1].value, "JuiceOff")
        self.assertEqual(markers[1].timestamp, 200 + 10 * 27)
        self.assertIsNone(nev.digital_io.unparsed_data)
        self.assertFalse(nev.has_unparsed_digital_data)

    def test_unparsed_markers_warn(self):
        packets = tools.digital_text_packets("*JuiceOff#*Bad@Format#")
        data = tools.make_nev([], packets)
        with self.assertWarns(RuntimeWarning):
            nev = decode(data, parse_digital_markers=True)
        self.assertTrue(nev.has_unparsed_digital_data)
        self.assertEqual(nev.digital_io.markers[1].kind, MarkerKind.UNPARSED)
        self.assertEqual(nev.digital_io.markers[1].text, "Bad@Format#")

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            nev = decode(data, options=DecodeOptions.from_flags("parse", "nowarning"))
        self.assertTrue(nev.has_unparsed_digital_data)

    def test_zero_sample_resolution(self):
        data = tools.make_nev([], tools.digital_text_packets("*JuiceOff#"), sample_resolution=0)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            plain = decode(data)
            parsed = decode(data, parse_digital_markers=True)
        self.assertTrue(np.all(np.isinf(plain.digital_io.times.magnitude)))
        self.assertEqual(parsed.digital_io.markers[0].value, "JuiceOff")
        self.assertEqual(parsed.digital_io.markers[0].time, float(parsed.digital_io.times[0].magnitude))
        self.assertTrue(np.isinf(parsed.digital_io.markers[0].time))

    def test_header_only(self):
        nev = decode(self.data, header_only=True)
        self.assertTrue(nev.header_only)
        self.assertEqual(nev.packet_count, 44)
        self.assertIsNone(nev.data_duration)
        for name in ("spikes", "digital_io", "comments", "video_sync", "tracking", "patient_triggers", "reconfig"):
            self.assertIsNone(getattr(nev, name))
        self.assertEqual(nev.electrodes.ids, [1, 3])

    def test_header_only_ignores_event_region(self):
        # trailing garbage and an unknown packet id would both fail a full decode
        data = tools.make_nev(tools.default_ext_headers(), [tools.make_packet(1, 40000)]) + b"\x01\x02\x03"
        with self.assertRaises(CorruptFileError):
            decode(data)
        nev = decode(data, header_only=True)
        self.assertEqual(nev.packet_count, 1)
        self.assertEqual(nev.electrodes[3].connector_bank, "B")

    def test_idempotence(self):
        first = decode(self.data, read_waveforms=True, parse_digital_markers=True)
        second = decode(self.data, read_waveforms=True, parse_digital_markers=True)
        self.assertEqual(first.header, second.header)
        self.assertEqual(first.packet_count, second.packet_count)
        self.assertEqual(first.electrodes.ids, second.electrodes.ids)
        self.assertEqual(list(first.electrodes), list(second.electrodes))
        assert_array_equal(first.spikes.waveforms, second.spikes.waveforms)
        assert_array_equal(first.spikes.timestamps, second.spikes.timestamps)
        self.assertEqual(first.digital_io.markers, second.digital_io.markers)
        for name in ("comments", "video_sync", "tracking", "patient_triggers", "reconfig"):
            assert_array_equal(getattr(first, name), getattr(second, name))
        self.assertIsNot(first.spikes.waveforms, second.spikes.waveforms)

    def test_unsupported_version(self):
        data, _ = make_recording(file_spec=(3, 0))
        with self.assertRaises(UnsupportedFormatError):
            decode(data)
        reader = NevRawIO(filename=data)
        with self.assertRaises(UnsupportedFormatError):
            reader.parse_header()
        self.assertFalse(reader.is_header_parsed)
        self.assertIsNone(reader.header)

    def test_corrupt_extended_header(self):
        data = tools.make_nev([tools.ext_neuevwav(1), tools.ext_text(b"XXXXXXXX", b"")], [])
        with self.assertRaises(CorruptExtendedHeaderError):
            decode(data)

    def test_unknown_packet_tag(self):
        data = tools.make_nev([], [tools.spike_packet(1, 2), tools.make_packet(2, 30000)])
        with self.assertRaises(UnknownPacketTagError) as cm:
            decode(data)
        self.assertEqual(cm.exception.packet_index, 1)

    def test_sixteen_bit_digital(self):
        data = tools.make_nev([], [tools.digital_packet(5, 0xABCD)])
        self.assertEqual(decode(data).digital_io.values[0], 0xCD)
        self.assertEqual(decode(data, digital_io_bits=16).digital_io.values[0], 0xABCD)

    def test_no_packets(self):
        nev = decode(tools.make_nev(tools.default_ext_headers(), []))
        self.assertEqual(nev.packet_count, 0)
        self.assertEqual(nev.data_duration, 0)
        self.assertEqual(len(nev.spikes), 0)
        self.assertEqual(len(nev.digital_io), 0)
        self.assertEqual(nev.comments.size, 0)

    def test_read_before_parse_header(self):
        reader = NevRawIO(filename=self.data)
        with self.assertRaises(RuntimeError):
            reader.read()

    def test_options_and_kwargs(self):
        reader = NevRawIO(filename=self.data, options=DecodeOptions(read_waveforms=True), parse_digital_markers=True)
        self.assertTrue(reader.options.read_waveforms)
        self.assertTrue(reader.options.parse_digital_markers)
        with self.assertRaises(ValueError):
            NevRawIO(filename=self.data, digital_io_bits=9)

    def test_repeated_read(self):
        reader = NevRawIO(filename=self.data, read_waveforms=True)
        reader.parse_header()
        first = reader.read()
        second = reader.read()
        self.assertIsNot(first, second)
        assert_array_equal(first.spikes.waveforms, second.spikes.waveforms)

    def test_repr(self):
        reader = NevRawIO(filename=self.data)
        self.assertIn("NevRawIO", repr(reader))
        reader.parse_header()
        txt = repr(reader)
        self.assertIn("file_spec: 2.3", txt)
        self.assertIn("electrodes: [1, 3]", txt)

    def test_logger(self):
        reader = NevRawIO(filename=self.data)
        self.assertEqual(reader.logger.name, "pynev.rawio.nevrawio.NevRawIO")
        with self.assertLogs("pynev", level="DEBUG") as cm:
            reader.parse_header()
            reader.read()
        self.assertTrue(any("packets of 104 bytes" in line for line in cm.output))

    def test_top_level_exports(self):
        self.assertIs(pynev.decode, decode)
        self.assertIs(pynev.NevRawIO, NevRawIO)
        self.assertTrue(pynev.__version__)


if __name__ == "__main__":
    unittest.main()
