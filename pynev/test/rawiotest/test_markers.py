"""
Tests of pynev.rawio.markers
"""

import unittest

import numpy as np

from pynev.core.errors import MarkerGrammarError
from pynev.core.events import MarkerKind
from pynev.rawio.markers import (
    MarkerParser,
    input_type_from_reason,
    parse_digital_markers,
    parse_segment,
    split_segments,
    tokenize,
)


def parse_text(text, reason=129, sample_resolution=30000, first_timestamp=1000, step=10):
    values = np.array([ord(c) for c in text], dtype="uint16")
    timestamps = first_timestamp + step * np.arange(len(text), dtype="uint32")
    reasons = np.full(len(text), reason, dtype="uint8")
    return parse_digital_markers(values, timestamps, reasons, sample_resolution)


class TestTokenizer(unittest.TestCase):
    def test_tokens(self):
        tokens = tokenize("Stim:Count=5;#")
        self.assertEqual(
            [(kind, value) for kind, value, _ in tokens],
            [("word", "Stim"), ("punct", ":"), ("word", "Count"), ("punct", "="), ("word", "5"), ("punct", ";"),
             ("punct", "#")],
        )
        self.assertEqual([position for _, _, position in tokens], [0, 4, 5, 10, 11, 12, 13])

    def test_words_keep_spaces(self):
        self.assertEqual(tokenize("a b=1.5 s")[0][1], "a b")

    def test_star_is_not_a_token(self):
        with self.assertRaises(MarkerGrammarError) as cm:
            tokenize("ab*c")
        self.assertEqual(cm.exception.position, 2)


class TestMarkerParser(unittest.TestCase):
    def test_parameter_record(self):
        parsed = parse_segment("Stim:Count=5;Duration=10;#")
        self.assertEqual(parsed["kind"], MarkerKind.PARAMETER)
        self.assertEqual(parsed["label"], "Stim")
        self.assertEqual(parsed["parameters"], {"Count": "5", "Duration": "10"})
        self.assertEqual(list(parsed["parameters"]), ["Count", "Duration"])

    def test_parameter_record_without_last_semicolon(self):
        parsed = parse_segment("ExpParameter:Intensity=1.02;Trials=1#")
        self.assertEqual(parsed["parameters"], {"Intensity": "1.02", "Trials": "1"})

    def test_single_marker(self):
        parsed = parse_segment("WaitSeconds=10;#")
        self.assertEqual(parsed["kind"], MarkerKind.MARKER)
        self.assertEqual(parsed["label"], "WaitSeconds")
        self.assertEqual(parsed["value"], "10")
        self.assertEqual(parsed["parameters"], {"WaitSeconds": "10"})

    def test_bare_marker(self):
        parsed = parse_segment("JuiceOff#")
        self.assertEqual(parsed["kind"], MarkerKind.MARKER)
        self.assertEqual(parsed["value"], "JuiceOff")
        self.assertIsNone(parsed["label"])
        self.assertEqual(parsed["parameters"], {})

    def test_invalid(self):
        for text in (
            "Bad@Format#",
            "",
            "JuiceOff",
            "Label:#",
            "Label:Key#",
            "Label:Key=;#",
            "Label:Key=1;#extra",
            "Name=Value#",
            "Name=Value;",
            ":Key=1;#",
            "Label:Bad Key=1;#",
        ):
            with self.assertRaises(MarkerGrammarError, msg=text):
                MarkerParser(text).parse()

    def test_error_position(self):
        with self.assertRaises(MarkerGrammarError) as cm:
            parse_segment("Label:Key=1;Other#")
        self.assertEqual(cm.exception.position, 17)
        self.assertEqual(cm.exception.text, "Label:Key=1;Other#")


class TestSplitSegments(unittest.TestCase):
    def test_split(self):
        self.assertEqual(split_segments("*A#*B=1;#"), [(0, "A#"), (3, "B=1;#")])

    def test_leading_content(self):
        self.assertEqual(split_segments("xy*A#"), [(0, "xy"), (2, "A#")])

    def test_empty(self):
        self.assertEqual(split_segments(""), [])
        self.assertEqual(split_segments("**"), [(0, ""), (1, "")])


class TestInputType(unittest.TestCase):
    def test_reason_bits(self):
        self.assertEqual(input_type_from_reason(129), "Serial")
        self.assertEqual(input_type_from_reason(64), "PerSamp")
        self.assertEqual(input_type_from_reason(2), "AnCh1")
        self.assertEqual(input_type_from_reason(32), "AnCh5")
        self.assertEqual(input_type_from_reason(1), "Digital")
        self.assertEqual(input_type_from_reason(0), "Digital")


class TestParseDigitalMarkers(unittest.TestCase):
    def test_examples(self):
        markers, has_unparsed = parse_text("*Stim:Count=5;Duration=10;#*JuiceOff#*Bad@Format#")
        self.assertTrue(has_unparsed)
        self.assertEqual(len(markers), 3)

        stim, juice, bad = markers
        self.assertEqual(stim.kind, MarkerKind.PARAMETER)
        self.assertEqual(stim.label, "Stim")
        self.assertEqual(stim.parameters, {"Count": "5", "Duration": "10"})

        self.assertEqual(juice.kind, MarkerKind.MARKER)
        self.assertEqual(juice.value, "JuiceOff")

        self.assertEqual(bad.kind, MarkerKind.UNPARSED)
        self.assertEqual(bad.text, "Bad@Format#")
        self.assertIsNone(bad.label)

    def test_timestamps_from_delimiter(self):
        text = "*Stim:Count=5;#*JuiceOff#"
        markers, has_unparsed = parse_text(text, first_timestamp=3000, step=30, sample_resolution=30000)
        self.assertFalse(has_unparsed)
        second_star = text.index("*", 1)
        self.assertEqual(markers[0].timestamp, 3000)
        self.assertAlmostEqual(markers[0].time, 0.1)
        self.assertEqual(markers[1].timestamp, 3000 + 30 * second_star)
        self.assertEqual(markers[0].input_type, "Serial")

    def test_leading_content_is_unparsed(self):
        markers, has_unparsed = parse_text("noise*JuiceOff#")
        self.assertTrue(has_unparsed)
        self.assertEqual(markers[0].kind, MarkerKind.UNPARSED)
        self.assertEqual(markers[0].text, "noise")
        self.assertEqual(markers[0].timestamp, 1000)
        self.assertEqual(markers[1].value, "JuiceOff")

    def test_no_values(self):
        markers, has_unparsed = parse_text("")
        self.assertEqual(markers, ())
        self.assertFalse(has_unparsed)


if __name__ == "__main__":
    unittest.main()
