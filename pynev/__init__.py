'''
pynev is a package for decoding Blackrock NEV (Neural Event) files into
numpy-backed structures: spike timestamps and waveforms, digital I/O
events with their marker strings, comments, video-sync, tracking,
patient-trigger and reconfiguration events.
'''
from pynev.version import version as __version__

import logging

logging_handler = logging.StreamHandler()

from pynev.core import *
from pynev.rawio import NevRawIO, DecodeOptions, decode
