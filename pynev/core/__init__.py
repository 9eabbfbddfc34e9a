"""
:mod:`pynev.core` provides the objects a decoded NEV file is made of.

Classes:

.. autoclass:: FileHeader
.. autoclass:: ElectrodeInfo
.. autoclass:: ElectrodeTable
.. autoclass:: DecodedNev
.. autoclass:: SpikeEvents
.. autoclass:: DigitalIOEvents
.. autoclass:: DigitalMarker

"""

from pynev.core.errors import (
    NevReadError,
    UnsupportedFormatError,
    CorruptExtendedHeaderError,
    CorruptFileError,
    UnknownPacketTagError,
    MarkerGrammarError,
)
from pynev.core.header import (
    FileHeader,
    ElectrodeInfo,
    ElectrodeTable,
    ArrayInfo,
    NsasInfo,
    VideoSyncSource,
    TrackableObject,
    ExtendedHeaderInfo,
)
from pynev.core.events import (
    SpikeEvents,
    DigitalIOEvents,
    DigitalMarker,
    MarkerKind,
    DecodedNev,
)
