"""
:mod:`pynev.rawio` provides the reader of Blackrock NEV files.

Functions:

.. autofunction:: pynev.rawio.decode


Classes:

* :attr:`NevRawIO`
* :attr:`DecodeOptions`

"""

from pynev.rawio.options import DecodeOptions
from pynev.rawio.nevrawio import NevRawIO, decode
