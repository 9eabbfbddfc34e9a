"""
baserawio
======

Classes
-------

BaseRawIO
abstract class which should be overridden to write a RawIO.

A RawIO gives fast access to the content of a file:
  * internal use of memmap
  * fast reading of the header (do not read the complete file)
  * the rest of the file is only decoded on request

With this API the IO has an attribute `header` filled by `_parse_header(...)`.
Reading the data goes through `read()`, which needs the header to be parsed
first.
"""

from __future__ import annotations

import logging

import numpy as np

from pynev import logging_handler


class BaseRawIO:
    """
    Generic class to handle a single file source.

    """

    name = "BaseRawIO"
    description = ""
    extensions = []

    rawmode = None  # "one-file" is the only mode

    def __init__(self, **kargs):
        """
        init docstring should be filled out at the rawio level so the user knows
        what the source argument is.

        """
        # create a logger for the IO class
        fullname = self.__class__.__module__ + "." + self.__class__.__name__
        self.logger = logging.getLogger(fullname)
        # Create a logger for 'pynev' and add a handler to it if it doesn't have one already.
        # (it will also not add one if the root logger has a handler)
        corename = self.__class__.__module__.split(".")[0]
        corelogger = logging.getLogger(corename)
        rootlogger = logging.getLogger()
        if not corelogger.handlers and not rootlogger.handlers:
            corelogger.addHandler(logging_handler)

        self.header = None
        self.is_header_parsed = False

    def parse_header(self):
        """
        Parses the header of the file to allow for faster computations
        for all other functions

        """
        self._parse_header()
        self.is_header_parsed = True

    def read(self):
        """Decode the data part of the source. :meth:`parse_header` must have been called."""
        if not self.is_header_parsed:
            raise RuntimeError(f"{self.__class__.__name__}: call parse_header() before read()")
        return self._read()

    def source_name(self):
        """Return fancy name of file source"""
        return self._source_name()

    def __repr__(self):
        txt = f"{self.__class__.__name__}: {self.source_name()}\n"
        if self.header is not None:
            txt += self._repr_header()
        return txt

    ##################

    # Functions to be implemented in IO below here

    def _parse_header(self):
        raise NotImplementedError

    def _read(self):
        raise NotImplementedError

    def _source_name(self):
        raise NotImplementedError

    def _repr_header(self):
        return ""


def pprint_vector(vector, lim: int = 8):
    vector = np.asarray(vector).astype(str)
    if vector.ndim != 1:
        raise ValueError(f"`vector` must have a dimension of 1 and not {vector.ndim}")
    if len(vector) > lim:
        part1 = ", ".join(e for e in vector[: lim // 2])
        part2 = " , ".join(e for e in vector[-lim // 2 :])
        txt = f"[{part1} ... {part2}]"
    else:
        part1 = ", ".join(e for e in vector)
        txt = f"[{part1}]"
    return txt
