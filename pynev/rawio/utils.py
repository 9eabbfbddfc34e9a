import os

import numpy as np

from pynev.core.errors import CorruptFileError

# timestamp, packet id, class/reason byte, reserved byte, inline digital value
PACKET_PREFIX_SIZE = 10


def open_source(source):
    """
    Return the whole of ``source`` as a 1-D uint8 array.

    A filesystem path is memory mapped (read-only), a bytes-like object is
    wrapped without copy.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return np.frombuffer(source, dtype="uint8")
    filename = os.fspath(source)
    if get_file_size(filename) == 0:
        # np.memmap refuses empty files
        return np.zeros(0, dtype="uint8")
    return np.memmap(filename, dtype="uint8", mode="r")


def get_file_size(filename):
    """
    Returns the file size in bytes for the given file.
    """
    with open(filename, mode="rb") as f:
        f.seek(0, os.SEEK_END)
        return int(f.tell())


def get_packet_count(region_length, packet_size_bytes):
    """
    Number of fixed size packets in an event region of ``region_length`` bytes.

    The region must hold a whole number of packets and every packet must be
    large enough for the common prefix.
    """
    region_length = int(region_length)
    packet_size_bytes = int(packet_size_bytes)
    if packet_size_bytes < PACKET_PREFIX_SIZE:
        raise CorruptFileError(
            f"Packet size of {packet_size_bytes} bytes is smaller than the {PACKET_PREFIX_SIZE} byte packet prefix"
        )
    if region_length < 0:
        raise CorruptFileError("Event region starts after the end of the file")
    count, remainder = divmod(region_length, packet_size_bytes)
    if remainder != 0:
        raise CorruptFileError(
            f"Size of event region ({region_length} bytes) is not a multiple of the packet size ({packet_size_bytes} bytes)"
        )
    return count


def decode_text(raw, encoding="latin-1"):
    """Decode a fixed length NUL padded byte field, keeping what precedes the first NUL."""
    raw = bytes(raw)
    if encoding.startswith("utf-16"):
        # code units are two bytes wide, look for an aligned NUL pair
        for i in range(0, len(raw) - 1, 2):
            if raw[i : i + 2] == b"\x00\x00":
                raw = raw[:i]
                break
        else:
            raw = raw[: len(raw) - len(raw) % 2]
    else:
        raw = raw.split(b"\x00", 1)[0]
    return raw.decode(encoding, errors="replace")


class ByteCursor:
    """
    Bounded, position tracking reader over a uint8 buffer.

    Reads return numpy views into the buffer; nothing is copied until the
    caller asks for it. Any read past ``limit`` raises :class:`CorruptFileError`.
    """

    def __init__(self, buffer, position=0, limit=None):
        self.buffer = buffer
        self.limit = buffer.size if limit is None else int(limit)
        self.position = int(position)

    def __len__(self):
        return self.limit

    @property
    def remaining(self):
        return self.limit - self.position

    def tell(self):
        return self.position

    def seek(self, position):
        position = int(position)
        if not 0 <= position <= self.limit:
            raise CorruptFileError(f"Cannot seek to byte {position} of a {self.limit} byte source")
        self.position = position

    def _check(self, nbytes):
        if nbytes < 0 or self.position + nbytes > self.limit:
            raise CorruptFileError(
                f"Read of {nbytes} bytes at offset {self.position} runs past the end of a {self.limit} byte source"
            )

    def read(self, nbytes):
        nbytes = int(nbytes)
        self._check(nbytes)
        chunk = self.buffer[self.position : self.position + nbytes]
        self.position += nbytes
        return chunk

    def read_struct(self, dtype, count=1):
        """Read ``count`` consecutive records of the structured ``dtype``."""
        dtype = np.dtype(dtype)
        raw = self.read(dtype.itemsize * count)
        return np.asarray(raw).view(dtype)

    def records(self, start, count, stride):
        """
        View ``count`` records of ``stride`` bytes from ``start`` as a (count, stride) array.

        The cursor is left after the last record.
        """
        self.seek(start)
        raw = self.read(int(count) * int(stride))
        return np.asarray(raw).reshape(int(count), int(stride))
