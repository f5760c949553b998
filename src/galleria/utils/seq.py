"""
Norpix sequence files: a 1024 bytes header followed by the frames.

Header (little endian)::

    4      magic, starts with 0xED 0xFE
    24     "Norpix seq", 16-bit characters
    4      version
    4      header size, always 1024
    512    description, 16-bit characters
    4      width
    4      height
    4      bit depth (8 per channel)
    4      real bit depth, must be 8
    4      image size in bytes
    4      image format
    4      frame count
    4      (empty)
    4      true image size in bytes, the stride of raw frames
"""
import logging
from collections import namedtuple

import numpy as np

from galleria.exceptions import MalformedHeaderException, \
    UnsupportedFormatException
from galleria.utils.file import read_exactly

logger = logging.getLogger(__name__)

HEADER_SIZE = 1024
MAGIC = b"\xED\xFE"
NAME = b"Norpix seq"

RAW = "raw"
COMPRESSED = "compressed"
FORMATS = {100: RAW, 200: RAW, 101: RAW,
           102: COMPRESSED, 201: COMPRESSED, 103: COMPRESSED,
           1: COMPRESSED, 2: COMPRESSED}

# Bytes following a compressed frame, sometimes 16 instead
FRAME_PADDING = 8

SeqHeader = namedtuple("SeqHeader", ["description", "width", "height",
                                     "channels", "image_size", "image_format",
                                     "frame_count", "true_image_size"])


def read_int(file):
    return int.from_bytes(read_exactly(file, 4), "little", signed=True)


def read_text(file, size):
    """Read 16-bit characters keeping only their first byte."""
    buf = read_exactly(file, size)[::2]
    return buf.split(b"\0", 1)[0]


def get_file_size(file):
    pos = file.tell()
    file.seek(0, 2)
    size = file.tell()
    file.seek(pos)
    return size


def read_header(file):
    """
    Validate and parse the header of a sequence file.

    Args:
        file: seekable binary file object.

    Returns:
        SeqHeader
    """
    if get_file_size(file) < HEADER_SIZE:
        raise MalformedHeaderException("No header in seq file")

    file.seek(0)
    magic = read_exactly(file, 4)
    name = read_text(file, 24)
    if magic[:2] != MAGIC or not name.startswith(NAME):
        raise MalformedHeaderException("Invalid header in seq file")

    file.seek(4, 1)     # version: uint32
    header_size = read_int(file)
    if header_size != HEADER_SIZE:
        raise MalformedHeaderException(
            "Invalid header size {}".format(header_size))
    description = read_text(file, 512).decode("latin-1")

    width = read_int(file)
    height = read_int(file)
    channels = read_int(file) // 8
    bit_depth = read_int(file)
    if bit_depth != 8:
        raise MalformedHeaderException("Invalid bit depth {}".format(bit_depth))
    image_size = read_int(file)

    format_code = read_int(file)
    if format_code not in FORMATS:
        raise UnsupportedFormatException(
            "Unsupported image format {}".format(format_code))
    image_format = FORMATS[format_code]

    frame_count = read_int(file)
    file.seek(4, 1)     # empty: uint32
    true_image_size = read_int(file)

    if image_format == RAW and \
       image_size < width * height * (1 if channels == 1 else 3):
        raise MalformedHeaderException(
            "Raw image size {} is too small for {}x{}x{}"
            .format(image_size, width, height, channels))

    header = SeqHeader(description, width, height, channels, image_size,
                       image_format, frame_count, true_image_size)
    logger.debug("seq header %s", header)
    return header


def get_frame_offsets(file, header):
    """
    Offset of every frame of the file.

    Raw frames all have the same stride. Compressed frames start with their
    size and are followed by padding: 8 bytes, or 16 when the byte following
    the first frame plus 8 bytes of padding is zero.
    """
    offsets = np.empty(max(header.frame_count, 0), np.int64)
    if not len(offsets):
        return offsets

    offsets[0] = HEADER_SIZE
    if header.image_format == RAW:
        offsets[1:] = HEADER_SIZE + \
            np.arange(1, len(offsets), dtype=np.int64) * header.true_image_size
        return offsets

    padding = FRAME_PADDING
    for i in range(1, len(offsets)):
        last_pos = int(offsets[i - 1])
        file.seek(last_pos)
        pos = last_pos + read_int(file) + padding

        if i == 1:
            file.seek(pos)
            if file.read(1) == b"\0":
                pos += FRAME_PADDING
                padding += FRAME_PADDING

        if pos <= last_pos:
            raise MalformedHeaderException(
                "Frame {} does not follow frame {}".format(i, i - 1))
        offsets[i] = pos
    return offsets


def read_frame_at(file, header, offset, decoder):
    """
    Pixels of the frame at ``offset``.

    Args:
        file: seekable binary file object.
        header (SeqHeader): header of the file.
        offset (int): offset of the frame, see :func:`get_frame_offsets`.
        decoder (callable): turns compressed bytes into a pixel matrix.

    Returns:
        numpy.ndarray owning its memory.
    """
    file.seek(int(offset))
    if header.image_format == COMPRESSED:
        size = read_int(file) - 4   # the size includes itself
        if size < 0:
            raise MalformedHeaderException(
                "Invalid frame size at offset {}".format(offset))
        return decoder(read_exactly(file, size))

    size = header.width * header.height * (1 if header.channels == 1 else 3)
    buf = read_exactly(file, header.image_size)
    shape = (header.height, header.width) if header.channels == 1 else \
            (header.height, header.width, 3)
    return np.frombuffer(buf[:size], np.uint8).reshape(shape).copy()
