"""
Binary framing of records, a literal dump of what a record holds.

Every frame is little endian:

    uint32      body size
    uint32      name size
    bytes       name (utf-8)
    uint32      metadata size
    bytes       metadata (utf-8 JSON, typed values tagged)
    uint8       matrix count (0 or 1)
    [uint8      ndim
     uint32[]   shape
     uint8      dtype size
     bytes      dtype string (numpy notation, e.g. "<f4")
     bytes      matrix data (C order)]

Records marked as failures to enroll are written without their matrix.
"""
import json
import struct

import numpy as np

from galleria.exceptions import InvalidRecordException, \
    MalformedRecordException, TruncatedStreamException
from galleria.record import Record, decode_value, encode_value
from galleria.utils.file import read_exactly

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")


def encode_record(record):
    name = record.name.encode("utf-8")
    metadata = json.dumps(encode_value(record.metadata)).encode("utf-8")

    body = [_U32.pack(len(name)), name, _U32.pack(len(metadata)), metadata]
    if record.matrix is None or record.fte:
        body.append(_U8.pack(0))
    else:
        matrix = np.ascontiguousarray(record.matrix)
        if matrix.dtype.hasobject:
            raise InvalidRecordException(
                "Can't write a matrix of Python objects for {}".format(record.name))
        dtype = matrix.dtype.str.encode("ascii")
        body.append(_U8.pack(1))
        body.append(_U8.pack(matrix.ndim))
        body.append(struct.pack("<{}I".format(matrix.ndim), *matrix.shape))
        body.append(_U8.pack(len(dtype)))
        body.append(dtype)
        body.append(matrix.tobytes())

    body = b"".join(body)
    return _U32.pack(len(body)) + body


class _Reader:
    def __init__(self, buffer):
        self._buffer = memoryview(buffer)
        self._pos = 0

    def take(self, size):
        if self._pos + size > len(self._buffer):
            raise TruncatedStreamException(
                "Frame body is shorter than its fields declare")
        data = self._buffer[self._pos:self._pos + size]
        self._pos += size
        return data

    def unpack(self, fmt):
        return fmt.unpack(self.take(fmt.size))[0]


def decode_record(body):
    try:
        return _decode_record(_Reader(body))
    except (ValueError, TypeError) as e:
        raise MalformedRecordException("Invalid frame: {}".format(e)) from e


def _decode_record(reader):
    name = bytes(reader.take(reader.unpack(_U32))).decode("utf-8")
    metadata = json.loads(bytes(reader.take(reader.unpack(_U32))).decode("utf-8"))
    if not isinstance(metadata, dict):
        raise MalformedRecordException("Frame metadata is not an object")
    record = Record(name, {k: decode_value(v) for k, v in metadata.items()})

    if reader.unpack(_U8):
        ndim = reader.unpack(_U8)
        shape = struct.unpack("<{}I".format(ndim), reader.take(4 * ndim))
        dtype = np.dtype(bytes(reader.take(reader.unpack(_U8))).decode("ascii"))
        if dtype.hasobject:
            raise MalformedRecordException("Object matrices can't be decoded")
        count = int(np.prod(shape, dtype=np.int64))
        data = reader.take(count * dtype.itemsize)
        # copy: the frame buffer is transient
        record.matrix = np.frombuffer(data, dtype).reshape(shape).copy()
    return record


def read_record(file):
    """Read the next frame, ``None`` at a clean end of stream."""
    header = read_exactly(file, _U32.size, allow_eof=True)
    if not header:
        return None
    return decode_record(read_exactly(file, _U32.unpack(header)[0]))


def write_record(file, record):
    if record.is_empty and record.is_null:
        return
    file.write(encode_record(record))
