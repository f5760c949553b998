import io
import struct

import numpy as np
import pytest

from galleria.exceptions import InvalidRecordException, \
    MalformedRecordException, TruncatedStreamException
from galleria.record import Point, Record, Rect
from galleria.utils import framing


def test_round_trip():
    matrix = np.arange(12, dtype=np.float32).reshape(3, 4)
    record = Record("faces/alice.jpg",
                    {"Label": "alice",
                     "Eye": Point(1.5, 2.5),
                     "Face": Rect(1, 2, 30, 40),
                     "Rects": [Rect(0, 0, 1, 1), Rect(2, 2, 3, 3)],
                     "Blob": b"\x00\xff"},
                    matrix)

    buffer = io.BytesIO(framing.encode_record(record))
    decoded = framing.read_record(buffer)

    assert decoded == record
    assert decoded.get("Eye") == Point(1.5, 2.5)
    assert decoded.get("Face") == Rect(1, 2, 30, 40)
    assert decoded.get("Rects") == [Rect(0, 0, 1, 1), Rect(2, 2, 3, 3)]
    assert decoded.get("Blob") == b"\x00\xff"
    assert decoded.matrix.dtype == np.float32
    assert (decoded.matrix == matrix).all()
    assert framing.read_record(buffer) is None


def test_failure_to_enroll_writes_metadata_only():
    enrolled = Record("a.jpg", {"Label": 1}, np.ones((1, 64), np.uint8))
    failed = Record("a.jpg", {"Label": 1, "FTE": True},
                    np.empty((0, 0), np.uint8))

    buffer = io.BytesIO()
    framing.write_record(buffer, failed)
    failed_size = buffer.tell()
    framing.write_record(buffer, enrolled)

    assert failed_size < buffer.tell() - failed_size

    buffer.seek(0)
    decoded = framing.read_record(buffer)
    assert decoded.name == "a.jpg"
    assert decoded.metadata == {"Label": 1, "FTE": True}
    assert decoded.is_empty


def test_null_records_are_not_written():
    buffer = io.BytesIO()
    framing.write_record(buffer, Record())
    assert buffer.getvalue() == b""


def test_truncated_frame():
    data = framing.encode_record(Record("a", {}, np.zeros(10, np.uint8)))

    with pytest.raises(TruncatedStreamException):
        framing.read_record(io.BytesIO(data[:-3]))

    with pytest.raises(TruncatedStreamException):
        framing.read_record(io.BytesIO(data[:2]))


def corrupt(data, old, new):
    assert data.count(old) == 1
    return data.replace(old, new)


def test_unknown_dtype():
    data = framing.encode_record(Record("a", {}, np.zeros(3, np.float32)))
    data = corrupt(data, b"<f4", b"zz!")

    with pytest.raises(MalformedRecordException):
        framing.read_record(io.BytesIO(data))


def test_invalid_utf8():
    data = framing.encode_record(Record("a", {"Label": "xy"}))
    with pytest.raises(MalformedRecordException):
        framing.read_record(io.BytesIO(corrupt(data, b"xy", b"\xff\xfe")))

    data = framing.encode_record(Record("name", {}))
    with pytest.raises(MalformedRecordException):
        framing.read_record(io.BytesIO(corrupt(data, b"name", b"\xffame")))


def test_metadata_must_be_an_object():
    data = framing.encode_record(Record("a", {}))
    with pytest.raises(MalformedRecordException):
        framing.read_record(io.BytesIO(corrupt(data, b"{}", b"[]")))


def test_object_matrices():
    record = Record("a", {}, np.array([[1, "x"]], dtype=object))
    with pytest.raises(InvalidRecordException):
        framing.encode_record(record)

    body = struct.pack("<I", 1) + b"a" + struct.pack("<I", 2) + b"{}" + \
        struct.pack("<BBIB", 1, 1, 1, 2) + b"|O" + b"\0" * 8
    with pytest.raises(MalformedRecordException):
        framing.decode_record(body)
