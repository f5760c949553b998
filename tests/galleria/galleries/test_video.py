import struct

import numpy as np
import pytest

from galleria import Rect, Record, make
from galleria.exceptions import MalformedHeaderException, \
    MissingSourceException, NotSupportedException
from galleria.galleries import SeqGallery


def write_raw_seq(path, frames, stride=32):
    height, width = frames[0].shape
    header = bytearray(1024)
    header[0:4] = b"\xED\xFE\x00\x00"
    header[4:28] = "Norpix seq  ".encode("utf-16-le")
    header[32:36] = struct.pack("<i", 1024)
    header[36:48] = "camera".encode("utf-16-le")
    header[548:584] = struct.pack("<9i", width, height, 8, 8, width * height,
                                  100, len(frames), 0, stride)
    with open(path, "wb") as f:
        f.write(bytes(header))
        for frame in frames:
            f.write(frame.tobytes().ljust(stride, b"\0"))


@pytest.fixture
def frames():
    return [np.full((4, 6), i * 10, np.uint8) for i in range(5)]


def test_seq(tmp_path, frames):
    path = str(tmp_path / "a.seq")
    write_raw_seq(path, frames)

    with make(path + "[blockSize=2]") as gallery:
        assert gallery.total_size() == 5
        sizes = []
        records = []
        done = False
        while not done:
            block, done = gallery.read_block()
            sizes.append(len(block))
            records.extend(block)
        assert sizes == [2, 2, 1]
        assert gallery.position() == 5

        # a new pass starts over
        assert len(gallery.read_block()[0]) == 2

    assert [r.get("progress") for r in records] == [0, 1, 2, 3, 4]
    assert all(r.get("Description") == "camera" for r in records)
    for record, frame in zip(records, frames):
        assert record.name == path
        assert (record.matrix == frame).all()


def test_seq_annotations(tmp_path, frames):
    path = str(tmp_path / "a.seq")
    write_raw_seq(path, frames[:2])
    annotations = str(tmp_path / "annotations.json")
    with make(annotations) as gallery:
        gallery.write(Record("0", {"Rects": [Rect(1, 2, 3, 4)]}))
        gallery.write(Record("1", {"Rects": [Rect(0, 0, 2, 2),
                                             Rect(1, 1, 2, 2)]}))

    gallery = make("{}[annotations={}]".format(path, annotations))
    for _ in range(2):
        records = gallery.read()
        assert records[0].rects() == [Rect(1, 2, 3, 4)]
        assert records[1].rects() == [Rect(0, 0, 2, 2), Rect(1, 1, 2, 2)]


def test_seq_decoder(tmp_path, frames):
    path = str(tmp_path / "a.seq")
    write_raw_seq(path, frames)

    # raw frames never reach the decoder
    gallery = SeqGallery(path, decoder=None)
    assert len(gallery.read()) == 5


def test_seq_errors(tmp_path):
    with pytest.raises(MissingSourceException):
        make(str(tmp_path / "missing.seq")).read_block()

    (tmp_path / "bad.seq").write_bytes(b"\0" * 2048)
    gallery = make(str(tmp_path / "bad.seq"))
    with pytest.raises(MalformedHeaderException):
        gallery.read_block()
    assert not gallery.is_open

    with pytest.raises(NotSupportedException):
        gallery.write(Record("a.jpg"))


def test_video_errors(tmp_path):
    with pytest.raises(MissingSourceException):
        make(str(tmp_path / "missing.avi")).read_block()
    with pytest.raises(MissingSourceException):
        make(str(tmp_path / "front.webcam")).read_block()
