import os
from concurrent.futures import ThreadPoolExecutor

import cv2 as cv
import numpy as np
import pytest

from galleria import Record, make
from galleria.exceptions import NotSupportedException
from galleria.galleries import directory


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "root"
    for path in ("a/1.jpg", "a/sub/2.jpg", "b/3.png", "4.txt"):
        (root / path).parent.mkdir(parents=True, exist_ok=True)
        (root / path).write_bytes(path.encode("utf-8"))
    return root


def test_read(tree):
    records, done = make(str(tree)).read_block()

    assert done
    assert [os.path.relpath(r.name, str(tree)) for r in records] == \
        [os.path.join("a", "1.jpg"), os.path.join("a", "sub", "2.jpg"),
         os.path.join("b", "3.png"), "4.txt"]
    assert [r.label for r in records] == ["a", "a", "b", "root"]
    assert [r.get("progress") for r in records] == [0, 1, 2, 3]
    assert make(str(tree)).total_size() == 3


def test_read_is_deterministic(tree):
    first = make(str(tree)).read()
    second = make(str(tree)).read()
    assert [r.name for r in first] == [r.name for r in second]


def test_glob(tree):
    records = make(str(tree) + "[glob=*.jpg]").read()
    assert [r.file_name for r in records] == ["1.jpg", "2.jpg"]


def test_null_gallery():
    gallery = make("")
    assert gallery.read_block() == ([], True)
    assert gallery.total_size() == 0


def test_write_copies_files(tree, tmp_path, monkeypatch):
    monkeypatch.chdir(str(tree))
    out = tmp_path / "out"

    with make(str(out) + "[preservePath]") as gallery:
        gallery.write(Record(os.path.join("a", "sub", "2.jpg")))
    with make(str(out)) as gallery:
        gallery.write(Record(os.path.join("b", "3.png")))

    assert (out / "a" / "sub" / "2.jpg").read_bytes() == b"a/sub/2.jpg"
    assert (out / "3.png").read_bytes() == b"b/3.png"


def test_write_matrices(tmp_path):
    out = tmp_path / "out"
    image = (np.arange(48).reshape(6, 8) * 5).astype(np.uint8)

    with make(str(out) + "[newFormat=.png]") as gallery:
        gallery.write(Record("faces/x.jpg", {}, image))

    written = cv.imread(str(out / "x.png"), cv.IMREAD_UNCHANGED)
    assert (written == image).all()


def test_crawl(tree):
    expected = ["file://" + os.path.realpath(str(tree / path))
                for path in ("a/1.jpg", "a/sub/2.jpg", "b/3.png")]

    gallery = make(str(tree) + ".crawl")
    assert gallery.total_size() == 3
    assert [r.name for r in gallery.read()] == expected

    assert [r.name for r in make(str(tree) + ".crawl[depth=3]").read()] == \
        [expected[0], expected[2]]
    assert [r.name for r in make(str(tree) + ".crawl[images=1]").read()] == \
        expected[:1]
    assert [r.get("URL") for r in make(str(tree) + ".crawl[json]").read()] == \
        expected

    with pytest.raises(NotSupportedException):
        make(str(tree) + ".crawl").write(Record("a.jpg"))


def test_read_in_blocks(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    for i in range(10):
        (root / "{}.jpg".format(i)).write_bytes(b"")

    gallery = make(str(root))
    for _ in range(2):
        blocks = []
        done = False
        while not done:
            records, done = gallery.read_block(3)
            blocks.append(records)

        assert [len(b) for b in blocks] == [3, 3, 3, 1]
        records = [r for b in blocks for r in b]
        assert [r.file_name for r in records] == \
            ["{}.jpg".format(i) for i in range(10)]
        assert [r.get("progress") for r in records] == list(range(10))
        assert gallery.position() == 0


def test_crawl_returns_copies(tree):
    gallery = make(str(tree) + ".crawl[blockSize=2]")
    first, done = gallery.read_block()
    assert len(first) == 2
    assert not done

    first[0].set("Label", "changed")
    rest, done = gallery.read_block()
    assert done
    assert len(rest) == 1
    assert all(not r.contains("Label") for r in gallery.read())


def test_listing_threads_are_bounded(tmp_path, monkeypatch):
    root = tmp_path / "root"
    for i in range(40):
        (root / "d{}".format(i)).mkdir(parents=True)
        (root / "d{}".format(i) / "x.jpg").write_bytes(b"")

    workers = []

    class RecordingExecutor(ThreadPoolExecutor):
        def __init__(self, max_workers=None):
            workers.append(max_workers)
            super().__init__(max_workers=max_workers)

    monkeypatch.setattr(directory, "ThreadPoolExecutor", RecordingExecutor)

    records = make(str(root)).read()
    assert len(records) == 40
    assert [r.label for r in records[:3]] == ["d0", "d1", "d2"]
    assert workers == [directory.MAX_WORKERS]
