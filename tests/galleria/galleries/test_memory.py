import numpy as np

from galleria import GalleryDescriptor, MemoryGalleries, Record, make, \
    read_metadata
from galleria.galleries.memory import metadata_descriptor
from galleria.utils import framing


def write_gal(path, count):
    with make(path) as gallery:
        for i in range(count):
            gallery.write(Record("img{}.jpg".format(i), {"Label": i},
                                 np.full((1, 16), i, np.uint8)))


def test_get_or_load_once():
    calls = []

    def loader():
        calls.append(1)
        return [Record("a.jpg")]

    key = GalleryDescriptor("a.mem")
    first = MemoryGalleries.get_or_load(key, loader)
    second = MemoryGalleries.get_or_load(GalleryDescriptor("a.mem"), loader)

    assert first is second
    assert len(calls) == 1
    assert MemoryGalleries.contains(key)

    MemoryGalleries.clear()
    assert not MemoryGalleries.contains(key)


def test_source_is_decoded_once(tmp_path, monkeypatch):
    path = str(tmp_path / "a.gal")
    write_gal(path, 5)

    decoded = []
    read_record = framing.read_record

    def counting_read_record(file):
        record = read_record(file)
        if record is not None:
            decoded.append(record.name)
        return record

    monkeypatch.setattr(framing, "read_record", counting_read_record)

    first = make(path + ".mem").read()
    second = make(path + ".mem").read()

    assert len(decoded) == 5
    assert [r.name for r in first] == [r.name for r in second]
    assert [r.get("progress") for r in second] == [0, 1, 2, 3, 4]
    assert make(path + ".mem").total_size() == 5


def test_blocks(tmp_path):
    path = str(tmp_path / "a.gal")
    write_gal(path, 7)

    gallery = make(path + ".mem[blockSize=3]")
    sizes = []
    done = False
    while not done:
        records, done = gallery.read_block()
        sizes.append(len(records))
    assert sizes == [3, 3, 1]
    assert gallery.position() == 0

    # exact multiple
    gallery = make(path + ".mem")
    assert gallery.read_block(7)[1]


def test_records_are_copies(tmp_path):
    path = str(tmp_path / "a.gal")
    write_gal(path, 1)

    record, = make(path + ".mem").read()
    record.set("Label", "changed")

    assert make(path + ".mem").read()[0].label == 0


def test_write(tmp_path):
    descriptor = str(tmp_path / "written.mem")
    with make(descriptor) as gallery:
        gallery.write(Record("a.jpg", {"Label": 1}))
        gallery.write(Record("b.jpg", {"Label": 2}))

    assert [r.name for r in make(descriptor).read()] == ["a.jpg", "b.jpg"]
    assert make(str(tmp_path / "other.mem")).read() == []


def test_read_metadata(tmp_path):
    path = str(tmp_path / "a.gal")
    write_gal(path, 12)

    records = read_metadata(path)
    assert len(records) == 12
    assert all(r.matrix is None for r in records)
    assert [r.label for r in records] == list(range(12))

    target = metadata_descriptor(GalleryDescriptor(path))
    assert target.name == str(tmp_path / "a_meta{}.mem".format(
        GalleryDescriptor(path).hash()))
    assert MemoryGalleries.get(target) is records
    assert read_metadata(path) is records
    assert read_metadata(path + "[append]") is records


def test_read_metadata_without_cache(tmp_path):
    path = str(tmp_path / "a.gal")
    write_gal(path, 2)

    records = read_metadata(path, cache=False)
    assert len(records) == 2
    assert MemoryGalleries.get(metadata_descriptor(GalleryDescriptor(path))) \
        is None
