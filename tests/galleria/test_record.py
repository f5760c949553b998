import numpy as np

from galleria import Point, Record, Rect, get_settings, set_settings
from galleria.config import Settings


def test_metadata():
    record = Record("faces/alice/1.jpg", {"Label": "alice"})

    assert record.label == "alice"
    assert record.file_name == "1.jpg"
    assert record.base_name == "1"
    assert record.suffix == "jpg"
    assert record.path == "faces/alice"
    assert record.is_empty
    assert not record.is_null
    assert not record.fte
    assert record.bytes == 0

    record.set("FTE", True)
    assert record.fte
    record.remove("FTE")
    assert not record.contains("FTE")
    assert Record().is_null


def test_landmarks():
    record = Record("a.jpg")
    record.set_points([(1, 2), (3, 4)])
    record.append_rect((0, 0, 10, 10))
    record.append_rect(Rect(1, 1, 5, 5))

    assert record.points() == [Point(1, 2), Point(3, 4)]
    assert record.rects() == [Rect(0, 0, 10, 10), Rect(1, 1, 5, 5)]


def test_equality_ignores_matrix():
    a = Record("a.jpg", {"Label": 1}, np.zeros(3))
    b = Record("a.jpg", {"Label": 1}, np.ones(5))

    assert a == b
    assert hash(a) == hash(b)
    assert a != Record("a.jpg", {"Label": 2})
    assert a != Record("b.jpg", {"Label": 1})


def test_copy():
    record = Record("a.jpg", {"Label": 1}, np.zeros((2, 2), np.float32))
    copy = record.copy()
    copy.set("Label", 2)

    assert record.label == 1
    assert copy.matrix is record.matrix
    assert record.bytes == 16
    assert record.without_matrix().matrix is None


def test_flat():
    record = Record("a.jpg", {"Label": "x", "Eye": Point(1, 2),
                              "Face": Rect(1, 2, 3, 4), "Score": 0.5})
    flat = record.flat()

    assert flat.startswith("a.jpg[")
    decoded = Record.from_flat(flat)
    assert decoded == record
    assert decoded.get("Eye") == Point(1, 2)
    assert decoded.get("Face") == Rect(1, 2, 3, 4)


def test_resolved(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"")
    previous = get_settings()
    set_settings(Settings(path=str(tmp_path)))
    try:
        assert Record("a.jpg").resolved() == str(tmp_path / "a.jpg")
        assert Record("missing.jpg").resolved() == "missing.jpg"
    finally:
        set_settings(previous)
