# -*- coding: utf-8 -*-
import hashlib
import json
import os
from collections import namedtuple

import numpy as np

from galleria.config import get_settings
from galleria.descriptor import format_flat, parse_flat

Point = namedtuple("Point", ["x", "y"])
Rect = namedtuple("Rect", ["x", "y", "width", "height"])


def encode_value(value):
    """Turn a metadata value into something :mod:`json` can write."""
    if isinstance(value, Point):
        return {"__point__": [value.x, value.y]}
    if isinstance(value, Rect):
        return {"__rect__": [value.x, value.y, value.width, value.height]}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"__bytes__": bytes(value).hex()}
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def decode_value(value):
    if isinstance(value, dict):
        if "__point__" in value:
            return Point(*value["__point__"])
        if "__rect__" in value:
            return Rect(*value["__rect__"])
        if "__bytes__" in value:
            return bytes.fromhex(value["__bytes__"])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


class Record:
    """
    One unit of a gallery: where it comes from, what is known about it and,
    optionally, a feature or pixel matrix.

    Records behave as values: :meth:`copy` before mutating a record obtained
    from shared storage. The matrix is never modified in place.

    Args:
        name (str, optional): originating path.
        metadata (dict, optional): ordered metadata.
        matrix (numpy.ndarray, optional): binary payload.
    """
    def __init__(self, name="", metadata=None, matrix=None):
        self.name = name
        self.metadata = dict(metadata or {})
        self.matrix = matrix

    def __repr__(self):
        return "Record({!r}, {!r}, matrix={})".format(
            self.name, self.metadata,
            None if self.matrix is None else self.matrix.shape)

    def __eq__(self, other):
        if not isinstance(other, Record):
            return NotImplemented
        return self.name == other.name and \
            self.fingerprint() == other.fingerprint()

    def __hash__(self):
        return hash((self.name, self.fingerprint()))

    def fingerprint(self):
        """Digest of the metadata, independent of the matrix content."""
        data = json.dumps(encode_value(self.metadata), sort_keys=True)
        return hashlib.md5(data.encode("utf-8")).hexdigest()

    def get(self, key, default=None):
        return self.metadata.get(key, default)

    def set(self, key, value):
        self.metadata[key] = value

    def contains(self, key):
        return key in self.metadata

    def remove(self, key):
        self.metadata.pop(key, None)

    @property
    def label(self):
        return self.metadata.get("Label")

    @property
    def fte(self):
        """Whether the record marks a failure to enroll."""
        return bool(self.metadata.get("FTE", False))

    def points(self):
        return list(self.metadata.get("Points", []))

    def set_points(self, points):
        self.metadata["Points"] = [Point(*p) for p in points]

    def rects(self):
        return list(self.metadata.get("Rects", []))

    def set_rects(self, rects):
        self.metadata["Rects"] = [Rect(*r) for r in rects]

    def append_rect(self, rect):
        self.set_rects(self.rects() + [rect])

    @property
    def file_name(self):
        return os.path.basename(self.name)

    @property
    def base_name(self):
        return os.path.splitext(self.file_name)[0]

    @property
    def suffix(self):
        return os.path.splitext(self.file_name)[1][1:]

    @property
    def path(self):
        return os.path.dirname(self.name)

    def resolved(self):
        """The name as an existing path, looking under the settings path."""
        if os.path.exists(self.name) or os.path.isabs(self.name):
            return self.name
        root = get_settings().path
        if root:
            candidate = os.path.join(root, self.name)
            if os.path.exists(candidate):
                return candidate
        return self.name

    @property
    def is_empty(self):
        return self.matrix is None or self.matrix.size == 0

    @property
    def is_null(self):
        return not self.name and not self.metadata

    @property
    def bytes(self):
        return 0 if self.matrix is None else int(self.matrix.nbytes)

    def copy(self):
        return Record(self.name, self.metadata, self.matrix)

    def without_matrix(self):
        return Record(self.name, self.metadata)

    def flat(self):
        return format_flat(self.name,
                           {k: encode_value(v) for k, v in self.metadata.items()})

    @classmethod
    def from_flat(cls, text):
        name, metadata = parse_flat(text)
        return cls(name, {k: decode_value(v) for k, v in metadata.items()})
