"""
Galleries made of a single file, or of no file at all.
"""
import logging
import os

import numpy as np

from galleria.exceptions import InvalidRecordException, \
    MissingSourceException, NotSupportedException
from galleria.gallery import DEFAULT, READING, WRITING, Gallery, register
from galleria.record import Record
from galleria.utils.file import touch_dir
from galleria.utils.image import read_image, write_image

logger = logging.getLogger(__name__)


@register(DEFAULT)
class DefaultGallery(Gallery):
    """
    A single file seen as a gallery of one record, written as an image.
    """
    def read_block(self, max_count=None):
        self._use(READING)
        return [Record(self.descriptor.name, {"progress": 0})], True

    def write(self, record):
        self._use(WRITING)
        write_image(self.descriptor.name, record.matrix)

    def total_size(self):
        return 1


@register("template")
class TemplateGallery(Gallery):
    """
    ``features.bin.template`` reads ``features.bin`` as one ``1 x n`` uint8
    matrix.
    """
    def read_block(self, max_count=None):
        self._use(READING)
        path = self.descriptor.strip_suffix("template").name
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError as e:
            raise MissingSourceException("File {} does not exist"
                                         .format(path)) from e
        matrix = np.frombuffer(data, np.uint8).reshape(1, -1).copy()
        return [Record(self.descriptor.name, {"progress": 0}, matrix)], True

    def write(self, record):
        raise NotSupportedException("Template galleries can't be written")

    def total_size(self):
        return 1


@register("stat")
class StatGallery(Gallery):
    """Accumulate statistics about the written records, logged on close."""
    def __init__(self, descriptor):
        super().__init__(descriptor)
        self.subjects = set()
        self.bytes = []

    def read_block(self, max_count=None):
        self._use(READING)
        return [Record(self.descriptor.name)], True

    def write(self, record):
        self._use(WRITING)
        self.subjects.add(str(record.get("Label")))
        self.bytes.append(record.bytes)

    def summary(self):
        sizes = np.array([b for b in self.bytes if b], np.float64)
        empty = len(self.bytes) - len(sizes)
        return {
            "subjects": len(self.subjects),
            "empty": empty,
            "total": len(self.bytes),
            "bytes_mean": float(sizes.mean()) if len(sizes) else 0.,
            "bytes_std": float(sizes.std()) if len(sizes) else 0.,
        }

    def close(self):
        if self._mode == WRITING:
            s = self.summary()
            logger.info("Subjects: %d\nEmpty Templates: %d/%d\n"
                        "Bytes/Template: %.4g +/- %.4g",
                        s["subjects"], s["empty"], s["total"],
                        s["bytes_mean"], s["bytes_std"])


@register("matrix")
class MatrixGallery(Gallery):
    """
    Every written record as one row of a single matrix.

    ``faces.matrix`` is stored in ``faces.<extension>``: a numpy ``.npy``
    file by default, otherwise an image written with OpenCV. Reading gives
    one record holding that matrix.

    Options:
        extension: format of the stored matrix. (default: ``npy``)
    """
    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._records = []

    @property
    def target(self):
        extension = self.descriptor.get("extension", "npy")
        return os.path.splitext(self.descriptor.name)[0] + "." + extension

    def read_block(self, max_count=None):
        self._use(READING)
        target = self.target
        if not os.path.exists(target):
            raise MissingSourceException("File {} does not exist".format(target))
        if target.endswith(".npy"):
            matrix = np.load(target, allow_pickle=False)
        else:
            matrix = read_image(target)
        return [Record(target, {"progress": 0}, matrix)], True

    def write(self, record):
        self._use(WRITING)
        self._records.append(record)

    def total_size(self):
        return 1

    def close(self):
        if self._mode != WRITING or not self._records:
            return
        rows = [np.asarray(r.matrix).reshape(-1) for r in self._records
                if not r.is_empty]
        if len({row.size for row in rows}) > 1:
            raise InvalidRecordException(
                "Matrices of {} differ in size".format(self.descriptor.name))
        matrix = np.stack(rows) if rows else np.empty((0, 0), np.uint8)

        target = self.target
        logger.debug("writing %s matrix to '%s'", matrix.shape, target)
        if target.endswith(".npy"):
            touch_dir(target)
            np.save(target, matrix, allow_pickle=False)
        else:
            write_image(target, matrix)
        self._records = []
