"""
Galleries held in memory for the lifetime of the process.
"""
import atexit
import logging
import os
import threading

from galleria.descriptor import GalleryDescriptor
from galleria.gallery import READING, WRITING, Gallery, make, register

logger = logging.getLogger(__name__)

# Galleries whose records carry matrices worth dropping for metadata scans
MATRIX_SUFFIXES = ("gal", "mem", "template", "ut")
METADATA_BLOCK_SIZE = 10


class MemoryGalleries:
    """
    Process wide registry of materialized record lists, keyed by
    :class:`GalleryDescriptor`.

    Entries are created on first access and live until :meth:`clear`, which
    runs at interpreter exit.
    """
    _lock = threading.RLock()
    _galleries = {}

    @classmethod
    def contains(cls, key):
        with cls._lock:
            return key in cls._galleries

    @classmethod
    def get(cls, key):
        with cls._lock:
            return cls._galleries.get(key)

    @classmethod
    def get_or_load(cls, key, loader):
        """The records stored under ``key``, calling ``loader()`` if absent."""
        with cls._lock:
            if key not in cls._galleries:
                logger.debug("loading memory gallery %r", key)
                cls._galleries[key] = list(loader())
            return cls._galleries[key]

    @classmethod
    def store(cls, key, records):
        with cls._lock:
            cls._galleries[key] = list(records)
            return cls._galleries[key]

    @classmethod
    def append(cls, key, record):
        with cls._lock:
            cls._galleries.setdefault(key, []).append(record)

    @classmethod
    def clear(cls):
        with cls._lock:
            cls._galleries.clear()


atexit.register(MemoryGalleries.clear)


@register("mem")
class MemoryGallery(Gallery):
    """
    A gallery held in :class:`MemoryGalleries`.

    ``faces.gal.mem`` reads ``faces.gal`` once for the whole process; later
    instances replay the cached records.
    """
    seekable = True

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._pos = 0

    @property
    def _key(self):
        return self.descriptor.without("blockSize")

    def _load(self):
        source = self.descriptor.strip_suffix("mem")
        if source.name != self.descriptor.name and source.suffix and \
           source.suffix != "mem" and source.exists():
            logger.debug("caching '%s' in memory", source.name)
            return make(source.without("blockSize")).read()
        return []

    def records(self):
        return MemoryGalleries.get_or_load(self._key, self._load)

    def read_block(self, max_count=None):
        self._use(READING)
        max_count = max_count or self.block_size
        records = self.records()

        start = self._pos
        block = []
        for i, record in enumerate(records[start:start + max_count]):
            record = record.copy()
            record.set("progress", start + i)
            block.append(record)

        done = start + max_count >= len(records)
        self._pos = 0 if done else start + len(block)
        return block, done

    def write(self, record):
        self._use(WRITING)
        MemoryGalleries.append(self._key, record.copy())

    def total_size(self):
        return len(self.records())

    def position(self):
        return self._pos


def metadata_descriptor(descriptor):
    """Where :func:`read_metadata` caches the records of ``descriptor``."""
    name = os.path.join(descriptor.path, "{}_meta{}.mem".format(
        descriptor.base_name, descriptor.hash()))
    return GalleryDescriptor(name)


def read_metadata(descriptor, cache=True):
    """
    Records of a gallery without their matrices.

    Args:
        descriptor (GalleryDescriptor or str): the gallery to scan.
        cache (bool, optional): keep the result in :class:`MemoryGalleries`
            so that later scans of the same gallery don't decode it again.
    """
    descriptor = GalleryDescriptor.parse(descriptor).without("append")
    target = metadata_descriptor(descriptor)

    cached = MemoryGalleries.get(target)
    if cached is not None:
        return cached

    if descriptor.suffix in MATRIX_SUFFIXES:
        records = []
        with make(descriptor) as gallery:
            done = False
            while not done:
                block, done = gallery.read_block(METADATA_BLOCK_SIZE)
                records.extend(r.without_matrix() for r in block)
    else:
        with make(descriptor) as gallery:
            records = gallery.read()

    if cache:
        records = MemoryGalleries.store(target, records)
    return records
