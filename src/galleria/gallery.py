# -*- coding: utf-8 -*-
"""
Galleries stream records in and out of a dataset representation.

Reading is pull based: callers ask for blocks until a block comes back with
``done`` set::

    gallery = galleria.make("faces.gal")
    done = False
    while not done:
        records, done = gallery.read_block()

Backends are registered by suffix with :func:`register` and built with
:func:`make`.
"""
import abc
import logging
import os
from typing import Callable, Dict, List, Tuple

from galleria.config import get_settings
from galleria.descriptor import GalleryDescriptor
from galleria.exceptions import GalleryModeException
from galleria.record import Record

logger = logging.getLogger(__name__)

READING = "reading"
WRITING = "writing"


class Gallery(abc.ABC):
    """
    A source or sink of records.

    A gallery is used either for reading or for writing, the first call
    decides. Records produced by one pass carry a monotonic ``progress``
    metadata value.

    Args:
        descriptor (GalleryDescriptor or str): identity and options.
    """
    #: Whether the source can be read again after a pass completed.
    seekable = False

    def __init__(self, descriptor):
        self.descriptor = GalleryDescriptor.parse(descriptor)
        self.block_size = self.descriptor.get_int("blockSize",
                                                  get_settings().block_size)
        self._mode = None

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    def __iter__(self):
        done = False
        while not done:
            records, done = self.read_block()
            yield from records

    def __repr__(self):
        return "<{}({!r})>".format(self.__class__.__name__, self.descriptor.name)

    @property
    def mode(self):
        return self._mode

    def _use(self, mode):
        if self._mode is None:
            self._mode = mode
        elif self._mode != mode:
            raise GalleryModeException(
                "{!r} is already used for {}".format(self, self._mode))

    @abc.abstractmethod
    def read_block(self, max_count: int = None) -> Tuple[List[Record], bool]:
        """
        Read up to ``max_count`` records (default :attr:`block_size`).

        Returns:
            (records, done) where ``done`` tells that the end of the source
            was reached by this call.
        """

    @abc.abstractmethod
    def write(self, record: Record):
        pass

    def write_block(self, records):
        for record in records:
            self.write(record)

    def read(self) -> List[Record]:
        """All the records of one pass."""
        return list(self)

    def total_size(self) -> int:
        return -1

    def position(self) -> int:
        return 0

    def close(self):
        pass


class ListingGallery(Gallery):
    """
    A gallery listing all its records at once, then handing them out in
    blocks. The listing is built again for every pass.
    """
    seekable = True

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._listing = None
        self._cursor = 0

    @abc.abstractmethod
    def list_records(self) -> List[Record]:
        pass

    def read_block(self, max_count=None):
        self._use(READING)
        max_count = max_count or self.block_size
        if self._listing is None:
            self._listing = self.list_records()
            self._cursor = 0

        start = self._cursor
        block = []
        for i, record in enumerate(self._listing[start:start + max_count]):
            record = record.copy()
            record.set("progress", start + i)
            block.append(record)

        self._cursor = start + len(block)
        done = self._cursor >= len(self._listing)
        if done:
            self._listing = None
            self._cursor = 0
        return block, done

    def position(self):
        return self._cursor


_REGISTRY: Dict[str, Callable[[GalleryDescriptor], Gallery]] = {}

DIRECTORY = ""
DEFAULT = "default"


def register_gallery(suffix, factory):
    """Make :func:`make` build ``factory(descriptor)`` for ``suffix``."""
    logger.debug("registering gallery '%s'", suffix)
    _REGISTRY[suffix.lower()] = factory
    return factory


def register(*suffixes):
    def decorator(factory):
        for suffix in suffixes:
            register_gallery(suffix, factory)
        return factory
    return decorator


def registered():
    return sorted(_REGISTRY)


def make(descriptor) -> Gallery:
    """
    Build the gallery for a descriptor, dispatching on its suffix.

    A descriptor without suffix, or naming an existing directory, is a
    directory. An unknown suffix is a single file.
    """
    descriptor = GalleryDescriptor.parse(descriptor)
    suffix = descriptor.suffix.lower()
    if suffix in _REGISTRY:
        key = suffix
    elif not suffix or os.path.isdir(descriptor.name):
        key = DIRECTORY
    else:
        key = DEFAULT
    return _REGISTRY[key](descriptor)
