import logging
import os
import re
import sys

from galleria.exceptions import MissingSourceException, \
    TruncatedStreamException

logger = logging.getLogger(__name__)

STANDARD_STREAMS = {"stdin": "rb", "stdout": "wb", "stderr": "wb"}


def touch_dir(path):
    """Create the parent directories of a file path."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def natural_key(text):
    return [int(w) if w.isdigit() else w.lower()
            for w in re.split(r"(\d+)", text)]


def natural_sort(names):
    return sorted(names, key=natural_key)


def list_files(directory, recursive=False):
    """Natural-sorted file paths under a directory."""
    files = []
    entries = natural_sort(os.listdir(directory))
    for entry in entries:
        path = os.path.join(directory, entry)
        if os.path.isfile(path):
            files.append(path)
    if recursive:
        for entry in entries:
            path = os.path.join(directory, entry)
            if os.path.isdir(path):
                files.extend(list_files(path, recursive=True))
    return files


def read_exactly(file, size, allow_eof=False):
    """
    Read ``size`` bytes, looping over short reads.

    Args:
        file: object with a ``read(size)`` method.
        size (int): number of bytes wanted.
        allow_eof (bool, optional): if ``True`` and the stream is already at
            its end, return ``b""`` instead of raising. An end of stream after
            some bytes were read is always an error.
    """
    if size < 0:
        raise TruncatedStreamException("negative read size {}".format(size))

    chunks = []
    needed = size
    while needed > 0:
        chunk = file.read(needed)
        if not chunk:
            if allow_eof and needed == size:
                return b""
            raise TruncatedStreamException(
                "Unexpected EOF, needed {} more of {} bytes"
                .format(needed, size))
        chunks.append(chunk)
        needed -= len(chunk)
    return b"".join(chunks)


class FileProxy:
    """
    A lazily opened binary file, or one of the process standard streams.

    The proxy counts the bytes it reads and writes so that :attr:`position`
    works on pipes which can't ``tell()``.
    """
    def __init__(self, disk_file, mode="rb"):
        self._file = None
        self._name = None
        self._mode = mode
        self._pos = 0
        self._std = False

        if isinstance(disk_file, str):
            self._name = disk_file
            stream = os.path.splitext(os.path.basename(disk_file))[0]
            if stream in STANDARD_STREAMS:
                self._std = True
                self._mode = STANDARD_STREAMS[stream]
                self._file = getattr(sys, stream).buffer
        else:
            self._name = getattr(disk_file, "name", None)
            self._file = disk_file

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    @property
    def name(self):
        return self._name

    @property
    def mode(self):
        return self._mode

    @property
    def closed(self):
        return self._file is None or self._file.closed

    @property
    def position(self):
        return self._pos

    @property
    def standard(self):
        return self._std

    @property
    def seekable(self):
        if self._std:
            return False
        try:
            return not self.closed and self._file.seekable()
        except (AttributeError, ValueError):
            return False

    def open(self, mode=None):
        if not self.closed:
            return
        mode = mode or self._mode
        if "r" in mode and not os.path.exists(self._name):
            raise MissingSourceException(
                "File {} does not exist".format(self._name))
        if "r" not in mode:
            touch_dir(self._name)
        logger.debug("opening '%s' with mode %s", self._name, mode)
        self._mode = mode
        self._file = open(self._name, mode=mode)
        self._pos = self._file.tell() if "a" in mode else 0

    def close(self):
        if not self.closed and not self._std and self._name is not None:
            self._file.close()
            self._file = None

    def seek(self, offset):
        self._file.seek(offset)
        self._pos = offset

    def read(self, size=-1):
        data = self._file.read(size)
        self._pos += len(data)
        return data

    def readline(self):
        data = self._file.readline()
        self._pos += len(data)
        return data

    def write(self, data):
        self._file.write(data)
        self._pos += len(data)

    def flush(self):
        self._file.flush()

    def size(self):
        if not self.seekable:
            return -1
        try:
            return os.fstat(self._file.fileno()).st_size
        except (AttributeError, OSError):
            return len(self._file.getbuffer())

    def at_end(self):
        peek = getattr(self._file, "peek", None)
        if peek is not None:
            return not peek(1)
        if self.seekable:
            return self._file.tell() >= self.size()
        return False
