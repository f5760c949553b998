"""
Galleries backed by a single byte stream: a file or a standard stream.
"""
import json
import logging
import os

from galleria.exceptions import MissingSourceException
from galleria.gallery import READING, WRITING, Gallery, register_gallery
from galleria.record import Record, decode_value, encode_value
from galleria.utils import framing, universal_template
from galleria.utils.file import FileProxy

logger = logging.getLogger(__name__)


class StreamGallery(Gallery):
    """
    Reads and writes the records of a stream with a codec.

    The codec is any object with ``read_record(file)``, returning ``None`` at
    a clean end of stream, and ``write_record(file, record)``.

    Positions are byte offsets. A file is rewound when a block is asked after
    its end was reached; a pipe is read once.

    Args:
        descriptor (GalleryDescriptor or str): the path, or ``stdin``,
            ``stdout`` and ``stderr`` as base name. Options ``append`` and
            ``remove`` apply when writing.
        codec: the record codec.
    """
    def __init__(self, descriptor, codec):
        super().__init__(descriptor)
        self.codec = codec
        self._file = FileProxy(self.descriptor.name)

    @property
    def seekable(self):
        return not self._file.standard

    def _read_open(self):
        self._use(READING)
        if self._file.closed:
            if not self.descriptor.exists():
                raise MissingSourceException(
                    "File {} does not exist".format(self.descriptor.name))
            self._file.open("rb")

    def _write_open(self):
        self._use(WRITING)
        if self._file.closed:
            if self.descriptor.get_bool("remove") and self.descriptor.exists():
                logger.debug("removing '%s'", self.descriptor.name)
                os.remove(self.descriptor.name)
            self._file.open("ab" if self.descriptor.get_bool("append") else "wb")

    def read_block(self, max_count=None):
        max_count = max_count or self.block_size
        self._read_open()
        if self._file.at_end():
            if not self._file.seekable:
                return [], True
            self._file.seek(0)

        records = []
        while len(records) < max_count and not self._file.at_end():
            record = self.codec.read_record(self._file)
            if record is not None and not (record.is_empty and record.is_null):
                record.set("progress", self.position())
                records.append(record)

            # Pipes: hand over records as soon as they are available
            if not self._file.seekable:
                break

        return records, self._file.at_end()

    def write(self, record):
        self._write_open()
        self.codec.write_record(self._file, record)
        if not self._file.seekable:
            self._file.flush()

    def total_size(self):
        self._read_open()
        return self._file.size()

    def position(self):
        return self._file.position

    def close(self):
        if not self._file.closed and self._mode == WRITING:
            self._file.flush()
        self._file.close()


class UrlCodec:
    """Newline separated URLs."""
    @staticmethod
    def read_record(file):
        line = file.readline()
        if not line:
            return None
        url = " ".join(line.decode("utf-8").split())
        return Record(metadata={"URL": url}) if url else Record()

    @staticmethod
    def write_record(file, record):
        url = record.get("URL", record.name)
        if url:
            file.write(url.encode("utf-8") + b"\n")


class JsonCodec:
    """Newline separated JSON objects, the name under ``name``."""
    @staticmethod
    def read_record(file):
        line = file.readline()
        if not line:
            return None
        line = line.strip()
        if not line:
            return Record()
        obj = json.loads(line.decode("utf-8"))
        name = obj.pop("name", "")
        return Record(name, {k: decode_value(v) for k, v in obj.items()})

    @staticmethod
    def write_record(file, record):
        obj = {"name": record.name} if record.name else {}
        obj.update(encode_value(record.metadata))
        if obj:
            file.write(json.dumps(obj).encode("utf-8") + b"\n")


def _stream_factory(codec):
    def factory(descriptor):
        return StreamGallery(descriptor, codec)
    return factory


register_gallery("gal", _stream_factory(framing))
register_gallery("ut", _stream_factory(universal_template))
register_gallery("url", _stream_factory(UrlCodec))
register_gallery("json", _stream_factory(JsonCodec))
