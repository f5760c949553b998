"""
Delimited text and sigset XML galleries.
"""
import logging
import math
import re
from xml.etree import ElementTree

from galleria.exceptions import InvalidRecordException, \
    MalformedHeaderException, MissingSourceException, NotSupportedException
from galleria.gallery import READING, WRITING, Gallery, ListingGallery, \
    register, register_gallery
from galleria.galleries.stream import StreamGallery
from galleria.record import Point, Record, Rect
from galleria.utils.file import FileProxy

logger = logging.getLogger(__name__)


class TxtCodec:
    """
    One file per line, optionally followed by a label after a space::

        <FILE> <LABEL>
    """
    def __init__(self, label=""):
        self.label = label

    def read_record(self, file):
        line = file.readline()
        if not line:
            return None
        line = line.decode("utf-8").strip()
        if not line:
            return Record()
        name, sep, label = line.rpartition(" ")
        if not sep:
            return Record(line)
        return Record(name, {"Label": label})

    def write_record(self, file, record):
        line = record.name
        if self.label:
            line += " {}".format(record.get(self.label, ""))
        file.write((line + "\n").encode("utf-8"))


class FlatCodec:
    """One :meth:`Record.flat` per line."""
    @staticmethod
    def read_record(file):
        line = file.readline()
        if not line:
            return None
        line = line.decode("utf-8").strip()
        return Record.from_flat(line) if line else Record()

    @staticmethod
    def write_record(file, record):
        file.write((record.flat() + "\n").encode("utf-8"))


register_gallery("txt", lambda d: StreamGallery(d, TxtCodec(d.get("label", ""))))
register_gallery("flat", lambda d: StreamGallery(d, FlatCodec))


class FileGallery(Gallery):
    """A gallery reading or writing a whole text file."""
    seekable = True

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._file = FileProxy(self.descriptor.name)

    def _read_open(self):
        self._use(READING)
        if self._file.closed:
            if not self.descriptor.exists():
                raise MissingSourceException(
                    "File {} does not exist".format(self.descriptor.name))
            self._file.open("rb")
            return True
        return False

    def _write_open(self):
        self._use(WRITING)
        if self._file.closed:
            self._file.open("wb")

    def _read_lines(self):
        self._read_open()
        self._file.seek(0)
        return [l.strip() for l in self._file.read().decode("utf-8").splitlines()
                if l.strip()]

    def total_size(self):
        self._read_open()
        return self._file.size()

    def position(self):
        return self._file.position

    def close(self):
        self._file.close()


def _csv_element(key, value, count=None):
    """
    Header words (``count`` is None) or values of one CSV cell group.

    Returns:
        (list of str, column count)
    """
    if isinstance(value, Point):
        words = [key + "_X", key + "_Y"] if count is None else \
                [str(value.x), str(value.y)]
    elif isinstance(value, Rect):
        words = [key + "_X", key + "_Y", key + "_Width", key + "_Height"] \
            if count is None else [str(v) for v in value]
    elif value is None or isinstance(value, (list, dict, bytes)):
        words = [key] if count is None else [str(math.nan)] * count
    else:
        words = [key] if count is None else [str(value)]

    if count is not None and len(words) != count:
        raise InvalidRecordException(
            "Inconsistent datatype for key {}, csv file cannot be generated"
            .format(key))
    return words, len(words)


@register("csv")
class CsvGallery(FileGallery):
    """
    Comma separated values with a header row.

    The first column is the record name, the others are metadata. Writing is
    buffered until :meth:`close`; ``Points`` and ``Rects`` are not written,
    points and rectangles span two and four columns.
    """
    _SPLIT = re.compile(r"\s*,\s*")

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self.headers = []
        self._records = []

    def read_block(self, max_count=None):
        max_count = max_count or self.block_size
        self._read_open()
        if self._file.at_end():
            self._file.seek(0)

        if self._file.position == 0:
            self.headers = self._SPLIT.split(
                self._file.readline().decode("utf-8").strip())

        records = []
        while len(records) < max_count and not self._file.at_end():
            line = self._file.readline().decode("utf-8").strip()
            words = self._SPLIT.split(line)
            if len(words) != len(self.headers):
                logger.warning("skipping csv line with %d columns instead of %d",
                               len(words), len(self.headers))
                continue
            record = Record(words[0], dict(zip(self.headers[1:], words[1:])))
            record.set("progress", self.position())
            records.append(record)

        return records, self._file.at_end()

    def write(self, record):
        self._use(WRITING)
        self._records.append(record)

    def close(self):
        if self._mode == WRITING and self._records:
            self._flush()
        super().close()

    def _flush(self):
        samples = {}
        for record in self._records:
            for key, value in record.metadata.items():
                samples.setdefault(key, value)
        samples.pop("Points", None)
        samples.pop("Rects", None)
        keys = sorted(samples)

        words, counts = ["File"], {}
        for key in keys:
            header, counts[key] = _csv_element(key, samples[key])
            words.extend(header)
        lines = [",".join(words)]

        for record in self._records:
            words = [record.name]
            for key in keys:
                words.extend(_csv_element(key, record.get(key), counts[key])[0])
            lines.append(",".join(words))

        self._write_open()
        self._file.write(("\n".join(lines) + "\n").encode("utf-8"))
        self._records = []


@register("landmarks")
class LandmarksGallery(ListingGallery, FileGallery):
    """
    Anonymous landmarks of images::

        file_name:x1,y1,x2,y2,...,xn,yn
    """
    def list_records(self):
        records = []
        for line in self._read_lines():
            words = line.split(":")
            if len(words) != 2:
                raise MalformedHeaderException(
                    "Expected exactly one ':' in: {}".format(line))
            values = [float(v) for v in words[1].split(",")]
            if len(values) % 2:
                raise MalformedHeaderException(
                    "Expected an even number of comma-separated values")
            record = Record(words[0])
            record.set_points(zip(values[0::2], values[1::2]))
            records.append(record)
        return records

    def write(self, record):
        raise NotSupportedException("Landmarks galleries can't be written")


@register("fddb")
class FDDBGallery(ListingGallery, FileGallery):
    """
    FDDB detections, see http://vis-www.cs.umass.edu/fddb/README.txt

    Rectangles (``x y width height confidence``) and ellipses
    (``major minor angle x y confidence``) both become a ``Face`` rectangle.
    """
    def list_records(self):
        lines = self._read_lines()
        records = []
        while lines:
            file_name = lines.pop(0)
            for _ in range(int(lines.pop(0))):
                detect = [float(v) for v in lines.pop(0).split()]
                record = Record(file_name)
                if len(detect) == 5:
                    face = Rect(*detect[:4])
                    record.set("Confidence", detect[4])
                elif len(detect) == 6:
                    radius, x, y = detect[1], detect[3], detect[4]
                    face = Rect(x - radius, y - radius, radius * 2, radius * 2)
                    record.set("Confidence", detect[5])
                else:
                    raise MalformedHeaderException("Unknown FDDB annotation format")
                record.set("Face", [face])
                record.set("Label", "face")
                records.append(record)
        return records

    def write(self, record):
        raise NotSupportedException("FDDB galleries can't be written")


@register("arff")
class ArffGallery(FileGallery):
    """Weka ARFF, one real attribute per matrix element plus the label."""
    def read_block(self, max_count=None):
        raise NotSupportedException("ARFF galleries can't be read")

    def write(self, record):
        self._use(WRITING)
        if self._file.closed:
            self._write_open()
            lines = ["% galleria records", "@RELATION galleria", ""]
            dimensions = 0 if record.matrix is None else record.matrix.size
            lines.extend("@ATTRIBUTE v{} REAL".format(i) for i in range(dimensions))
            lines.extend(["@ATTRIBUTE class string", "", "@DATA", ""])
            self._file.write("\n".join(lines).encode("utf-8"))

        values = [] if record.matrix is None else \
            ["{:g}".format(v) for v in record.matrix.ravel()]
        values.append("'{}'".format(record.get("Label", "")))
        self._file.write((",".join(values) + "\n").encode("utf-8"))


_RECT_KEYS = ("x", "y", "width", "height")


@register("xml")
class XmlGallery(ListingGallery, FileGallery):
    """
    Sigset XML::

        <biometric-signature-set>
          <biometric-signature name="alice">
            <presentation file-name="alice/1.jpg" Pose="frontal">
              <rect x="10" y="20" width="30" height="40"/>
            </presentation>
          </biometric-signature>
        </biometric-signature-set>

    Every presentation is a record labelled with the name of its signature.
    Its attributes are metadata unless ``ignoreMetadata`` is set, and its
    children with ``x``, ``y``, ``width`` and ``height`` are its ``Rects``.
    Writing is buffered until :meth:`close`.
    """
    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._records = []

    def list_records(self):
        self._read_open()
        self._file.seek(0)
        try:
            root = ElementTree.fromstring(self._file.read())
        except ElementTree.ParseError as e:
            raise MalformedHeaderException(
                "Invalid sigset {}: {}".format(self.descriptor.name, e)) from e

        ignore_metadata = self.descriptor.get_bool("ignoreMetadata")
        records = []
        for signature in root.iter("biometric-signature"):
            label = signature.get("name")
            if label is None:
                logger.warning("skipping biometric signature without name")
                continue
            for presentation in signature.iter("presentation"):
                record = Record(presentation.get("file-name", ""),
                                {"Label": label})
                if not ignore_metadata:
                    for key, value in presentation.attrib.items():
                        if key != "file-name":
                            record.set(key, value)
                record.set_rects([float(child.get(k)) for k in _RECT_KEYS]
                                 for child in presentation
                                 if all(k in child.attrib for k in _RECT_KEYS))
                records.append(record)
        return records

    def write(self, record):
        self._use(WRITING)
        self._records.append(record)

    def close(self):
        if self._mode == WRITING and self._records:
            self._flush()
        super().close()

    def _flush(self):
        ignore_metadata = self.descriptor.get_bool("ignoreMetadata")
        root = ElementTree.Element("biometric-signature-set")
        for record in self._records:
            signature = ElementTree.SubElement(
                root, "biometric-signature",
                {"name": str(record.get("Label", record.base_name))})
            presentation = ElementTree.SubElement(
                signature, "presentation", {"file-name": record.name})
            if not ignore_metadata:
                for key, value in record.metadata.items():
                    if key in ("Label", "progress") or value is None or \
                       isinstance(value, (list, tuple, dict, bytes)):
                        continue
                    presentation.set(key, str(value))
            for rect in record.rects():
                ElementTree.SubElement(presentation, "rect",
                                       {k: str(v) for k, v in zip(_RECT_KEYS, rect)})

        self._write_open()
        self._file.write(ElementTree.tostring(root, encoding="utf-8",
                                              xml_declaration=True))
        self._records = []
