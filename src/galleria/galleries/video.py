"""
Galleries of video frames.
"""
import logging
import threading

import cv2 as cv

from galleria.exceptions import MissingSourceException, NotSupportedException
from galleria.gallery import READING, Gallery, make, register
from galleria.record import Record
from galleria.utils import seq
from galleria.utils.image import decode_image

logger = logging.getLogger(__name__)


@register("seq")
class SeqGallery(Gallery):
    """
    Frames of a Norpix sequence file.

    The header is read and the frame offsets computed on the first block.
    Each frame carries the ``Description`` of the file and, when the
    ``annotations`` option names a gallery with one record per frame, the
    ``Rects`` of the annotation of that frame.

    Args:
        descriptor (GalleryDescriptor or str): path of the ``.seq`` file.
        decoder (callable, optional): turns compressed frame bytes into a
            pixel matrix. (default: :func:`galleria.utils.image.decode_image`)
    """
    seekable = True

    def __init__(self, descriptor, decoder=decode_image):
        super().__init__(descriptor)
        self.decoder = decoder
        self.header = None
        self.offsets = None
        self.annotations = []
        self._file = None
        self._index = 0

    @property
    def is_open(self):
        return self._file is not None

    def open(self):
        if self.is_open:
            return
        try:
            self._file = open(self.descriptor.name, "rb")
        except FileNotFoundError as e:
            raise MissingSourceException("Failed to open file {} for reading"
                                         .format(self.descriptor.name)) from e
        try:
            self.header = seq.read_header(self._file)
            self.offsets = seq.get_frame_offsets(self._file, self.header)
        except Exception:
            self.close()
            raise
        self._index = 0

        annotations = self.descriptor.get("annotations")
        if annotations:
            with make(annotations) as gallery:
                self.annotations = gallery.read()
        logger.debug("opened '%s' with %d frames", self.descriptor.name,
                     len(self.offsets))

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def read_block(self, max_count=None):
        self._use(READING)
        max_count = max_count or self.block_size
        self.open()
        if self._index >= len(self.offsets):
            self._index = 0

        records = []
        while len(records) < max_count and self._index < len(self.offsets):
            matrix = seq.read_frame_at(self._file, self.header,
                                       self.offsets[self._index], self.decoder)
            record = Record(self.descriptor.name,
                            {"Description": self.header.description},
                            matrix)
            if self._index < len(self.annotations):
                record.set_rects(self.annotations[self._index].rects())
            record.set("progress", self._index)
            records.append(record)
            self._index += 1

        return records, self._index >= len(self.offsets)

    def write(self, record):
        raise NotSupportedException("Sequence galleries can't be written")

    def total_size(self):
        self.open()
        return len(self.offsets)

    def position(self):
        return self._index


@register("avi", "wmv", "mp4")
class VideoGallery(Gallery):
    """
    Frames of a video read with :class:`cv2.VideoCapture`.

    The capture is released at the end of the video, which is read once.
    """
    # opening captures is not thread safe everywhere
    _open_lock = threading.Lock()

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._video = None
        self._index = 0
        self._done = False

    def _source(self):
        return self.descriptor.name

    def _open(self):
        with self._open_lock:
            video = cv.VideoCapture(self._source())
        if not video.isOpened():
            raise MissingSourceException("Failed to open {}"
                                         .format(self.descriptor.name))
        self._video = video
        self._index = 0

    def read_block(self, max_count=None):
        self._use(READING)
        max_count = max_count or self.block_size
        if self._done:
            return [], True
        if self._video is None:
            self._open()

        records = []
        while len(records) < max_count:
            ok, frame = self._video.read()
            if not ok:
                self.close()
                self._done = True
                break
            # copy: the capture may reuse its buffer
            records.append(Record(self.descriptor.name,
                                  {"progress": self._index}, frame.copy()))
            self._index += 1
        return records, self._done

    def write(self, record):
        raise NotSupportedException("Video galleries can't be written")

    def position(self):
        return self._index

    def close(self):
        if self._video is not None:
            self._video.release()
            self._video = None


@register("webcam")
class WebcamGallery(VideoGallery):
    """Frames of a capture device, ``0.webcam`` opens device 0."""
    def _source(self):
        try:
            return int(self.descriptor.base_name)
        except ValueError as e:
            raise MissingSourceException("Expected integer basename, got {}"
                                         .format(self.descriptor.base_name)) from e
