"""
Galleries mapping a directory tree to records, one per file.
"""
import fnmatch
import logging
import os
import shutil
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from galleria.exceptions import NotSupportedException
from galleria.gallery import DIRECTORY, WRITING, ListingGallery, register
from galleria.record import Record
from galleria.utils.file import list_files, natural_sort
from galleria.utils.image import IMAGE_SUFFIXES, write_image

logger = logging.getLogger(__name__)

# Writing to disk in parallel is not safe on every platform
_disk_lock = threading.Lock()

# Subfolders listed concurrently
MAX_WORKERS = 32


def get_records(directory, recursive=True):
    """A record per file under ``directory``, labelled with its name."""
    label = os.path.basename(os.path.normpath(directory))
    return [Record(path, {"Label": label})
            for path in list_files(directory, recursive=recursive)]


@register(DIRECTORY)
class DirectoryGallery(ListingGallery):
    """
    Reads and writes records to and from folders.

    Files of each immediate subfolder, listed in parallel and labelled with
    the subfolder name, come first, then the files of the root folder.

    Options:
        glob: keep only the files whose name matches this pattern.
        preservePath: write records under their own relative path.
        newFormat: extension replacing the one of written records.
    """
    def __init__(self, descriptor):
        super().__init__(descriptor)
        self._size = None
        if not self.descriptor.is_null:
            os.makedirs(self.descriptor.name, exist_ok=True)

    def list_records(self):
        # A null gallery is an idiom to initialize algorithms
        if self.descriptor.is_null:
            return []

        root = self.descriptor.name
        subdirs = [os.path.join(root, entry)
                   for entry in natural_sort(os.listdir(root))
                   if os.path.isdir(os.path.join(root, entry))]

        records = []
        if subdirs:
            workers = min(MAX_WORKERS, len(subdirs))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(get_records, subdir)
                           for subdir in subdirs]
                for future in futures:
                    records.extend(future.result())
        records.extend(get_records(root, recursive=False))

        pattern = self.descriptor.get("glob")
        if pattern:
            records = [r for r in records
                       if fnmatch.fnmatchcase(r.file_name, pattern)]

        logger.debug("found %d files under '%s'", len(records), root)
        return records

    def write(self, record):
        self._use(WRITING)
        if self.descriptor.is_null:
            return

        destination = self.descriptor.name
        if self.descriptor.get_bool("preservePath"):
            destination = os.path.join(destination,
                                       record.path.lstrip("/\\"))
        new_format = self.descriptor.get("newFormat")
        destination = os.path.join(
            destination,
            record.base_name + new_format if new_format else record.file_name)

        with _disk_lock:
            if record.is_empty:
                os.makedirs(os.path.dirname(destination), exist_ok=True)
                shutil.copyfile(record.resolved(), destination)
            else:
                write_image(destination, record.matrix)

    def total_size(self):
        if self._size is None:
            self._size = 0 if self.descriptor.is_null else \
                len(os.listdir(self.descriptor.name))
        return self._size


@register("crawl")
class CrawlGallery(ListingGallery):
    """
    Crawl a root location for image files.

    The root is the descriptor name without ``.crawl``. Without root, the
    home directory is crawled if ``autoRoot`` is set, otherwise roots are
    read from standard input, one per line.

    Options:
        depth (int): maximum depth of the crawl.
        depthFirst (bool): visit subfolders before files.
        images (int): stop after this many images.
        json (bool): store the path under ``URL`` instead of the name.
        timeLimit (int): stop after this many seconds.
    """
    def __init__(self, descriptor):
        super().__init__(descriptor)
        self.depth = self.descriptor.get_int("depth", sys.maxsize)
        self.depth_first = self.descriptor.get_bool("depthFirst")
        self.images = self.descriptor.get_int("images", sys.maxsize)
        self.json = self.descriptor.get_bool("json")
        self.time_limit = self.descriptor.get_int("timeLimit", sys.maxsize)
        self._records = None

    def _crawl(self, url, depth=0):
        if len(self._records) >= self.images or depth >= self.depth or \
           time.monotonic() - self._start >= self.time_limit:
            return

        if url.startswith("file://"):
            url = url[len("file://"):]

        if os.path.isdir(url):
            entries = [os.path.join(url, e) for e in natural_sort(os.listdir(url))]
            files = [e for e in entries if os.path.isfile(e)]
            subdirs = [e for e in entries if os.path.isdir(e)]
            for entry in (subdirs + files if self.depth_first else files + subdirs):
                self._crawl(entry, depth + 1)
        elif os.path.isfile(url):
            if os.path.splitext(url)[1][1:].lower() in IMAGE_SUFFIXES:
                url = "file://" + os.path.realpath(url)
                self._records.append(Record(metadata={"URL": url}) if self.json
                                     else Record(url))

    def _init(self):
        self._records = []
        self._start = time.monotonic()
        root = self.descriptor.strip_suffix("crawl").name
        if root != self.descriptor.name and root:
            self._crawl(root)
        elif self.descriptor.get_bool("autoRoot"):
            self._crawl(os.path.expanduser("~"))
        else:
            for line in sys.stdin:
                line = line.strip()
                if line:
                    self._crawl(line)

    def list_records(self):
        if self._records is None:
            self._init()
        return self._records

    def write(self, record):
        raise NotSupportedException("Crawl galleries can't be written")

    def total_size(self):
        if self._records is None:
            self._init()
        return len(self._records)
