# -*- coding: utf-8 -*-
from . import stream, memory, directory, text, single, video
from .stream    import StreamGallery, UrlCodec, JsonCodec
from .memory    import MemoryGalleries, MemoryGallery, read_metadata
from .directory import DirectoryGallery, CrawlGallery
from .text      import CsvGallery, FDDBGallery, LandmarksGallery, ArffGallery, \
                       XmlGallery
from .single    import DefaultGallery, TemplateGallery, StatGallery, \
                       MatrixGallery
from .video     import SeqGallery, VideoGallery, WebcamGallery
