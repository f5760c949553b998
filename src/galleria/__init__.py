# -*- coding: utf-8 -*-
from .config      import Settings, get_settings, set_settings
from .descriptor  import GalleryDescriptor
from .exceptions  import GalleryException
from .record      import Point, Rect, Record
from .gallery     import Gallery, make, register, register_gallery, registered
from .            import galleries
from .galleries   import MemoryGalleries, read_metadata
