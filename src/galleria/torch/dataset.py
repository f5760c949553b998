# -*- coding: utf-8 -*-
from typing import Callable, Optional

import torch.utils.data

from galleria.descriptor import GalleryDescriptor
from galleria.gallery import make


class GalleryDataset(torch.utils.data.IterableDataset):
    """
    Streams the records of a gallery, one pass per iteration.

    Args:
        descriptor (GalleryDescriptor or str): the gallery to read.
        transform (callable, optional): applied to every record.
        block_size (int, optional): records fetched per block.
    """
    def __init__(self, descriptor, transform: Optional[Callable] = None,
                 block_size: Optional[int] = None):
        torch.utils.data.IterableDataset.__init__(self)
        self.descriptor = GalleryDescriptor.parse(descriptor)
        self.transform = transform
        self.block_size = block_size

    def __iter__(self):
        with make(self.descriptor) as gallery:
            done = False
            while not done:
                records, done = gallery.read_block(self.block_size)
                for record in records:
                    yield self.transform(record) if self.transform else record
