# -*- coding: utf-8 -*-
from .dataset import GalleryDataset
