import cv2 as cv
import numpy as np

from galleria.exceptions import InvalidRecordException, \
    MalformedHeaderException
from galleria.utils.file import touch_dir

IMAGE_SUFFIXES = ("bmp", "jpg", "jpeg", "png", "tiff")


def decode_image(buf):
    """
    Decode a compressed image, keeping its channels and depth as stored.
    """
    img = cv.imdecode(np.frombuffer(buf, np.uint8), cv.IMREAD_UNCHANGED)
    if img is None:
        raise MalformedHeaderException("Couldn't decode a {} bytes image"
                                       .format(len(buf)))
    return img


def read_image(path):
    img = cv.imread(path, cv.IMREAD_UNCHANGED)
    if img is None:
        raise MalformedHeaderException("Couldn't read image {}".format(path))
    return img


def write_image(path, img):
    touch_dir(path)
    if not cv.imwrite(path, img):
        raise InvalidRecordException("Couldn't write image {}".format(path))
