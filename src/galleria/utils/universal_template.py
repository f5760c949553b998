import numpy as np

from galleria.exceptions import InvalidRecordException, \
    TruncatedStreamException
from galleria.record import Point, Record, Rect
from galleria.utils.file import read_exactly

UT_HEADER = np.dtype([("image_id",     "V16"),  # opaque identifier
                      ("algorithm_id", "<i4"),
                      ("x",            "<u4"),
                      ("y",            "<u4"),
                      ("width",        "<u4"),
                      ("height",       "<u4"),
                      ("label",        "<u4"),
                      ("url_size",     "<u4"),  # includes the NUL terminator
                      ("fv_size",      "<u4")])
EYES = np.dtype("<u4")
EYES_SIZE = 4 * EYES.itemsize

# Algorithm ids whose header describes a face with eye landmarks
FACE_ALGORITHMS = (-1, -2, -3)


def is_face_algorithm(algorithm_id):
    return algorithm_id in FACE_ALGORITHMS


def read_record(file):
    """
    Read the next universal template.

    Returns ``None`` at a clean end of stream, raises
    :class:`TruncatedStreamException` when a template is cut short.
    """
    header_buf = read_exactly(file, UT_HEADER.itemsize, allow_eof=True)
    if not header_buf:
        return None

    header = np.frombuffer(header_buf, UT_HEADER)[0]
    url_size = int(header["url_size"])
    fv_size = int(header["fv_size"])
    algorithm_id = int(header["algorithm_id"])
    data = read_exactly(file, url_size + fv_size)

    record = Record()
    record.set("ImageID", header["image_id"].tobytes().hex())
    record.set("AlgorithmID", algorithm_id)
    record.set("URL", data[:url_size].split(b"\0", 1)[0].decode("latin-1"))

    payload = data[url_size:]
    if is_face_algorithm(algorithm_id):
        if len(payload) < EYES_SIZE:
            raise TruncatedStreamException(
                "Face template needs {} bytes of landmarks, got {}"
                .format(EYES_SIZE, len(payload)))
        eyes = np.frombuffer(payload[:EYES_SIZE], EYES)
        payload = payload[EYES_SIZE:]
        record.set("FrontalFace", Rect(int(header["x"]), int(header["y"]),
                                       int(header["width"]),
                                       int(header["height"])))
        record.set("First_Eye", Point(int(eyes[0]), int(eyes[1])))
        record.set("Second_Eye", Point(int(eyes[2]), int(eyes[3])))
    else:
        record.set("X", int(header["x"]))
        record.set("Y", int(header["y"]))
        record.set("Width", int(header["width"]))
        record.set("Height", int(header["height"]))
    record.set("Label", int(header["label"]))

    # copy: we don't want a view on the read buffer
    record.matrix = np.frombuffer(payload, np.uint8).reshape(1, -1).copy()
    return record


def encode_record(record):
    try:
        image_id = bytes.fromhex(str(record.get("ImageID", "0" * 32)))
    except ValueError as e:
        raise InvalidRecordException("ImageID is not hexadecimal") from e
    if len(image_id) != 16:
        raise InvalidRecordException(
            "Expected 16-byte ImageID, got: {} bytes.".format(len(image_id)))

    algorithm_id = 0 if record.is_empty or record.fte else \
        int(record.get("AlgorithmID", 0))
    url = str(record.get("URL", record.name)).encode("latin-1") + b"\0"

    eyes = b""
    if is_face_algorithm(algorithm_id):
        x, y, width, height = record.get("FrontalFace", Rect(0, 0, 0, 0))
        first_eye = record.get("First_Eye", Point(0, 0))
        second_eye = record.get("Second_Eye", Point(0, 0))
        eyes = np.array([first_eye[0], first_eye[1],
                         second_eye[0], second_eye[1]], EYES).tobytes()
    else:
        x = record.get("X", 0)
        y = record.get("Y", 0)
        width = record.get("Width", 0)
        height = record.get("Height", 0)

    signature = b"" if algorithm_id == 0 else \
        np.ascontiguousarray(record.matrix).tobytes()

    header = np.zeros(1, UT_HEADER)
    header["image_id"] = np.void(image_id)
    header["algorithm_id"] = algorithm_id
    header["x"] = int(x)
    header["y"] = int(y)
    header["width"] = int(width)
    header["height"] = int(height)
    header["label"] = int(record.get("Label", 0))
    header["url_size"] = len(url)
    header["fv_size"] = len(eyes) + len(signature)

    return header.tobytes() + url + eyes + signature


def write_record(file, record):
    file.write(encode_record(record))
