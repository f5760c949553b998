# -*- coding: utf-8 -*-
import hashlib
import json
import os


_SPECIAL = set(',[]="')


def split_options(text):
    """
    Split ``key=value`` pairs separated by commas, ignoring commas nested in
    brackets or quoted strings.
    """
    words, depth, quoted, escaped, start = [], 0, False, False, 0
    for i, c in enumerate(text):
        if quoted:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                quoted = False
        elif c == '"':
            quoted = True
        elif c in "[{(":
            depth += 1
        elif c in "]})":
            depth -= 1
        elif c == "," and depth == 0:
            words.append(text[start:i])
            start = i + 1
    words.append(text[start:])
    return [w.strip() for w in words if w.strip()]


def parse_value(text):
    try:
        return json.loads(text)
    except ValueError:
        return text


def format_value(value):
    if isinstance(value, str):
        if value and not (_SPECIAL & set(value)) and \
           parse_value(value) == value and value == value.strip():
            return value
    return json.dumps(value)


def parse_flat(text):
    """
    Parse ``name[key=value,...]`` into ``(name, {key: value})``.

    A bare key means ``True``. Values are JSON when they parse as JSON, plain
    strings otherwise.
    """
    text = text.strip()
    if not text.endswith("]") or "[" not in text:
        return text, {}

    name, _, body = text.partition("[")
    options = {}
    for word in split_options(body[:-1]):
        key, sep, value = word.partition("=")
        options[key.strip()] = parse_value(value.strip()) if sep else True
    return name.strip(), options


def format_flat(name, options):
    if not options:
        return name
    words = []
    for key, value in options.items():
        words.append("{}={}".format(key, format_value(value)))
    return "{}[{}]".format(name, ",".join(words))


class GalleryDescriptor:
    """
    Logical identity of a gallery: a path-like name plus free options.

    Args:
        name (str): path-like identity, its suffix selects the backend.
        options (dict, optional): backend configuration such as
            ``blockSize``, ``append``, ``remove`` or ``preservePath``.
    """
    def __init__(self, name="", options=None):
        self.name = name
        self.options = dict(options or {})

    @classmethod
    def parse(cls, text):
        if isinstance(text, GalleryDescriptor):
            return text
        return cls(*parse_flat(text))

    def __repr__(self):
        return "GalleryDescriptor({!r})".format(self.flat())

    def __str__(self):
        return self.name

    def __eq__(self, other):
        if not isinstance(other, GalleryDescriptor):
            return NotImplemented
        return self.name == other.name and self.options == other.options

    def __hash__(self):
        return hash((self.name, self.flat()))

    def flat(self):
        return format_flat(self.name, dict(sorted(self.options.items())))

    def hash(self):
        """Short digest of the name and options, stable across processes."""
        return hashlib.md5(self.flat().encode("utf-8")).hexdigest()[:8]

    @property
    def is_null(self):
        return not self.name

    @property
    def file_name(self):
        return os.path.basename(self.name)

    @property
    def base_name(self):
        return os.path.splitext(self.file_name)[0]

    @property
    def suffix(self):
        return os.path.splitext(self.file_name)[1][1:]

    @property
    def path(self):
        return os.path.dirname(self.name)

    def exists(self):
        return os.path.exists(self.name)

    def contains(self, key):
        return key in self.options

    def get(self, key, default=None):
        return self.options.get(key, default)

    def get_bool(self, key, default=False):
        value = self.options.get(key, default)
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes", "on")
        return bool(value)

    def get_int(self, key, default=0):
        return int(self.options.get(key, default))

    def set(self, key, value):
        self.options[key] = value

    def without(self, *keys):
        return GalleryDescriptor(self.name, {k: v for k, v in self.options.items()
                                             if k not in keys})

    def with_name(self, name):
        return GalleryDescriptor(name, self.options)

    def strip_suffix(self, suffix):
        """Descriptor for the gallery this one wraps, e.g. ``a.gal.mem``."""
        suffix = "." + suffix
        if self.name.endswith(suffix):
            return self.with_name(self.name[:-len(suffix)])
        return self
