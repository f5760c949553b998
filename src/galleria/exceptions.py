class GalleryException(Exception):
    '''Base class to extend in order to throw exceptions in galleria.

    Every exception raised by a gallery is terminal for the instance that
    raised it: the caller should release the gallery.
    '''


class MalformedHeaderException(GalleryException):
    '''A fixed header check failed while opening a source.'''
    pass


class MalformedRecordException(MalformedHeaderException):
    '''The fields of a record don't decode: bad text, dtype or shape.'''
    pass


class TruncatedStreamException(GalleryException):
    '''The stream ended in the middle of a record.'''
    pass


class UnsupportedFormatException(GalleryException):
    pass


class MissingSourceException(GalleryException, FileNotFoundError):
    pass


class NotSupportedException(GalleryException, NotImplementedError):
    '''The backend does not implement this direction (read or write).'''
    pass


class GalleryModeException(GalleryException):
    '''A gallery used for reading was asked to write, or the opposite.'''
    pass


class InvalidRecordException(GalleryException, ValueError):
    '''The record can't be represented by the target format.'''
    pass
