class MindMapError(Exception):
    """Base class for recoverable mind-map failures."""


class ParseError(MindMapError):
    """Document text could not be turned into a node tree."""


class StorageError(MindMapError):
    """Reading or writing a document failed."""

    def __init__(self, handle: str, message: str):
        super().__init__(f"{handle}: {message}")
        self.handle = handle
