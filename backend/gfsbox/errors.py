class GFSBoxError(Exception):
    """Base class for errors raised at the validation and I/O boundaries."""


class InvalidPolynomialError(GFSBoxError, ValueError):
    def __init__(self, poly):
        super().__init__(f"Reduction polynomial must be degree 8 (0x100..0x1FF), got {poly!r}")
        self.poly = poly


class InvalidSBoxError(GFSBoxError):
    pass


class IncompleteSBoxError(InvalidSBoxError):
    def __init__(self, found: int, expected: int = 256):
        super().__init__(f"Incomplete S-box: expected {expected} values, found {found}")
        self.found = found
        self.expected = expected


class OutputWriteError(GFSBoxError):
    def __init__(self, path, reason):
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = path
        self.reason = reason
