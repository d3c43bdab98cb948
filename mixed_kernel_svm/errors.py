class KernelError(Exception):
    """Base class for faults raised while evaluating the mixed kernel."""


class DimensionMismatch(KernelError, ValueError):
    def __init__(self, left, right, what='records'):
        super().__init__(f"Dimension mismatch between {what}: {left} != {right}")
        self.left = left
        self.right = right


class MissingParameter(KernelError, KeyError):
    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        # KeyError would repr() the message
        return self.message


class UnrecognizedKernel(KernelError, ValueError):
    def __init__(self, tag):
        super().__init__(f"Unrecognized kernel family: {tag!r}")
        self.tag = tag
