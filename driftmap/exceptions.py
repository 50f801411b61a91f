"""Custom exceptions for DriftMap."""


class DriftMapError(Exception):
    """Base exception for DriftMap errors."""
    pass


class DocumentLoadError(DriftMapError):
    """Raised when an OpenAPI document cannot be read or parsed."""
    def __init__(self, message: str, location: str = None, line: int = None, column: int = None):
        super().__init__(message)
        self.message = message
        self.location = location
        self.line = line
        self.column = column


class UnresolvableReferenceError(DriftMapError):
    """Raised when a $ref cannot be resolved to a document location."""
    def __init__(self, ref: str, reason: str = None):
        message = f"Cannot resolve $ref: {ref}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.ref = ref
        self.reason = reason


class UnknownKindError(DriftMapError):
    """Raised in strict mode when the visitor has no handler for an object kind."""
    def __init__(self, kind: str, path: str = None):
        super().__init__(f"No visitor registered for object kind '{kind}' at: {path}")
        self.kind = kind
        self.path = path


class TraversalCancelledError(DriftMapError):
    """Raised when results are requested from a cancelled run."""
    def __init__(self, stage: str = "distribution"):
        super().__init__(f"Change {stage} was cancelled; no partial results are available")
        self.stage = stage


class RenderError(DriftMapError):
    """Raised when a report cannot be rendered."""
    def __init__(self, output_format: str, message: str):
        super().__init__(f"Unable to render {output_format} report: {message}")
        self.output_format = output_format
        self.message = message
