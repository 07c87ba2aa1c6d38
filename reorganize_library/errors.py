"""
Error types and per-item skip reasons for the Library Reorganizer.

Only an unavailable SOURCE or LIBRARY root (and a failed planner call) is
raised as an exception. Everything that goes wrong for a single item is
reported as a reason string inside a result record instead.
"""


class ReorganizeError(Exception):
    """Base class for all errors raised by this package."""


class SourceRootUnavailable(ReorganizeError):
    """The SOURCE root cannot be listed at the start of a scan."""


class LibraryRootUnavailable(ReorganizeError):
    """The LIBRARY root cannot be listed at the start of indexing."""


class PlannerFailure(ReorganizeError):
    """The planner returned nothing usable (API error, bad JSON, bad schema)."""


class ScanCancelled(ReorganizeError):
    """A scan or index was cancelled before it produced a result."""


class MoveUnsupported(ReorganizeError):
    """The filesystem cannot rename this item in place (e.g. cross-device)."""


class CopyVerificationError(ReorganizeError):
    """A fallback copy does not match its original; the original was kept."""


class WorkspaceError(ReorganizeError):
    """A workspace artifact could not be read or written."""


# -----------------------------------------------------------------------------
# Per-item reasons (machine readable)
# -----------------------------------------------------------------------------

SOURCE_NOT_FOUND = "source not found"
MISSING_CATEGORY = "missing category"
INVALID_DEPTH = "invalid destination depth"
INVALID_NAME = "invalid destination name"
DUPLICATE_PLACEMENT = "duplicate placement"
PERMISSION_DENIED = "permission denied"
DESTINATION_NOT_FOUND = "destination not found"
COPY_VERIFY_FAILED = "copy verification failed"
CANCELLED = "cancelled"
CROSS_DEVICE = "cross-device move not allowed"
DESTINATION_INSIDE_SOURCE = "destination inside source item"


def io_error_reason(exc: OSError, missing: str = SOURCE_NOT_FOUND) -> str:
    """Turn an OSError into a skip reason."""
    if isinstance(exc, PermissionError):
        return PERMISSION_DENIED
    if isinstance(exc, FileNotFoundError):
        return missing
    detail = exc.strerror or str(exc) or exc.__class__.__name__
    return f"I/O error: {detail}"
