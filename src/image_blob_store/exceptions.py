"""Custom exceptions for image blob store conversion."""

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class BlobStoreError(Exception):
    """Base exception for all conversion errors."""

    def __init__(self, message: str, path: Optional[PathLike] = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class InputDefect(BlobStoreError):
    """Raised when the source bundle is missing data or is malformed."""

    pass


class MetadataNotFound(InputDefect):
    """Raised when `repositories` or `manifest.json` is absent."""

    pass


class MetadataMalformed(InputDefect):
    """Raised when a metadata file is not valid JSON or has the wrong shape."""

    pass


class ConfigMissing(InputDefect):
    """Raised when the image config blob is not in the source bundle."""

    pass


class LayerReadError(InputDefect):
    """Raised when a layer file cannot be opened or read."""

    pass


class DigestMismatch(InputDefect):
    """Raised when a blob's content does not match its claimed digest."""

    pass


class ExtractionError(InputDefect):
    """Raised when the inbound tar archive cannot be unpacked."""

    pass


class FilesystemError(BlobStoreError):
    """Raised when the destination tree cannot be written."""

    pass


class LayoutError(FilesystemError):
    """Raised when the destination directory skeleton cannot be created."""

    pass


class RelocationFailed(FilesystemError):
    """Raised when a blob cannot be moved into the blob directory."""

    pass


class LayerWriteError(FilesystemError):
    """Raised when a layer cannot be written or renamed at the destination."""

    pass


class ManifestWriteError(FilesystemError):
    """Raised when the target manifest cannot be persisted."""

    pass


class PackagingError(FilesystemError):
    """Raised when the finished tree cannot be written to an archive."""

    pass


class PipelineError(BlobStoreError):
    """Terminal error raised by the pipeline driver.

    Attributes:
        stage: Last stage the pipeline reached before failing
        cause: The component error that aborted the run
    """

    def __init__(self, stage: str, cause: BaseException) -> None:
        path = getattr(cause, "path", None)
        message = f"{stage} failed: {cause}"
        if path is not None:
            message = f"{message} (path: {path})"
        super().__init__(message, path)
        self.stage = stage
        self.cause = cause


class CleanupWarning(UserWarning):
    """Category for temporary directory cleanup failures (logged only)."""

    pass
