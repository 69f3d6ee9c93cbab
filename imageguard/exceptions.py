"""Custom exceptions for the imageguard package."""


class ImageGuardError(Exception):
    """Base class for errors raised by imageguard."""


class ImageBackendError(ImageGuardError):
    """Raised when an image backend cannot decode, measure or encode a buffer.

    The sanitizer catches this per image block and replaces the block with a
    text placeholder, so a single bad image never aborts a tool result.
    """


class ExternalToolError(ImageBackendError):
    """Raised when the external image tool exits with a non-zero status."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ExternalToolTimeoutError(ExternalToolError):
    """Raised when the external image tool does not finish within its timeout."""


class ExternalToolOutputError(ExternalToolError):
    """Raised when the external image tool writes more output than allowed."""


class ImageReadError(ValueError, ImageGuardError):
    """Raised when a file read returns an image payload that cannot be trusted.

    Unlike backend failures this is never turned into a placeholder: an empty
    payload or a non-image file behind an image label means the caller asked
    for the wrong file.

    Common causes:
    - The read tool returned an empty image payload
    - The file is text (or PDF, ZIP, ...) but was labeled with an image type
    """

    def __init__(self, message: str, *, file_path: str) -> None:
        super().__init__(message)
        self.file_path = file_path


class ImagePayloadError(ImageGuardError):
    """Raised when the bytes of an image block are not an image.

    The sanitizer replaces such blocks with a text placeholder.
    """
