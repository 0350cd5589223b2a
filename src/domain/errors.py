from __future__ import annotations


class ProfileNotFoundError(LookupError):
    """Raised when a profile id does not exist."""


class DuplicateEmailError(ValueError):
    """Raised when another profile already uses the email."""


class QrDecodeError(ValueError):
    """Raised when an image or payload cannot be turned into profile data."""


class CameraError(RuntimeError):
    """Raised by camera adapters when a device cannot be opened or read."""
