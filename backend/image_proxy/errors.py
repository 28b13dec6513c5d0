"""
Resolution Errors

Error kinds raised while resolving and materializing an image.
Every one of them ends as a 404 at the HTTP boundary; the kind is kept
for logging only.
"""

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """Why a resolution attempt ended without an image"""
    LOOKUP_FAILURE = "lookup_failure"            # asset not indexed upstream
    NO_IMAGE_FOUND = "no_image_found"            # no candidate in any standard
    UNSUPPORTED_LOCATOR = "unsupported_locator"  # candidate with unknown prefix
    DECODE_FAILURE = "decode_failure"            # bad base64 / data URI
    REMOTE_FETCH_FAILURE = "remote_fetch_failure"
    UPLOAD_FAILURE = "upload_failure"
    SERVE_FAILURE = "serve_failure"
    INTERNAL = "internal"


class ResolutionError(Exception):
    """Base class for failures inside the resolution branch."""

    kind: FailureKind = FailureKind.INTERNAL

    def __init__(self, message: str, kind: Optional[FailureKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class LookupFailure(ResolutionError):
    kind = FailureKind.LOOKUP_FAILURE


class NoImageFound(ResolutionError):
    kind = FailureKind.NO_IMAGE_FOUND


class UnsupportedLocatorFormat(ResolutionError):
    kind = FailureKind.UNSUPPORTED_LOCATOR


class ImageDecodeError(ResolutionError):
    kind = FailureKind.DECODE_FAILURE


class RemoteFetchFailure(ResolutionError):
    kind = FailureKind.REMOTE_FETCH_FAILURE


class UploadFailure(ResolutionError):
    kind = FailureKind.UPLOAD_FAILURE


class ServeFailure(ResolutionError):
    kind = FailureKind.SERVE_FAILURE
