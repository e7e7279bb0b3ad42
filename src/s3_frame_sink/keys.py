"""
Object key format for stored frames. Single place for the convention.

Frame key format: {prefix}/frame{sequence:02d}.{extension}

Sequence numbers 0-9 are zero-padded to two digits; 10 and above are rendered
as-is, so lexical order stops matching frame order from frame 100 onwards.
Keys are still unique per sequence number.
"""

IMAGE_CONTENT_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "bmp": "image/bmp",
    "gif": "image/gif",
    "tiff": "image/tiff",
    "webp": "image/webp",
}

SUPPORTED_EXTENSIONS = frozenset(IMAGE_CONTENT_TYPES)


def build_frame_key(prefix: str, sequence_number: int, extension: str) -> str:
    """
    Build the object key for one frame.

    Format: {prefix}/frame{sequence_number:02d}.{extension}
    """
    return f"{prefix}/frame{sequence_number:02d}.{extension}"


def content_type_for(extension: str) -> str:
    """Return the MIME type stored with frames of this extension."""
    return IMAGE_CONTENT_TYPES.get(extension.lower(), "application/octet-stream")
