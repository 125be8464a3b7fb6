# ABOUTME: Cover image validation: rejects placeholders, tiny images, and odd aspect ratios.
# ABOUTME: Reads pixel dimensions from JPEG, PNG, and GIF headers without an imaging library.

import logging
import struct
from dataclasses import dataclass

from libris.metadata.http import HttpClient, MetadataFetchError

logger = logging.getLogger(__name__)

# Real covers are rarely under 15 KB; the OL "no cover" image is 43 bytes.
MIN_FILE_SIZE = 15_000
MIN_WIDTH = 150
MIN_HEIGHT = 200
# Height / width. Book covers are portrait, roughly 1.5.
MIN_ASPECT = 1.2
MAX_ASPECT = 2.0

# Google serves the same "image not available" art under this volume id.
PLACEHOLDER_MARKERS = ("id=UNJMswEACAAJ",)

REASON_PLACEHOLDER = "placeholder"
REASON_UNREACHABLE = "unreachable"
REASON_TOO_SMALL = "too_small"
REASON_DIMENSIONS = "dimensions"
REASON_ASPECT = "aspect_ratio"

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
# Start-of-frame markers carry the frame size. C4, C8, and CC share the
# range but are DHT/JPG/DAC segments.
_JPEG_SOF_MARKERS = frozenset(range(0xC0, 0xD0)) - {0xC4, 0xC8, 0xCC}
# Markers with no length field.
_JPEG_STANDALONE_MARKERS = frozenset({0x01, 0xD8, *range(0xD0, 0xD8)})


@dataclass(frozen=True)
class CoverCheck:
    """Outcome of validating one cover URL."""

    url: str
    valid: bool
    reason: str | None = None
    byte_size: int | None = None
    width: int | None = None
    height: int | None = None


def _jpeg_dimensions(data: bytes) -> tuple[int, int] | None:
    """Walk JPEG segments until a start-of-frame marker."""
    i = 2
    while i + 9 <= len(data):
        if data[i] != 0xFF:
            return None
        marker = data[i + 1]
        if marker == 0xFF:
            # Fill byte before a marker.
            i += 1
            continue
        if marker in _JPEG_SOF_MARKERS:
            height, width = struct.unpack(">HH", data[i + 5 : i + 9])
            return width, height
        if marker in _JPEG_STANDALONE_MARKERS:
            i += 2
            continue
        (segment_length,) = struct.unpack(">H", data[i + 2 : i + 4])
        i += 2 + segment_length
    return None


def image_dimensions(data: bytes) -> tuple[int, int] | None:
    """Return (width, height) for JPEG, PNG, or GIF bytes; None if unrecognized."""
    if data[:2] == b"\xff\xd8":
        return _jpeg_dimensions(data)
    if data[:8] == _PNG_SIGNATURE and len(data) >= 24 and data[12:16] == b"IHDR":
        width, height = struct.unpack(">II", data[16:24])
        return width, height
    if data[:6] in _GIF_SIGNATURES and len(data) >= 10:
        width, height = struct.unpack("<HH", data[6:10])
        return width, height
    return None


def is_placeholder_url(url: str) -> bool:
    return any(marker in url for marker in PLACEHOLDER_MARKERS)


class CoverValidator:
    """Decides whether a cover URL points at a usable book cover.

    Checks run cheapest first: known placeholder URLs are rejected without
    a download, then the body is fetched in full and checked for size and,
    when the header can be parsed, for dimensions and aspect ratio. Images
    whose format is not recognized are judged on size alone.
    """

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    def validate(self, url: str, *, check_geometry: bool = True) -> CoverCheck:
        """Download and check one cover.

        Args:
            url: The cover URL to check.
            check_geometry: When False, skip the dimension and aspect checks
                (author portraits are often square).
        """
        if is_placeholder_url(url):
            return CoverCheck(url=url, valid=False, reason=REASON_PLACEHOLDER)

        try:
            data = self._http.get_bytes(url)
        except MetadataFetchError as exc:
            logger.debug("Cover download failed for %s: %s", url, exc)
            return CoverCheck(url=url, valid=False, reason=REASON_UNREACHABLE)

        return self.evaluate(url, data, check_geometry=check_geometry)

    def evaluate(self, url: str, data: bytes, *, check_geometry: bool = True) -> CoverCheck:
        """Judge already-downloaded image bytes."""
        size = len(data)
        if size < MIN_FILE_SIZE:
            return CoverCheck(url=url, valid=False, reason=REASON_TOO_SMALL, byte_size=size)

        dimensions = image_dimensions(data)
        if dimensions is None:
            return CoverCheck(url=url, valid=True, byte_size=size)

        width, height = dimensions
        check = CoverCheck(url=url, valid=True, byte_size=size, width=width, height=height)
        if not check_geometry:
            return check

        if width < MIN_WIDTH or height < MIN_HEIGHT:
            return CoverCheck(
                url=url, valid=False, reason=REASON_DIMENSIONS,
                byte_size=size, width=width, height=height,
            )
        if not MIN_ASPECT <= height / width <= MAX_ASPECT:
            return CoverCheck(
                url=url, valid=False, reason=REASON_ASPECT,
                byte_size=size, width=width, height=height,
            )
        return check
