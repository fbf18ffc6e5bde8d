"""
Program Image Loader
====================

LC-3 object images are a flat sequence of big-endian 16-bit words. The
first word is the origin, the address where the remaining words are
placed:

    Offset  Size  Description
    ------  ----  -----------
    0       2     Origin address (big-endian)
    2       2*N   N program words (big-endian)

For example, the bytes 30 00 12 34 56 78 load x1234 at x3000 and x5678
at x3001.

A trailing odd byte cannot form a word and is ignored. An image running
past xFFFF is truncated at the end of memory (with a warning), or rejected
when loading in strict mode. Words never wrap into low memory.
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Union

from lc3_vm.errors import ImageFormatError, ImageLoadError
from .memory import MEMORY_SIZE, Memory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Image:
    """
    A parsed program image.

    Attributes:
        origin: Load address of the first word
        words: Program words in load order
    """
    origin: int
    words: tuple[int, ...]

    @property
    def end(self) -> int:
        """One past the last address the image covers."""
        return self.origin + len(self.words)

    @property
    def fits(self) -> bool:
        """True if every word lands inside the address space."""
        return self.end <= MEMORY_SIZE

    def __len__(self) -> int:
        return len(self.words)


def parse_image(data: bytes, name: str = "<image>") -> Image:
    """
    Parse raw image bytes.

    Args:
        data: Image file contents
        name: Name used in error messages

    Returns:
        Parsed Image

    Raises:
        ImageFormatError: If the data is too short to hold an origin
    """
    if len(data) < 2:
        raise ImageFormatError(
            f"image is {len(data)} bytes, too short for an origin", name
        )

    (origin,) = struct.unpack_from(">H", data, 0)
    count = (len(data) - 2) // 2
    if (len(data) - 2) % 2:
        logger.debug("%s: ignoring trailing odd byte", name)

    words = struct.unpack_from(f">{count}H", data, 2)
    return Image(origin=origin, words=words)


def load_image(
    memory: Memory,
    source: Union[str, Path, BinaryIO],
    strict: bool = False,
) -> Image:
    """
    Load an image file into memory.

    Args:
        memory: Memory to load into
        source: Path to the image, or an open binary stream
        strict: Reject images that run past the end of memory instead of
                truncating them

    Returns:
        The parsed Image (before any truncation)

    Raises:
        ImageLoadError: If the image cannot be opened or read
        ImageFormatError: If the image is malformed, or oversized in strict mode
    """
    if isinstance(source, (str, Path)):
        name = str(source)
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise ImageLoadError(f"cannot read image: {e.strerror or e}", name) from e
    else:
        name = getattr(source, "name", "<stream>")
        try:
            data = source.read()
        except OSError as e:
            raise ImageLoadError(f"cannot read image: {e}", str(name)) from e

    image = parse_image(data, str(name))

    if not image.fits:
        overflow = image.end - MEMORY_SIZE
        if strict:
            raise ImageFormatError(
                f"image at x{image.origin:04X} is {len(image)} words, "
                f"{overflow} past the end of memory",
                str(name),
            )
        logger.warning(
            "%s: image at x%04X overruns memory by %d words; truncating",
            name, image.origin, overflow,
        )

    stored = memory.load_words(image.origin, image.words)
    logger.debug(
        "Loaded %s: %d words at x%04X-x%04X",
        name, stored, image.origin, (image.origin + max(stored, 1) - 1) & 0xFFFF,
    )
    return image
