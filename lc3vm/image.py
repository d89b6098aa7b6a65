"""
LC-3 Virtual Machine — Object Image Loader

Image format (what lc3as emits as .obj):
  word 0       load origin
  word 1..n    program words, stored from origin upward

All words are big-endian on disk. Words that would run past xFFFF are
dropped and a trailing odd byte is ignored. A file that cannot be read
or is too short to hold the origin is an ImageLoadError.
"""

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .config import MEMORY_SIZE


class ImageLoadError(Exception):
    """Raised when an image file cannot be loaded."""
    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"failed to load image: {source} ({reason})")


@dataclass
class LoadedImage:
    source: str
    origin: int
    length: int     # words stored

    @property
    def end(self) -> int:
        """Last address written (origin - 1 for an empty body)."""
        return self.origin + self.length - 1


def parse_image(data: bytes, source: str = "<bytes>"):
    """Split raw image bytes into (origin, words)."""
    if len(data) < 2:
        raise ImageLoadError(source, "missing origin word")
    origin, = struct.unpack_from('>H', data, 0)
    count = min((len(data) - 2) // 2, MEMORY_SIZE - origin)
    words = struct.unpack_from(f'>{count}H', data, 2)
    return origin, words


def read_image(path_or_data: Union[str, Path, bytes], memory) -> LoadedImage:
    """Load an image file (or raw image bytes) into memory."""
    if isinstance(path_or_data, (bytes, bytearray)):
        source = "<bytes>"
        data = bytes(path_or_data)
    else:
        source = str(path_or_data)
        try:
            data = Path(path_or_data).read_bytes()
        except OSError as e:
            raise ImageLoadError(source, e.strerror or str(e)) from e

    origin, words = parse_image(data, source)
    length = memory.load_words(words, origin)
    return LoadedImage(source=source, origin=origin, length=length)
