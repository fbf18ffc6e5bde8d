"""
Shared Test Configuration
=========================

Fixtures used across the LC-3 VM test suite:
- image_file: writes LC-3 object images to a temporary directory
- port / emu: a headless emulator bound to an in-memory I/O port
"""

import struct
from pathlib import Path
from typing import Callable, Sequence

import pytest

from lc3_vm.emulator import BufferedPort, Emulator


def encode_image(origin: int, words: Sequence[int]) -> bytes:
    """Encode an origin and words as a big-endian object image."""
    return struct.pack(f">H{len(words)}H", origin, *words)


@pytest.fixture
def image_file(tmp_path: Path) -> Callable[..., Path]:
    """
    Fixture: factory writing an object image and returning its path.

    Usage:
        path = image_file(0x3000, [0xF025])
        path = image_file(0x3000, [0xF025], name="halt.obj")
    """
    counter = 0

    def _make(origin: int, words: Sequence[int], name: str = None) -> Path:
        nonlocal counter
        counter += 1
        path = tmp_path / (name or f"image{counter}.obj")
        path.write_bytes(encode_image(origin, words))
        return path

    return _make


@pytest.fixture
def port() -> BufferedPort:
    """Fixture: empty in-memory I/O port."""
    return BufferedPort()


@pytest.fixture
def emu(port: BufferedPort) -> Emulator:
    """Fixture: emulator bound to the in-memory port."""
    return Emulator(port=port)
