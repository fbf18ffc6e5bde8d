"""
Terminal Raw Mode
=================

Interactive LC-3 programs read keys one at a time through KBSR/KBDR or
GETC, so the terminal must deliver each keypress immediately and without
echo. raw_terminal() switches canonical mode and echo off for the
duration of a with-block and restores the saved settings on every exit
path, including KeyboardInterrupt.

Signal generation (ISIG) stays enabled so Ctrl-C still interrupts the VM.
"""

import io
import logging
import os
import sys
import termios
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@contextmanager
def raw_terminal(fd: Optional[int] = None) -> Iterator[bool]:
    """
    Disable line buffering and echo on a terminal.

    Args:
        fd: Terminal file descriptor (default: stdin)

    Yields:
        True if the terminal mode was changed, False if fd is not a TTY

    Example:
        >>> with raw_terminal():
        ...     emu.run()
    """
    if fd is None:
        try:
            fd = sys.stdin.fileno()
        except (AttributeError, io.UnsupportedOperation):
            logger.debug("stdin has no file descriptor; leaving mode unchanged")
            yield False
            return

    if not os.isatty(fd):
        logger.debug("fd %d is not a terminal; leaving mode unchanged", fd)
        yield False
        return

    saved = termios.tcgetattr(fd)
    raw = termios.tcgetattr(fd)
    raw[3] &= ~(termios.ICANON | termios.ECHO)  # lflag
    termios.tcsetattr(fd, termios.TCSANOW, raw)
    logger.debug("Terminal raw mode enabled")
    try:
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, saved)
        logger.debug("Terminal mode restored")
