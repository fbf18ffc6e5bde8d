"""
Unified CLI Error Handling
==========================

Maps exceptions to exit codes and error messages for the CLI.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Exit codes for lc3run."""
    SUCCESS = 0
    LOAD_ERROR = 1       # An image could not be loaded
    INVALID_ARGS = 2     # Invalid arguments, unusable serial port
    INTERNAL_ERROR = 3   # Unexpected internal error
    INPUT_CLOSED = 4     # Input ended while the program was waiting for a key
    INTERRUPTED = 130    # Ctrl-C (128 + SIGINT)
    MACHINE_FAULT = 134  # Invalid opcode or trap vector (128 + SIGABRT)


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Report an exception and exit with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors

    Raises:
        SystemExit: Always
    """
    from lc3_vm.errors import (
        EndOfInputError,
        ImageError,
        LC3Error,
        MachineFault,
        PortError,
    )

    if isinstance(error, ImageError):
        click.echo(f"Failed to load image: {error}", err=True)
        sys.exit(ExitCode.LOAD_ERROR)

    elif isinstance(error, MachineFault):
        click.echo(f"Machine fault: {error}", err=True)
        sys.exit(ExitCode.MACHINE_FAULT)

    elif isinstance(error, EndOfInputError):
        click.echo(f"\nInput closed: {error}", err=True)
        sys.exit(ExitCode.INPUT_CLOSED)

    elif isinstance(error, (PortError, click.BadParameter)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, LC3Error):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INTERNAL_ERROR)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
