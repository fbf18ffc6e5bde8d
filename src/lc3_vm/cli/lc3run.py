"""
lc3run - LC-3 Virtual Machine Command-Line Interface
====================================================

Loads one or more LC-3 object images and runs them, starting at x3000.
Images load in the order given; later images overwrite earlier ones
where they overlap.

Usage Examples
--------------
Run a program:
    $ lc3run 2048.obj

Load an operating system image and a program:
    $ lc3run os.obj program.obj

Start somewhere else:
    $ lc3run program.obj --start x4000

Trace every instruction to stderr:
    $ lc3run program.obj --trace

Use a serial line as the console:
    $ lc3run program.obj --serial /dev/ttyUSB0 --baud 115200

Exit Status
-----------
    0    program halted
    1    an image could not be loaded
    2    invalid arguments
    4    input closed while the program was waiting for a key
    130  interrupted (Ctrl-C)
    134  invalid opcode or trap vector
"""

import dataclasses
import io
import logging
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Optional

import click

from lc3_vm import __version__
from lc3_vm.cli.errors import ExitCode, handle_cli_exception
from lc3_vm.emulator import (
    ConsolePort,
    Emulator,
    EmulatorConfig,
    IOPort,
    StreamPort,
    parse_address,
)
from lc3_vm.emulator.serial_port import (
    DEFAULT_BAUD_RATE,
    VALID_BAUD_RATES,
    SerialPort,
    open_serial_port,
)
from lc3_vm.emulator.terminal import raw_terminal

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Log to stderr so the program's output on stdout stays clean."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def console_port() -> IOPort:
    """I/O port for the process's stdin/stdout."""
    try:
        fd = sys.stdin.fileno()
    except (AttributeError, io.UnsupportedOperation):
        return StreamPort(sys.stdin.buffer, sys.stdout.buffer)
    return ConsolePort(fd, sys.stdout.buffer)


def _parse_start(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return parse_address(value)
    except ValueError:
        raise click.BadParameter(
            f"'{value}' is not an address in x0000-xFFFF", ctx=ctx, param=param
        )


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "images",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "-s", "--start",
    type=str,
    default=None,
    callback=_parse_start,
    help="Initial PC (x3000, 0x3000 or decimal). Default: x3000",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Reject images that run past the end of memory instead of truncating them",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Log every instruction to stderr",
)
@click.option(
    "--serial",
    "serial_device",
    type=str,
    default=None,
    help="Use a serial port as the console (e.g. /dev/ttyUSB0)",
)
@click.option(
    "--baud",
    type=click.Choice([str(b) for b in VALID_BAUD_RATES]),
    default=str(DEFAULT_BAUD_RATE),
    help=f"Serial baud rate (default: {DEFAULT_BAUD_RATE})",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="lc3run")
def main(
    images: tuple[Path, ...],
    start: Optional[int],
    strict: bool,
    trace: bool,
    serial_device: Optional[str],
    baud: str,
    verbose: bool,
) -> None:
    """
    Run LC-3 object images.

    IMAGES are LC-3 object files: a big-endian origin word followed by
    big-endian program words. They load in order before execution begins.

    \b
    Examples:
      lc3run 2048.obj
      lc3run os.obj program.obj --start x3000
      lc3run program.obj --trace 2> trace.log
    """
    setup_logging(verbose or trace)

    config = EmulatorConfig.from_env()
    overrides = {}
    if start is not None:
        overrides["start_address"] = start
    if strict:
        overrides["strict_images"] = True
    if trace:
        overrides["trace"] = True
    config = dataclasses.replace(config, **overrides)

    serial_port: Optional[SerialPort] = None
    try:
        if serial_device:
            serial_port = SerialPort(open_serial_port(serial_device, int(baud)))
            port: IOPort = serial_port
        else:
            port = console_port()

        emu = Emulator(config, port=port)
        for image in emu.load_images(images):
            if verbose:
                click.echo(
                    f"Loaded {len(image)} words at x{image.origin:04X}", err=True
                )

        # A serial console leaves the local terminal alone
        scope = nullcontext(False) if serial_port else raw_terminal()
        with scope:
            result = emu.run()

    except KeyboardInterrupt:
        click.echo(err=True)
        sys.exit(ExitCode.INTERRUPTED)
    except Exception as e:
        handle_cli_exception(e, verbose)
    finally:
        if serial_port is not None:
            serial_port.close()

    if verbose:
        click.echo(str(result), err=True)

    if result.faulted:
        handle_cli_exception(result.fault, verbose)

    sys.exit(ExitCode.SUCCESS)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
