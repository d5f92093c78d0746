"""
c8disasm - CHIP-8 Disassembler Command-Line Interface
=====================================================

Usage Examples
--------------
Disassemble a ROM loaded at the usual $200:
    $ c8disasm pong.ch8

Limit number of instructions:
    $ c8disasm pong.ch8 --count 20

Output to file:
    $ c8disasm pong.ch8 -o pong.lst

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import sys
from pathlib import Path
from typing import Optional

import click

from chip8_sdk import __version__
from chip8_sdk.cli.errors import ExitCode, handle_cli_exception
from chip8_sdk.disassembler import Chip8Disassembler


def parse_address(text: str) -> int:
    """Parse '0x200', '$200' or '512'."""
    if text.lower().startswith("0x"):
        return int(text, 16)
    if text.startswith("$"):
        return int(text[1:], 16)
    return int(text)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: stdout)",
)
@click.option(
    "-a", "--address",
    type=str,
    default="0x200",
    help="Load address of the first byte (hex with 0x prefix or decimal). Default: 0x200",
)
@click.option(
    "-c", "--count",
    type=int,
    default=None,
    help="Maximum number of instructions to disassemble (default: all)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="c8disasm")
def main(
    input_file: Path,
    output: Optional[Path],
    address: str,
    count: Optional[int],
    verbose: bool,
) -> None:
    """
    Disassemble CHIP-8 machine code.

    INPUT_FILE is the program image to disassemble.

    Examples:

        # Disassemble a whole ROM
        c8disasm pong.ch8

        # First 20 instructions into a listing file
        c8disasm pong.ch8 --count 20 -o pong.lst
    """
    try:
        base_address = parse_address(address)
    except ValueError:
        click.echo(f"Error: Invalid address '{address}'", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    if not 0 <= base_address <= 0xFFF:
        click.echo("Error: Address must be 0-4095 (0x000-0xFFF)", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    try:
        data = input_file.read_bytes()
    except OSError as e:
        handle_cli_exception(e, verbose)

    if len(data) == 0:
        click.echo(f"Error: {input_file} is empty", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    if verbose:
        click.echo(f"Input file: {input_file} ({len(data)} bytes)", err=True)
        click.echo(f"Base address: ${base_address:03X}", err=True)

    output_lines = [
        f"; Disassembly of {input_file.name}",
        f"; Size: {len(data)} bytes",
        f"; Base address: ${base_address:03X}",
        "",
    ]
    for ins in Chip8Disassembler().disassemble(data, base_address, count):
        output_lines.append(str(ins))

    text = "\n".join(output_lines) + "\n"
    if output:
        output.write_text(text)
        if verbose:
            click.echo(f"Wrote {output}", err=True)
    else:
        click.echo(text, nl=False)


if __name__ == "__main__":
    main()
