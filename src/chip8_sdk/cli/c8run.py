"""
c8run - Headless CHIP-8 Runner
==============================

Runs a program for a fixed number of cycles without a window, then
reports why it stopped, the registers and the screen.

Usage Examples
--------------
Run the first 200 cycles and print the screen:
    $ c8run ibm_logo.ch8 --cycles 200

Hold key 5 for the whole run and save a screenshot:
    $ c8run game.ch8 --key 5 --screenshot game.png

Reproducible random numbers and wrapping sprites:
    $ c8run maze.ch8 --seed 7 --wrap

Trace every instruction:
    $ c8run test.ch8 --cycles 20 --trace
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from chip8_sdk import __version__
from chip8_sdk.cli.errors import ExitCode, handle_cli_exception
from chip8_sdk.disassembler import Chip8Disassembler
from chip8_sdk.emulator import BreakEvent, BreakReason, EdgeMode, Emulator, EmulatorConfig

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def format_registers(emu: Emulator) -> str:
    """One-line register dump."""
    regs = emu.registers
    v = " ".join(f"V{n:X}={regs[f'v{n:x}']:02X}" for n in range(16))
    return (
        f"PC=${regs['pc']:03X} I=${regs['i']:03X} SP={regs['sp']} "
        f"DT={regs['dt']} ST={regs['st']}\n{v}"
    )


@click.command()
@click.argument(
    "rom",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-n", "--cycles",
    type=click.IntRange(min=0),
    default=1000,
    show_default=True,
    help="Maximum number of cycles to run",
)
@click.option(
    "-k", "--key",
    "keys",
    multiple=True,
    help="Hex key (0-F) held down for the whole run; may be repeated",
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Seed for the RND instruction",
)
@click.option(
    "--wrap",
    is_flag=True,
    help="Wrap sprites around the screen edges instead of clipping",
)
@click.option(
    "--legacy-key-wait",
    is_flag=True,
    help="Historical key-wait behavior (PC moves past LD Vx, K)",
)
@click.option(
    "-s", "--screenshot",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Save the final screen as a PNG image",
)
@click.option(
    "--scale",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Screenshot pixels per display cell",
)
@click.option(
    "--text/--no-text",
    default=True,
    help="Print the final screen as text (default: enabled)",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Print each instruction before it executes",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="c8run")
def main(
    rom: Path,
    cycles: int,
    keys: tuple[str, ...],
    seed: Optional[int],
    wrap: bool,
    legacy_key_wait: bool,
    screenshot: Optional[Path],
    scale: int,
    text: bool,
    trace: bool,
    verbose: bool,
) -> None:
    """
    Run a CHIP-8 program headless.

    ROM is the program image, loaded at $200.

    The run stops after --cycles cycles, at a fatal machine error, or
    when the program waits for a key that is not held.
    """
    setup_logging(verbose)

    try:
        config = EmulatorConfig(
            edge_mode=EdgeMode.WRAP if wrap else EdgeMode.CLIP,
            legacy_key_wait=legacy_key_wait,
            seed=seed,
        )
        emu = Emulator(config)
        emu.load_rom(rom)
        for key in keys:
            emu.press_key(key)
    except Exception as e:
        handle_cli_exception(e, verbose, error_type="Load")

    logger.debug(f"Running {rom.name} for up to {cycles} cycles, keys held: {sorted(emu.keypad.pressed)}")

    if trace:
        event = _run_traced(emu, cycles)
    else:
        event = emu.run(cycles)

    click.echo(f"Stopped: {event} after {emu.total_cycles} cycles")
    click.echo(format_registers(emu))
    if emu.diagnostics:
        click.echo(f"{len(emu.diagnostics)} unknown opcode(s), first: {emu.diagnostics[0]}")
    if emu.beep_count:
        click.echo(f"Beeps: {emu.beep_count}")

    if text:
        click.echo(emu.display_text)

    if screenshot:
        try:
            screenshot.write_bytes(emu.render_display(scale=scale))
        except OSError as e:
            handle_cli_exception(e, verbose)
        click.echo(f"Screenshot saved to {screenshot}")

    if event.reason == BreakReason.ERROR:
        sys.exit(ExitCode.RUN_ERROR)


def _run_traced(emu: Emulator, cycles: int) -> BreakEvent:
    """Step one cycle at a time, echoing each instruction."""
    disasm = Chip8Disassembler()
    for _ in range(cycles):
        if emu.cpu.waiting_for_key and emu.keypad.current is None:
            return BreakEvent(BreakReason.KEY_WAIT, address=emu.cpu.pc)
        pc = emu.cpu.pc
        if not emu.cpu.waiting_for_key and pc + 1 < emu.memory.size:
            click.echo(str(disasm.disassemble_one(emu.memory.read_block(pc, 2), pc)))
        event = emu.step()
        if event.reason == BreakReason.ERROR:
            return event
    return BreakEvent(
        BreakReason.MAX_CYCLES,
        address=emu.cpu.pc,
        message=f"Reached max cycles ({cycles})",
    )


if __name__ == "__main__":
    main()
