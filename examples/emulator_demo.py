#!/usr/bin/env python3
"""
CHIP-8 Emulator Demo
====================

This script demonstrates how to use the CHIP-8 SDK emulator to:
1. Create an emulator with a configuration
2. Load a program
3. Disassemble it
4. Run until the program waits for a key, then press one
5. Take screenshots and save a snapshot

Usage:
    source .venv/bin/activate
    python examples/emulator_demo.py

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from pathlib import Path
from chip8_sdk.emulator import BreakReason, Emulator, EmulatorConfig

# Prints 123 with the built-in font, waits for a key, prints the key next
# to it and sounds a one second beep.
DEMO_PROGRAM = bytes([
    0x6A, 0x7B,  # $200  LD VA, 123
    0xA3, 0x00,  # $202  LD I, $300
    0xFA, 0x33,  # $204  LD B, VA
    0xF2, 0x65,  # $206  LD V0-VF, [I]  (V0-V2 = digits)
    0x63, 0x00,  # $208  LD V3, 0
    0x64, 0x00,  # $20A  LD V4, 0
    0xF0, 0x29,  # $20C  LD F, V0
    0xD3, 0x45,  # $20E  DRW V3, V4, 5
    0x73, 0x05,  # $210  ADD V3, 5
    0xF1, 0x29,  # $212  LD F, V1
    0xD3, 0x45,  # $214  DRW V3, V4, 5
    0x73, 0x05,  # $216  ADD V3, 5
    0xF2, 0x29,  # $218  LD F, V2
    0xD3, 0x45,  # $21A  DRW V3, V4, 5
    0xF5, 0x0A,  # $21C  LD V5, K
    0xF5, 0x29,  # $21E  LD F, V5
    0x73, 0x05,  # $220  ADD V3, 5
    0xD3, 0x45,  # $222  DRW V3, V4, 5
    0x6B, 0x3C,  # $224  LD VB, 60
    0xFB, 0x18,  # $226  LD ST, VB
    0x12, 0x28,  # $228  JP $228
])


def main():
    # Output directory for screenshots
    output_dir = Path("trash")
    output_dir.mkdir(exist_ok=True)

    # ==========================================================================
    # 1. Create an emulator instance
    # ==========================================================================
    # EmulatorConfig options:
    #   edge_mode        - EdgeMode.CLIP (default) or EdgeMode.WRAP
    #   legacy_key_wait  - historical LD Vx, K behavior
    #   seed             - seed for RND
    #   font             - 80-byte replacement font

    print("Creating CHIP-8 emulator...")
    emu = Emulator(EmulatorConfig(seed=1))
    emu.on_beep = lambda: print(f"  Beep! (pc=${emu.cpu.pc:03X})")

    # ==========================================================================
    # 2. Load the program
    # ==========================================================================
    # load_rom(path) reads a .ch8 file; load_program(bytes) takes an image.

    emu.load_program(DEMO_PROGRAM)
    print(f"  Loaded {len(DEMO_PROGRAM)} bytes at $200")

    # ==========================================================================
    # 3. Disassemble
    # ==========================================================================
    print("\nFirst instructions:")
    for line in emu.disassemble_at(0x200, 8):
        print(f"  {line}")

    # ==========================================================================
    # 4. Run until the program asks for a key
    # ==========================================================================
    print("\nRunning...")
    event = emu.run(1_000)
    print(f"  Stopped: {event}")
    assert event.reason == BreakReason.KEY_WAIT

    print(emu.display_text)

    img = emu.render_display(scale=8)
    (output_dir / "demo_waiting.png").write_bytes(img)
    print("  Saved demo_waiting.png")

    # Keys can be named by hex digit ("A") or held with press_key()/release_key()
    print("\nPressing key A...")
    emu.tap_key("A", hold_cycles=1)
    event = emu.run(100)
    print(f"  Stopped: {event}")
    print(emu.display_text)

    img = emu.render_display(scale=8)
    (output_dir / "demo_final.png").write_bytes(img)
    print("  Saved demo_final.png")

    # ==========================================================================
    # 5. Snapshot and summary
    # ==========================================================================
    emu.save_snapshot(output_dir / "demo.c8s")
    print("  Saved demo.c8s")

    print(f"\nRegisters: {emu.registers}")
    print(f"Total cycles executed: {emu.total_cycles:,}")
    print(f"Screenshots saved to: {output_dir.absolute()}")


if __name__ == "__main__":
    main()
