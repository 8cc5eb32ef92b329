#!/usr/bin/env python3
"""Cross-platform setup script for netreach.

Usage:
    python setup_env.py

Creates a virtual environment, installs dependencies, and verifies the setup.
"""
import os
import subprocess
import sys


def main():
    root = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(root, ".venv")

    # Detect platform
    is_windows = sys.platform == "win32"
    if is_windows:
        python = os.path.join(venv_dir, "Scripts", "python.exe")
        pip = os.path.join(venv_dir, "Scripts", "pip.exe")
    else:
        python = os.path.join(venv_dir, "bin", "python")
        pip = os.path.join(venv_dir, "bin", "pip")

    # Step 1: Create venv
    if not os.path.exists(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])
        print(f"  Created: {venv_dir}")
    else:
        print(f"Virtual environment already exists: {venv_dir}")

    # Step 2: Upgrade pip
    print("\nUpgrading pip...")
    subprocess.check_call([python, "-m", "pip", "install", "--upgrade", "pip"],
                          stdout=subprocess.DEVNULL)

    # Step 3: Install package in editable mode with dev dependencies
    print("Installing netreach with dev dependencies...")
    subprocess.check_call([pip, "install", "-e", f"{root}[dev]"])

    # Step 4: Verify the BDD backend and the installed fixture grammar
    print("\nVerifying dd.autoref and the network grammar...")
    check = """
import importlib.resources
import dd.autoref
from netreach.bdd_packet import BddPacket
grammar = importlib.resources.files('netreach').joinpath('network_grammar.lark')
if not grammar.is_file():
    raise SystemExit('network_grammar.lark missing from the installed package')
print(f'  dd.autoref OK, default packet: {BddPacket().full().count()} headers')
print(f'  grammar OK: {grammar}')
"""
    result = subprocess.run(
        [python, "-c", check],
        capture_output=True, text=True, cwd=root,
    )
    if result.returncode != 0:
        print("  WARNING: package check failed!")
        print(f"  {result.stderr.strip()}")
    else:
        print(result.stdout.strip())

    # Step 5: Smoke test -- analyze two example networks
    print("\nRunning smoke test (linear.net, two_routers.net)...")
    smoke_test = """
from netreach.network_parser import parse_network_file
from netreach.summary import format_ingress_table
model = parse_network_file('examples/linear.net')
print(f'  Parsed {model.graph.num_edges} edges, {len(model.ingress_states)} ingress states')
result = model.reachability().compute_reverse_reachable()
print(format_ingress_table(result.ingress))
loops = parse_network_file('examples/two_routers.net').loop_detector().analyze()
print(f'  Confirmed loop states: {len(loops.confirmed)}')
"""
    result = subprocess.run(
        [python, "-c", smoke_test],
        capture_output=True, text=True, cwd=root,
    )
    if result.returncode != 0:
        print("  Smoke test FAILED:")
        print(f"  {result.stderr.strip()}")
        return 1
    else:
        print(result.stdout.strip())

    # Step 6: Success
    print("\n" + "=" * 50)
    print("Setup complete!")
    print("=" * 50)
    if is_windows:
        activate = ".venv\\Scripts\\activate"
    else:
        activate = "source .venv/bin/activate"
    print(f"\nTo activate:  {activate}")
    print("To test:      pytest")
    return 0


if __name__ == "__main__":
    sys.exit(main())
