"""Permite `python -m aci_control ...`."""

from __future__ import annotations

from aci_control.cli.main import run

if __name__ == "__main__":
    run()
