"""Compile gettext .po catalogues into .mo files with polib."""
from __future__ import annotations

import sys
from pathlib import Path

import polib


def compile_all(locales_dir: Path) -> list[Path]:
    """Write a ``.mo`` next to every ``.po`` under ``locales_dir``."""
    written: list[Path] = []
    for po_file in sorted(locales_dir.rglob("*.po")):
        mo_file = po_file.with_suffix(".mo")
        polib.pofile(str(po_file)).save_as_mofile(str(mo_file))
        written.append(mo_file)
    return written


def main() -> None:
    root = Path(__file__).resolve().parent
    for path in compile_all(root / "compliance_console" / "locale"):
        print(path, file=sys.stderr)


if __name__ == "__main__":
    main()
