#!/usr/bin/env python3
"""Validate (and optionally compile) the message catalogs under locales/ using polib.

    python scripts/validate_po.py            # syntax + key coverage
    python scripts/validate_po.py --compile  # also write messages.mo next to each .po

Exit non-zero if any .po cannot be parsed or a used key is missing/untranslated.
"""
from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

import polib

ROOT = Path(__file__).resolve().parents[1]
SOURCE_DIRS = ("application", "core", "domain", "infrastructure", "shared")

KEY_RE = re.compile(r"\bt\(\s*['\"]([a-zA-Z0-9_.]+)['\"]")
MSGKEY_RE = re.compile(r"message_key\s*=\s*(?:[^'\"\n]*?)['\"]([a-zA-Z0-9_.]+)['\"]")


def collect_used_keys(root: Path) -> set[str]:
    used: set[str] = set()
    for name in SOURCE_DIRS:
        for path in (root / name).rglob("*.py"):
            text = path.read_text(encoding="utf-8", errors="ignore")
            used.update(m.group(1) for m in KEY_RE.finditer(text))
            used.update(m.group(1) for m in MSGKEY_RE.finditer(text))
    return used


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("--compile", action="store_true", help="write .mo files after validation")
    args = ap.parse_args(argv)

    po_files = sorted((ROOT / "locales").glob("*/LC_MESSAGES/*.po"))
    if not po_files:
        return 0

    catalogs: dict[Path, polib.POFile] = {}
    errors: list[str] = []
    for f in po_files:
        try:
            catalogs[f] = polib.pofile(str(f))
        except (OSError, ValueError) as exc:
            errors.append(f"{f}: {exc}")
    if errors:
        print("PO syntax errors detected:\n" + "\n".join(errors), file=sys.stderr)
        return 1

    used_keys = collect_used_keys(ROOT)
    problems = 0
    for f, po in catalogs.items():
        keys_in_po = {e.msgid for e in po}
        missing = sorted(used_keys - keys_in_po)
        untranslated = sorted(e.msgid for e in po if not (e.msgstr or "").strip())
        if missing:
            print(f"[i18n] Missing keys in {f}: {', '.join(missing)}", file=sys.stderr)
        if untranslated:
            print(f"[i18n] Untranslated keys in {f}: {', '.join(untranslated)}", file=sys.stderr)
        problems += len(missing) + len(untranslated)

        extras = sorted(keys_in_po - used_keys)
        if extras:
            print(f"[i18n] Extra keys in {f}: {len(extras)} (info)")

    if problems:
        return 1

    if args.compile:
        for f, po in catalogs.items():
            target = f.with_suffix(".mo")
            po.save_as_mofile(str(target))
            print(f"[i18n] compiled {target.relative_to(ROOT)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
