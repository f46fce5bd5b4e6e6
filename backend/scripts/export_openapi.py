#!/usr/bin/env python
"""Export the OpenAPI document and print its hash.

Usage:
  python backend/scripts/export_openapi.py --out backend/openapi.json
  python backend/scripts/export_openapi.py --check <sha256>

Options:
  --out PATH     Write the spec JSON to PATH (directories auto-created)
  --check HASH   Exit 2 if the current spec hash differs from HASH

Exit Codes:
  0 success / hash matches
  2 mismatch in --check mode
"""
from __future__ import annotations
import argparse, json, hashlib, os, pathlib, sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from backoffice.openapi import build_openapi_spec  # noqa: E402


def compute_spec_and_hash():
    spec = build_openapi_spec()
    blob = json.dumps(spec, sort_keys=True, separators=(',', ':')).encode()
    return spec, hashlib.sha256(blob).hexdigest()


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(description="Export the deterministic OpenAPI spec")
    p.add_argument('--out', dest='out', help='Path to write JSON spec')
    p.add_argument('--check', metavar='HASH', help='Expected spec hash; exit 2 on mismatch')
    args = p.parse_args(argv)

    spec, h = compute_spec_and_hash()

    if args.out:
        out_path = pathlib.Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(spec, indent=2, sort_keys=True) + '\n')
        print(f"Wrote spec JSON to {out_path}")

    if args.check:
        if h != args.check.strip():
            print(f"Spec hash mismatch: expected={args.check.strip()} current={h}", file=sys.stderr)
            return 2
        print(f"Spec hash OK: {h}")
        return 0

    print(h)
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
