"""Write the analytics API's OpenAPI document to openapi.json.

With --check, exit non-zero instead when the file on disk is stale, so
CI can catch route or model changes that were not re-exported.
"""

import argparse
import json
import sys
from pathlib import Path

from main import app

DEFAULT_OUTPUT = Path(__file__).resolve().parent.parent / "openapi.json"


def render() -> str:
    return json.dumps(app.openapi(), indent=2, sort_keys=True) + "\n"


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT)
    parser.add_argument("--check", action="store_true", help="Compare instead of writing")
    args = parser.parse_args()

    document = render()
    if args.check:
        current = args.output.read_text() if args.output.exists() else ""
        if current != document:
            print(f"{args.output} is out of date; run scripts/export_openapi.py")
            sys.exit(1)
        print(f"{args.output} is up to date")
        return

    args.output.write_text(document)
    print(f"Wrote {args.output} ({len(app.openapi()['paths'])} paths)")


if __name__ == "__main__":
    main()
