"""
Utility script to write the API documentation to disk.

This script builds the application with the in-memory backend (no database is
touched) and serializes its OpenAPI schema to ``openapi.json`` and the markdown
rendering to ``llms.txt`` so that API clients and documentation tools can
consume a stable schema without running the server.

Usage:
    python -m tasks_api.generate_openapi [--out DIR]

Notes:
- The default output directory is ./interfaces relative to the working directory.
"""
from __future__ import annotations

import argparse
import dataclasses
import json
import os
from typing import Any, Dict, Optional, Sequence

from .docs import openapi_to_markdown
from .main import create_app
from .settings import get_settings


# PUBLIC_INTERFACE
def build_schema() -> Dict[str, Any]:
    """Return the OpenAPI document of a freshly built application."""
    settings = dataclasses.replace(get_settings(), persistence_backend="memory")
    return create_app(settings).openapi()


# PUBLIC_INTERFACE
def generate_openapi(out_dir: str = "interfaces") -> Dict[str, str]:
    """Write openapi.json and llms.txt into out_dir and return their paths."""
    schema = build_schema()
    os.makedirs(out_dir, exist_ok=True)

    json_path = os.path.join(out_dir, "openapi.json")
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)

    markdown_path = os.path.join(out_dir, "llms.txt")
    with open(markdown_path, "w", encoding="utf-8") as f:
        f.write(openapi_to_markdown(schema))

    return {"openapi": json_path, "markdown": markdown_path}


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Write the Tasks API documentation to disk.")
    parser.add_argument("--out", default="interfaces", help="Output directory (default: ./interfaces)")
    args = parser.parse_args(argv)

    paths = generate_openapi(args.out)
    print(f"Wrote OpenAPI schema to: {paths['openapi']}")
    print(f"Wrote markdown reference to: {paths['markdown']}")


if __name__ == "__main__":
    main()
