"""Write a .env.template listing every setting load_config() reads.

Run:
  python env_template.py [path]

An existing file is left alone unless overwrite=True; real values are
never filled in.
"""

from __future__ import annotations

import sys
from pathlib import Path

from settings import ENV_SETTINGS


def render_template() -> str:
    blocks = []
    for key, default, description in ENV_SETTINGS:
        blocks.append(f"# {description}\n{key}={default}\n")
    return "\n".join(blocks)


def write_env_template(path: str | Path = ".env.template", overwrite: bool = False) -> Path:
    p = Path(path)
    if p.exists() and not overwrite:
        raise FileExistsError(f"{p} already exists")
    p.write_text(render_template(), encoding="utf-8")
    return p


def cli() -> None:
    target = sys.argv[1] if len(sys.argv) > 1 else ".env.template"
    try:
        out = write_env_template(target)
    except FileExistsError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    print(f"wrote: {out}")


if __name__ == "__main__":
    cli()
