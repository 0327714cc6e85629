"""Bootpack - Decompressor and Payload to Boot Image Packer."""
from __future__ import annotations

from pathlib import Path

import click

from bootpack_core.errors import BootpackError
from bootpack_pack.packer import pack_files


@click.command()
@click.option(
    "-o",
    "--output",
    "out",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Where to write the packed image",
)
@click.option("--strip", is_flag=True, help="Drop custom sections from the decompressor module")
@click.argument("module", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def main(out: Path, strip: bool, module: Path, payload: Path) -> None:
    """Pack an LZ4-framed PAYLOAD into the decompressor MODULE."""
    try:
        pack_files(module, payload, out, strip=strip)
    except (BootpackError, OSError) as e:
        # Fail closed with a single-line reason.
        print(f"FATAL: {e}" if isinstance(e, OSError) else f"FATAL: {e} ({e.description})")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
