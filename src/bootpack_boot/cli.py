import hashlib
import json
from pathlib import Path

import click

from bootpack_core.errors import BootpackError
from .engine import boot
from .evidence import write_evidence
from .host import ControlTransferred, RecordingHost
from .image import LoadedImage, load_image_file

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}


def _emit(result: dict) -> None:
    click.echo(json.dumps(result, **CANONICAL_JSON_KW))


def _fail(e: Exception) -> None:
    # Fail closed with a single-line reason.
    if isinstance(e, BootpackError):
        click.echo(f"FATAL: {e} ({e.description})")
    else:
        click.echo(f"FATAL: {e}")
    raise SystemExit(1)


def _boot(image: Path, global_index: int | None) -> tuple[LoadedImage, RecordingHost, bytes]:
    loaded = load_image_file(image, global_index)
    host = RecordingHost(loaded.memory)
    try:
        boot(loaded.memory, loaded.payload_length, host)
    except ControlTransferred as transfer:
        return loaded, host, transfer.code


@click.group()
def main():
    pass


@main.command("run")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", "out", type=click.Path(dir_okay=False, path_type=Path), help="Write recovered code here")
@click.option("--global-index", type=int, default=None, help="Index of the payload length global")
def run_cmd(image: Path, out: Path | None, global_index: int | None):
    """Boot IMAGE against a simulated host and report the recovered code."""
    try:
        loaded, host, code = _boot(image, global_index)
        if out is not None:
            out.write_bytes(code)
    except (BootpackError, OSError) as e:
        _fail(e)

    base, length = host.registered
    _emit(
        {
            "status": "PASS",
            "payload_length": loaded.payload_length,
            "base": base,
            "length": length,
            "sha256": hashlib.sha256(code).hexdigest(),
        }
    )


@main.command("inspect")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(file_okay=False, path_type=Path))
@click.option("--global-index", type=int, default=None, help="Index of the payload length global")
def inspect_cmd(image: Path, out: Path, global_index: int | None):
    """Write section and token evidence tables for IMAGE into OUT."""
    try:
        loaded = load_image_file(image, global_index)
        summary = write_evidence(loaded, out)
    except (BootpackError, OSError) as e:
        _fail(e)

    _emit({"status": "PASS", **summary})


if __name__ == "__main__":
    main()
