from __future__ import annotations

import hashlib
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from bootpack_core.errors import RuntimeBoundsFault
from bootpack_core.protocol import DEFAULT_LAYOUT, MemoryLayout
from bootpack_pack.container import DataBlocks, Globals, serialize_container

from .engine import Decompressed, SequenceToken, decompress
from .image import LoadedImage

SECTION_SCHEMA = pa.schema(
    [
        ("section_id", pa.int32()),
        ("kind", pa.string()),
        ("records", pa.int32()),
        ("size", pa.int64()),
        ("content_hash", pa.string()),
    ]
)

TOKEN_SCHEMA = pa.schema(
    [
        ("input_offset", pa.int32()),
        ("output_offset", pa.int32()),
        ("literal_length", pa.int32()),
        ("match_length", pa.int32()),
        ("match_distance", pa.int32()),
    ]
)


def section_rows(loaded: LoadedImage) -> list[dict]:
    rows: list[dict] = []
    container = loaded.container
    for section_id in sorted(container.sections):
        content = container.sections[section_id]
        body = content.encode()
        if isinstance(content, (Globals, DataBlocks)):
            kind, records = type(content).__name__.lower(), len(content.entries)
        else:
            kind, records = "opaque", None
        rows.append(
            {
                "section_id": section_id,
                "kind": kind,
                "records": records,
                "size": len(body),
                "content_hash": hashlib.sha256(body).hexdigest(),
            }
        )
    for body in container.custom:
        rows.append(
            {
                "section_id": 0,
                "kind": "custom",
                "records": None,
                "size": len(body),
                "content_hash": hashlib.sha256(body).hexdigest(),
            }
        )
    return rows


def token_rows(loaded: LoadedImage, layout: MemoryLayout = DEFAULT_LAYOUT) -> tuple[list[dict], int]:
    """Trace the payload stream. Returns (rows, decompressed length).

    Runs against a copy of the image memory so ``loaded`` can still be booted.
    """
    tokens: list[SequenceToken] = []
    result = decompress(bytearray(loaded.memory), loaded.payload_length, layout, on_token=tokens.append)
    if not isinstance(result, Decompressed):
        raise RuntimeBoundsFault(f"Payload stream faulted while {result.phase.value}: {result.reason}")
    rows = [
        {
            "input_offset": t.input_offset,
            "output_offset": t.output_offset,
            "literal_length": t.literal_length,
            "match_length": t.match_length,
            "match_distance": t.match_distance,
        }
        for t in tokens
    ]
    return rows, result.length


def write_evidence(loaded: LoadedImage, out_path: Path) -> dict:
    """Write sections.parquet and tokens.parquet for a loaded image."""
    out_path = Path(out_path)
    out_path.mkdir(parents=True, exist_ok=True)

    sections = section_rows(loaded)
    tokens, length = token_rows(loaded)

    def write_parquet(data: list[dict], filename: str, schema: pa.Schema) -> None:
        # Nullable integer columns keep missing match fields as nulls.
        dtypes = {f.name: "Int64" if f.type == pa.int64() else "Int32" for f in schema if pa.types.is_integer(f.type)}
        df = pd.DataFrame(data, columns=schema.names).astype(dtypes)
        pq.write_table(pa.Table.from_pandas(df, schema=schema, preserve_index=False), out_path / filename)

    write_parquet(sections, "sections.parquet", SECTION_SCHEMA)
    write_parquet(tokens, "tokens.parquet", TOKEN_SCHEMA)

    return {
        "image_size": len(serialize_container(loaded.container)),
        "payload_length": loaded.payload_length,
        "decompressed_length": length,
        "sections": len(sections),
        "tokens": len(tokens),
    }
