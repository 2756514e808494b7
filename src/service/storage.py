from __future__ import annotations

from typing import BinaryIO

MAX_CHUNK = 1024 * 1024  # 1 MiB


def read_stream_with_limit(src: BinaryIO, max_bytes: int) -> bytes:
    """
    Read an upload into memory, stopping one byte past ``max_bytes``.

    The caller sees an oversized file as ``len(data) > max_bytes`` without the
    service ever buffering the whole body.
    """
    src.seek(0)
    buf = bytearray()
    for chunk in iter(lambda: src.read(MAX_CHUNK), b""):
        buf.extend(chunk)
        if len(buf) > max_bytes:
            del buf[max_bytes + 1 :]
            break
    src.seek(0)
    return bytes(buf)


def sanitize_name(name: str) -> str:
    # keep the basename only; browsers may send a relative path
    base = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    return base or "file"
