"""
Executable Substitution Patcher for MTGInstaller

This module rewrites literal byte sequences embedded in a compiled executable
without disassembling it. Substitutions are streamed: the input is read in
chunks and each substitution stage is a lazy generator feeding the next one,
so executables never have to fit in memory.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Tuple

CHUNK_SIZE = 64 * 1024

Substitution = Tuple[bytes, bytes]


def iter_chunks(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """
    Read a binary stream lazily in fixed-size chunks.

    Args:
        stream: Readable binary stream
        chunk_size: Number of bytes per chunk

    Yields:
        bytes: Consecutive chunks until the stream is exhausted
    """
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            return
        yield chunk


def substitute(chunks: Iterable[bytes], pattern: bytes, replacement: bytes) -> Iterator[bytes]:
    """
    Replace occurrences of ``pattern`` with ``replacement`` in a chunk stream.

    A cursor tracks how many bytes of the pattern have matched so far. A full
    match emits the replacement. When a byte breaks a partial match, the
    matched prefix is emitted, followed by that byte unexamined, and the
    cursor starts over. Thus ``AB`` inside ``AAB`` is left alone. A partial
    match left over at the end of the stream is emitted unchanged. Only the
    cursor is carried from one chunk to the next.

    Args:
        chunks: Input byte chunks (consumed exactly once)
        pattern: Byte sequence to search for
        replacement: Bytes emitted in place of each match

    Yields:
        bytes: Output chunks
    """
    if not pattern:
        raise ValueError("Substitution pattern cannot be empty")

    first = pattern[:1]
    match = 0

    for chunk in chunks:
        out = bytearray()
        pos = 0
        size = len(chunk)

        while pos < size:
            if match == 0:
                # Skip ahead to the next byte that can start a match
                index = chunk.find(first, pos)
                if index < 0:
                    out += chunk[pos:]
                    break
                out += chunk[pos:index]
                pos = index

            byte = chunk[pos]
            pos += 1

            if byte == pattern[match]:
                match += 1
                if match == len(pattern):
                    out += replacement
                    match = 0
            else:
                out += pattern[:match]
                out.append(byte)
                match = 0

        if out:
            yield bytes(out)

    if match:
        yield pattern[:match]


def patch(chunks: Iterable[bytes], substitutions: Iterable[Substitution]) -> Iterator[bytes]:
    """
    Chain substitutions into a pipeline.

    The output of substitution *k* is the input of substitution *k+1*, so later
    substitutions see (and may match) the bytes produced by earlier ones.

    Args:
        chunks: Input byte chunks
        substitutions: Ordered (from, to) byte pairs

    Returns:
        Iterator[bytes]: Lazy output chunk stream
    """
    stream: Iterator[bytes] = iter(chunks)
    for pattern, replacement in substitutions:
        stream = substitute(stream, pattern, replacement)
    return stream


def patch_bytes(data: bytes, substitutions: Iterable[Substitution]) -> bytes:
    """Apply substitutions to an in-memory byte string."""
    return b"".join(patch([data], substitutions))


def patch_file(source: Path, destination: Path, substitutions: Iterable[Substitution]) -> None:
    """
    Stream a file through the substitution pipeline into a new file.

    Args:
        source: File to read
        destination: File to write (overwritten)
        substitutions: Ordered (from, to) byte pairs
    """
    logger = logging.getLogger("MTGInstaller")
    logger.debug(f"Patching {source} into {destination}")

    with open(source, "rb") as reader, open(destination, "wb") as writer:
        for data in patch(iter_chunks(reader), substitutions):
            writer.write(data)


def patch_executable(exe_path: Path, tmp_path: Path, substitutions: Iterable[Substitution]) -> None:
    """
    Patch an executable in place through a temporary file.

    The patched image is written to ``tmp_path`` first, then the original is
    deleted and the temporary file renamed over it. Permission bits of the
    original executable are carried over.

    Args:
        exe_path: Executable to patch
        tmp_path: Temporary output path (left behind only if the process dies
            between the two steps; the backup manager removes it on restore)
        substitutions: Ordered (from, to) byte pairs
    """
    logger = logging.getLogger("MTGInstaller")
    logger.info("Patching executable to substitute symbols")

    mode = os.stat(exe_path).st_mode
    logger.debug(f"Permissions on executable: {oct(mode & 0o7777)}")

    patch_file(exe_path, tmp_path, substitutions)

    logger.debug("Replacing executable")
    if exe_path.exists():
        exe_path.unlink()
    shutil.move(str(tmp_path), str(exe_path))

    os.chmod(exe_path, mode & 0o7777)
