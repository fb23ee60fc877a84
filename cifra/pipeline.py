"""
Cifra Stream Pipeline
=====================

Chunked RSA file encryption / decryption.

A source stream is read in fixed-size blocks, each block goes through
:func:`cifra.algo.transform_block`, and the result is written to the
destination before the next block is read.  Only one block of input and one
block of output are held in memory per job.

On-disk ciphertext layout::

    block_0(cipher) || block_1(cipher) || ... || block_n(cipher)

There is no header, length prefix or separator; a reader needs the key's
cipher block size to re-chunk the file.  Blocks are independent PKCS#1 v1.5
ciphertexts with no chaining and no integrity tag, so whole blocks can be
reordered or dropped without detection.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from cifra.algo import (
    CifraError,
    Direction,
    IOFailure,
    KeyHandle,
    TruncatedInput,
    _check_role,
    transform_block,
)

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
StateCallback = Callable[["PipelineState"], None]


class PipelineState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    TRANSFORMING = "transforming"
    WRITING = "writing"
    FLUSHING = "flushing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StreamSummary:
    """Outcome of a completed stream transform."""

    destination: Optional[Path]
    blocks: int
    bytes_read: int
    bytes_written: int


# ---------------------------------------------------------------------------
# Stream loop
# ---------------------------------------------------------------------------


def run_stream(
    source: BinaryIO,
    destination: BinaryIO,
    key: KeyHandle,
    direction: Direction,
    *,
    total: int = 0,
    progress_callback: Optional[ProgressCallback] = None,
    on_state: Optional[StateCallback] = None,
) -> StreamSummary:
    """
    Transform *source* into *destination* block by block.

    Parameters
    ----------
    source, destination : binary file-like objects
        Neither is closed here.
    key : KeyHandle
        Public key for ``ENCRYPT``, private key for ``DECRYPT``.
    total : int
        Source size passed through to *progress_callback* (0 if unknown).
    progress_callback : callable(bytes_processed, total_bytes)
        Called after every written block.
    on_state : callable(PipelineState)
        Receives every state transition.

    Raises
    ------
    CifraError
        The first failure, with ``block_index`` set to the failing block.
    """
    direction = Direction(direction)
    _check_role(key, direction)
    read_size = key.block_size.read_size(direction)

    index = 0
    bytes_read = 0
    bytes_written = 0

    def enter(state: PipelineState) -> None:
        log.debug("block %d: %s", index, state.value)
        if on_state:
            on_state(state)

    try:
        while True:
            enter(PipelineState.READING)
            try:
                block = _read_exact(source, read_size)
            except OSError as exc:
                raise IOFailure(f"Reading source failed: {exc}", block_index=index) from exc
            if not block:
                break
            bytes_read += len(block)

            if direction is Direction.DECRYPT and len(block) != read_size:
                raise TruncatedInput(
                    f"Ciphertext ends with a {len(block)}-byte fragment; "
                    f"blocks are {read_size} bytes.",
                    block_index=index,
                )

            enter(PipelineState.TRANSFORMING)
            try:
                out = transform_block(key, block, direction)
            except CifraError as exc:
                exc.block_index = index
                raise

            enter(PipelineState.WRITING)
            try:
                destination.write(out)
            except OSError as exc:
                raise IOFailure(f"Writing destination failed: {exc}", block_index=index) from exc
            bytes_written += len(out)
            index += 1

            if progress_callback:
                progress_callback(bytes_read, total)

        enter(PipelineState.FLUSHING)
        try:
            destination.flush()
        except OSError as exc:
            raise IOFailure(f"Flushing destination failed: {exc}") from exc
    except BaseException:
        enter(PipelineState.FAILED)
        raise

    enter(PipelineState.DONE)
    return StreamSummary(
        destination=None,
        blocks=index,
        bytes_read=bytes_read,
        bytes_written=bytes_written,
    )


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read *size* bytes unless EOF comes first; short reads are retried."""
    chunks = []
    remaining = size
    while remaining:
        piece = stream.read(remaining)
        if not piece:
            break
        chunks.append(piece)
        remaining -= len(piece)
    return b"".join(chunks)


# ---------------------------------------------------------------------------
# StreamJob
# ---------------------------------------------------------------------------


class StreamJob:
    """
    One file transform: source path -> destination path under one key.

    The job owns both file handles for the duration of :meth:`run`.  If any
    block fails the partially written destination is deleted before the
    error propagates.
    """

    def __init__(
        self,
        source: Union[str, Path],
        destination: Union[str, Path],
        key: KeyHandle,
        direction: Direction,
        *,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.direction = Direction(direction)
        _check_role(key, self.direction)
        self.source = Path(source)
        self.destination = Path(destination)
        self.key = key
        self.block_size = key.block_size
        self.progress_callback = progress_callback
        self.state = PipelineState.IDLE

    def __repr__(self) -> str:
        return (
            f"StreamJob({self.direction.value} {self.source} -> "
            f"{self.destination}, state={self.state.value})"
        )

    def run(self) -> StreamSummary:
        """Process the whole file and return a summary naming the destination."""
        log.info(
            "%s %s -> %s (%d-bit key)",
            self.direction.value,
            self.source,
            self.destination,
            self.key.modulus_bits,
        )
        created = False
        try:
            total = self._preflight()
            with open(self.source, "rb") as fin:
                with open(self.destination, "wb") as fout:
                    created = True
                    summary = run_stream(
                        fin,
                        fout,
                        self.key,
                        self.direction,
                        total=total,
                        progress_callback=self.progress_callback,
                        on_state=self._transition,
                    )
        except OSError as exc:
            self._fail(created)
            raise IOFailure(f"{self.source}: {exc}") from exc
        except CifraError as exc:
            self._fail(created)
            log.info("%s %s failed: %s", self.direction.value, self.source, exc)
            raise
        except BaseException:
            self._fail(created)
            log.info("%s %s aborted", self.direction.value, self.source)
            raise

        log.info(
            "%s %s done: %d blocks, %d -> %d bytes",
            self.direction.value,
            self.source,
            summary.blocks,
            summary.bytes_read,
            summary.bytes_written,
        )
        return replace(summary, destination=self.destination)

    # ------------------------------------------------------------------

    def _preflight(self) -> int:
        """Checks that need no open handles; returns the source size."""
        if self.destination.exists() and self.source.exists():
            if os.path.samefile(self.source, self.destination):
                raise IOFailure(f"Source and destination are the same file: {self.source}")
        total = self.source.stat().st_size
        cipher = self.block_size.cipher
        if self.direction is Direction.DECRYPT and total % cipher:
            raise TruncatedInput(
                f"Ciphertext is {total} bytes, not a multiple of {cipher}.",
                block_index=total // cipher,
            )
        return total

    def _transition(self, state: PipelineState) -> None:
        self.state = state

    def _fail(self, created: bool) -> None:
        self.state = PipelineState.FAILED
        if not created:
            return
        try:
            self.destination.unlink(missing_ok=True)
        except OSError as exc:
            log.warning("could not remove partial output %s: %s", self.destination, exc)
        else:
            log.warning("removed partial output %s", self.destination)


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------


def encrypt_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    public_key: KeyHandle,
    *,
    progress_callback: Optional[ProgressCallback] = None,
) -> StreamSummary:
    """Encrypt a file block by block with an RSA public key."""
    job = StreamJob(
        input_path,
        output_path,
        public_key,
        Direction.ENCRYPT,
        progress_callback=progress_callback,
    )
    return job.run()


def decrypt_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    private_key: KeyHandle,
    *,
    progress_callback: Optional[ProgressCallback] = None,
) -> StreamSummary:
    """Decrypt a file produced by :func:`encrypt_file`."""
    job = StreamJob(
        input_path,
        output_path,
        private_key,
        Direction.DECRYPT,
        progress_callback=progress_callback,
    )
    return job.run()
