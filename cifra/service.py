"""
Cifra Service
=============

The object front ends talk to.  A :class:`CryptService` is built once from a
:class:`~cifra.settings.Settings` and handed to whoever needs it; every
method returns an :class:`~cifra.results.Ok` or :class:`~cifra.results.Error`.

Batches
-------
``encrypt_files`` / ``decrypt_files`` run one :class:`StreamJob` per source
on a thread pool.  Jobs share nothing but the immutable key handle; one
failing job does not stop the others, and the batch result is returned only
after every job has finished.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from cifra import algo
from cifra.algo import Direction, InvalidKeyFormat, KeyHandle, PemInput
from cifra.pipeline import StreamJob
from cifra.results import Error, Ok, Result, capture
from cifra.settings import Settings

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Sent by HTML forms when no key was chosen
_NULL_KEY = "null"


@dataclass(frozen=True)
class BatchItem:
    source: Path
    result: Result


@dataclass(frozen=True)
class BatchReport:
    """Per-source outcomes of a batch, in submission order."""

    items: Tuple[BatchItem, ...]

    @property
    def succeeded(self) -> List[BatchItem]:
        return [item for item in self.items if item.result.ok]

    @property
    def failed(self) -> List[BatchItem]:
        return [item for item in self.items if not item.result.ok]

    @property
    def all_ok(self) -> bool:
        return not self.failed


class CryptService:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def generate_key_pair(self, modulus_bits: Optional[int] = None) -> Result:
        bits = modulus_bits or self.settings.default_modulus_bits
        return capture(algo.generate_key_pair, bits)

    def generate_secret_key(self, kind: str = "aes", length_bits: int = 128) -> Result:
        return capture(algo.generate_secret_key, kind, length_bits)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def encrypt_text(self, public_pem: PemInput, text: str) -> Result:
        def _run() -> str:
            key = algo.load_key(public_pem, Direction.ENCRYPT)
            return algo.encrypt_text(key, text)

        return capture(_run)

    def decrypt_text(self, private_pem: Optional[PemInput], data: str) -> Result:
        def _run() -> str:
            key = self._private_key(private_pem)
            return algo.decrypt_text(key, data)

        return capture(_run)

    def symmetric_encrypt(self, text: str, passphrase: str) -> Result:
        return capture(algo.symmetric_encrypt, text, passphrase)

    def symmetric_decrypt(self, data: str, passphrase: str) -> Result:
        return capture(algo.symmetric_decrypt, data, passphrase)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def encrypt_file(
        self,
        public_pem: PemInput,
        source: PathLike,
        destination: Optional[PathLike] = None,
    ) -> Result:
        def _run():
            key = algo.load_key(public_pem, Direction.ENCRYPT)
            dest = destination or self.encrypted_path(source)
            return StreamJob(source, dest, key, Direction.ENCRYPT).run()

        return capture(_run)

    def decrypt_file(
        self,
        private_pem: Optional[PemInput],
        source: PathLike,
        destination: Optional[PathLike] = None,
        extension: Optional[str] = None,
    ) -> Result:
        def _run():
            key = self._private_key(private_pem)
            dest = destination or self.decrypted_path(source, extension)
            return StreamJob(source, dest, key, Direction.DECRYPT).run()

        return capture(_run)

    def encrypt_files(self, public_pem: PemInput, sources: Iterable[PathLike]) -> Result:
        key_result = capture(algo.load_key, public_pem, Direction.ENCRYPT)
        if not key_result.ok:
            return key_result
        jobs = [(Path(s), self.encrypted_path(s)) for s in sources]
        return Ok(self._run_batch(key_result.payload, Direction.ENCRYPT, jobs))

    def decrypt_files(
        self,
        private_pem: Optional[PemInput],
        sources: Iterable[PathLike],
        extension: Optional[str] = None,
    ) -> Result:
        key_result = capture(self._private_key, private_pem)
        if not key_result.ok:
            return key_result
        jobs = [(Path(s), self.decrypted_path(s, extension)) for s in sources]
        return Ok(self._run_batch(key_result.payload, Direction.DECRYPT, jobs))

    # ------------------------------------------------------------------
    # Output naming
    # ------------------------------------------------------------------

    def encrypted_path(self, source: PathLike) -> Path:
        """``report.pdf`` -> ``report.pdf.enc`` next to the source."""
        source = Path(source)
        return source.with_name(source.name + self.settings.encrypted_suffix)

    def decrypted_path(self, source: PathLike, extension: Optional[str] = None) -> Path:
        """
        ``report.pdf.enc`` -> ``report_decrypted.pdf`` next to the source.

        The extension is *extension* if given, else the one left after
        removing the encrypted suffix, else ``settings.decrypted_extension``.
        """
        source = Path(source)
        suffix = self.settings.encrypted_suffix
        if suffix and source.name.endswith(suffix) and len(source.name) > len(suffix):
            base = Path(source.name[: -len(suffix)])
        else:
            base = Path(source.stem)
        ext = extension or base.suffix.lstrip(".") or self.settings.decrypted_extension
        return source.with_name(f"{base.stem}{self.settings.decrypted_suffix}.{ext.lstrip('.')}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _private_key(self, private_pem: Optional[PemInput]) -> KeyHandle:
        """Load the supplied private key, or the configured default one."""
        if private_pem is not None:
            text = private_pem.decode("ascii", "replace") if isinstance(private_pem, bytes) else private_pem
            if text.strip() and text.strip() != _NULL_KEY:
                return algo.load_key(private_pem, Direction.DECRYPT)
        path = self.settings.private_key_path
        if path is None:
            raise InvalidKeyFormat("No private key supplied and no default key configured.")
        log.debug("using default private key from %s", path)
        return algo.load_key_file(path, Direction.DECRYPT)

    def _run_batch(
        self,
        key: KeyHandle,
        direction: Direction,
        jobs: Sequence[Tuple[Path, Path]],
    ) -> BatchReport:
        if not jobs:
            return BatchReport(items=())
        jobs = _distinct_destinations(jobs)

        def _one(job: Tuple[Path, Path]) -> BatchItem:
            source, destination = job
            result = capture(lambda: StreamJob(source, destination, key, direction).run())
            return BatchItem(source=source, result=result)

        workers = min(self.settings.max_concurrent_jobs, len(jobs))
        log.info("%s batch of %d file(s) on %d worker(s)", direction.value, len(jobs), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cifra-job") as pool:
            items = tuple(pool.map(_one, jobs))

        report = BatchReport(items=items)
        log.info(
            "%s batch finished: %d ok, %d failed",
            direction.value,
            len(report.succeeded),
            len(report.failed),
        )
        for item in report.failed:
            error = item.result
            if isinstance(error, Error):
                log.warning("%s: %s %s", item.source, error.kind, error.message)
        return report


def _distinct_destinations(jobs: Sequence[Tuple[Path, Path]]) -> List[Tuple[Path, Path]]:
    """
    Give every job its own output file.

    Different sources can name the same output (``report.txt.enc`` and
    ``report.enc`` both decrypt to ``report_decrypted.txt``); later ones get
    ``_2``, ``_3``, ... appended to the stem.
    """
    taken = {destination.resolve() for _, destination in jobs}
    assigned = set()
    distinct = []
    for source, destination in jobs:
        resolved = destination.resolve()
        if resolved in assigned:
            n = 2
            while True:
                candidate = destination.with_name(f"{destination.stem}_{n}{destination.suffix}")
                if candidate.resolve() not in taken:
                    break
                n += 1
            log.info(
                "%s: %s already taken in this batch, writing %s",
                source,
                destination.name,
                candidate.name,
            )
            destination = candidate
            resolved = candidate.resolve()
            taken.add(resolved)
        assigned.add(resolved)
        distinct.append((source, destination))
    return distinct
