import io
import os

import pytest

from cifra import algo
from cifra.algo import (
    BlockCorrupt,
    DecryptionFailure,
    Direction,
    InvalidKeyFormat,
    IOFailure,
    TruncatedInput,
)
from cifra.pipeline import (
    PipelineState,
    StreamJob,
    decrypt_file,
    encrypt_file,
    run_stream,
)


def _write(path, data):
    path.write_bytes(data)
    return path


# -- Round trips ------------------------------------------------------------


@pytest.mark.parametrize("size", [0, 1, 245, 490, 1000, 10_000])
def test_file_round_trip(tmp_path, public_key, private_key, size):
    data = os.urandom(size)
    src = _write(tmp_path / "plain.bin", data)
    enc = tmp_path / "plain.bin.enc"
    dec = tmp_path / "plain.out"

    encrypt_file(src, enc, public_key)
    decrypt_file(enc, dec, private_key)

    assert dec.read_bytes() == data


def test_thousand_bytes_become_five_cipher_blocks(tmp_path, public_key, private_key):
    src = _write(tmp_path / "in.bin", os.urandom(1000))
    enc = tmp_path / "in.enc"
    dec = tmp_path / "in.dec"

    summary = encrypt_file(src, enc, public_key)
    assert summary.blocks == 5
    assert summary.bytes_read == 1000
    assert summary.bytes_written == 1280
    assert summary.destination == enc
    assert enc.stat().st_size == 1280

    summary = decrypt_file(enc, dec, private_key)
    assert summary.blocks == 5
    assert dec.stat().st_size == 1000
    assert dec.read_bytes() == src.read_bytes()


def test_repeated_encryption_differs_but_decrypts_identically(tmp_path, public_key, private_key):
    data = os.urandom(600)
    src = _write(tmp_path / "in.bin", data)
    outputs = []
    for n in range(2):
        enc = tmp_path / f"run{n}.enc"
        dec = tmp_path / f"run{n}.dec"
        encrypt_file(src, enc, public_key)
        decrypt_file(enc, dec, private_key)
        outputs.append(dec.read_bytes())
    assert outputs[0] == outputs[1] == data


def test_each_cipher_block_decrypts_alone(tmp_path, public_key, private_key):
    data = b"A" * 245 + b"B" * 245 + b"C" * 10
    src = _write(tmp_path / "in.bin", data)
    enc = tmp_path / "in.enc"
    encrypt_file(src, enc, public_key)

    ct = enc.read_bytes()
    blocks = [ct[i : i + 256] for i in range(0, len(ct), 256)]
    plain = [algo.transform_block(private_key, b, Direction.DECRYPT) for b in blocks]
    assert plain == [b"A" * 245, b"B" * 245, b"C" * 10]


# -- Failures and cleanup ---------------------------------------------------


def test_truncated_ciphertext_fails_and_leaves_no_output(tmp_path, public_key, private_key):
    src = _write(tmp_path / "in.bin", os.urandom(1000))
    enc = tmp_path / "in.enc"
    encrypt_file(src, enc, public_key)
    enc.write_bytes(enc.read_bytes()[:-17])
    dec = tmp_path / "in.dec"

    with pytest.raises(TruncatedInput) as info:
        decrypt_file(enc, dec, private_key)

    assert info.value.block_index == 4
    assert not dec.exists()


def test_truncated_stream_detected_while_reading(public_key, private_key):
    ct = io.BytesIO()
    run_stream(io.BytesIO(os.urandom(300)), ct, public_key, Direction.ENCRYPT)
    broken = io.BytesIO(ct.getvalue()[:300])

    with pytest.raises(TruncatedInput) as info:
        run_stream(broken, io.BytesIO(), private_key, Direction.DECRYPT)
    assert info.value.block_index == 1


def test_corrupt_block_aborts_and_removes_partial_output(tmp_path, public_key, private_key):
    src = _write(tmp_path / "in.bin", os.urandom(245 * 4))
    enc = tmp_path / "in.enc"
    encrypt_file(src, enc, public_key)

    ct = bytearray(enc.read_bytes())
    ct[2 * 256 : 3 * 256] = b"\xff" * 256  # block 2 no longer below the modulus
    enc.write_bytes(bytes(ct))

    dec = tmp_path / "in.dec"
    job = StreamJob(enc, dec, private_key, Direction.DECRYPT)
    with pytest.raises(DecryptionFailure) as info:
        job.run()

    assert info.value.block_index == 2
    assert "block 2" in str(info.value)
    assert job.state is PipelineState.FAILED
    assert not dec.exists()


def test_blocks_after_failure_are_not_processed(public_key, private_key):
    good = io.BytesIO()
    run_stream(io.BytesIO(b"x" * 245), good, public_key, Direction.ENCRYPT)
    source = io.BytesIO(good.getvalue() + b"\xff" * 256 + good.getvalue())
    out = io.BytesIO()

    with pytest.raises(DecryptionFailure):
        run_stream(source, out, private_key, Direction.DECRYPT)

    assert out.getvalue() == b"x" * 245


def test_missing_source_is_io_failure(tmp_path, public_key):
    dest = tmp_path / "out.enc"
    with pytest.raises(IOFailure):
        encrypt_file(tmp_path / "missing.bin", dest, public_key)
    assert not dest.exists()


def test_unwritable_destination_is_io_failure(tmp_path, public_key):
    src = _write(tmp_path / "in.bin", b"data")
    with pytest.raises(IOFailure):
        encrypt_file(src, tmp_path / "no-such-dir" / "out.enc", public_key)


def test_source_and_destination_must_differ(tmp_path, public_key):
    src = _write(tmp_path / "in.bin", b"keep me")
    with pytest.raises(IOFailure):
        encrypt_file(src, src, public_key)
    assert src.read_bytes() == b"keep me"


def test_wrong_key_role_rejected_before_io(tmp_path, public_key):
    dest = tmp_path / "out.bin"
    with pytest.raises(InvalidKeyFormat):
        StreamJob(tmp_path / "missing.enc", dest, public_key, Direction.DECRYPT)
    assert not dest.exists()


def test_ciphertext_from_smaller_key_does_not_frame(tmp_path, private_key):
    small = algo.generate_key_pair(1024)
    small_pub = algo.load_key(small.public_pem, Direction.ENCRYPT)
    src = _write(tmp_path / "in.bin", os.urandom(500))
    enc = tmp_path / "in.enc"
    encrypt_file(src, enc, small_pub)  # 117-byte chunks -> 5 blocks of 128 = 640 bytes
    assert enc.stat().st_size == 640

    dec = tmp_path / "in.dec"
    with pytest.raises(TruncatedInput):
        decrypt_file(enc, dec, private_key)
    assert not dec.exists()


# -- Stream behaviour -------------------------------------------------------


class _TrickleReader(io.RawIOBase):
    """Returns at most 7 bytes per read, like a slow pipe."""

    def __init__(self, data):
        self._buf = io.BytesIO(data)

    def readable(self):
        return True

    def read(self, size=-1):
        return self._buf.read(min(size, 7) if size >= 0 else 7)


def test_short_reads_are_reassembled_into_full_blocks(public_key, private_key):
    data = os.urandom(700)
    ct = io.BytesIO()
    run_stream(_TrickleReader(data), ct, public_key, Direction.ENCRYPT)
    assert len(ct.getvalue()) == 3 * 256

    out = io.BytesIO()
    run_stream(_TrickleReader(ct.getvalue()), out, private_key, Direction.DECRYPT)
    assert out.getvalue() == data


def test_state_transitions(public_key):
    seen = []
    run_stream(
        io.BytesIO(b"z" * 300),
        io.BytesIO(),
        public_key,
        Direction.ENCRYPT,
        on_state=seen.append,
    )
    assert seen[:4] == [
        PipelineState.READING,
        PipelineState.TRANSFORMING,
        PipelineState.WRITING,
        PipelineState.READING,
    ]
    assert seen[-3:] == [PipelineState.READING, PipelineState.FLUSHING, PipelineState.DONE]
    assert seen.count(PipelineState.WRITING) == 2


def test_job_ends_done(tmp_path, public_key):
    src = _write(tmp_path / "in.bin", b"abc")
    job = StreamJob(src, tmp_path / "in.enc", public_key, Direction.ENCRYPT)
    assert job.state is PipelineState.IDLE
    job.run()
    assert job.state is PipelineState.DONE


def test_progress_callback(tmp_path, public_key):
    src = _write(tmp_path / "in.bin", os.urandom(1000))
    calls = []
    encrypt_file(src, tmp_path / "in.enc", public_key, progress_callback=lambda d, t: calls.append((d, t)))
    assert calls == [(245, 1000), (490, 1000), (735, 1000), (980, 1000), (1000, 1000)]


def test_failing_progress_callback_removes_partial_output(tmp_path, public_key):
    src = _write(tmp_path / "in.bin", os.urandom(245 * 3))
    dest = tmp_path / "in.enc"

    def stop_after_first_block(done, total):
        raise RuntimeError("cancelled")

    job = StreamJob(src, dest, public_key, Direction.ENCRYPT, progress_callback=stop_after_first_block)
    with pytest.raises(RuntimeError):
        job.run()

    assert job.state is PipelineState.FAILED
    assert not dest.exists()


def test_wrong_private_key_file_decrypt_fails_and_leaves_no_output(tmp_path, public_key, other_key_pair):
    src = _write(tmp_path / "in.bin", os.urandom(600))
    enc = tmp_path / "in.enc"
    encrypt_file(src, enc, public_key)
    other = algo.load_key(other_key_pair.private_pem, Direction.DECRYPT)

    dec = tmp_path / "in.dec"
    with pytest.raises(DecryptionFailure) as info:
        decrypt_file(enc, dec, other)

    assert info.value.block_index == 0
    assert not dec.exists()


def test_block_corrupt_is_a_decryption_failure():
    assert issubclass(BlockCorrupt, DecryptionFailure)
