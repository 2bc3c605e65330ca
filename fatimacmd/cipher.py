"""AES-256-CBC helpers for the shared secrets exchanged with the fatima server."""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16

_CIPHER_KEY = b"12345678901234567890123456789012"
_CIPHER_IV = b"1234567890123456"


def _cipher() -> Cipher:
    return Cipher(algorithms.AES(_CIPHER_KEY), modes.CBC(_CIPHER_IV))


def pkcs5_padding(data: bytes, block_size: int) -> bytes:
    """Pad ``data`` to a multiple of ``block_size`` using PKCS#5/#7 padding."""
    padding = block_size - len(data) % block_size
    return bytes(data) + bytes([padding]) * padding


def _trim_pkcs5(data: bytes) -> bytes:
    if not data:
        raise ValueError("cannot trim padding of empty data")
    padding = data[-1]
    if padding > len(data):
        raise ValueError(f"invalid padding length : {padding}")
    return data[: len(data) - padding]


def aes256_encode(plaintext: str) -> str:
    """Encrypt ``plaintext`` and return it as standard base64 text."""
    padded = pkcs5_padding(plaintext.encode("utf-8"), BLOCK_SIZE)
    encryptor = _cipher().encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(ciphertext).decode("ascii")


def aes256_decode(cipher_text: str) -> str:
    """Decrypt base64 text produced by :func:`aes256_encode`."""
    cleaned = cipher_text.replace("\r", "").replace("\n", "")
    try:
        raw = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"base64 decode error : {exc}") from exc

    if len(raw) % BLOCK_SIZE:
        raise ValueError("ciphertext is not a multiple of the block size")

    decryptor = _cipher().decryptor()
    plain = decryptor.update(raw) + decryptor.finalize()
    return _trim_pkcs5(plain).decode("utf-8", errors="replace")