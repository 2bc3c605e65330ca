import base64

import pytest

from fatimacmd.cipher import BLOCK_SIZE, aes256_decode, aes256_encode, pkcs5_padding


def test_encrypt_round_trip_admin():
    plaintext = "admin"
    cipher_text = aes256_encode(plaintext)
    assert aes256_decode(cipher_text) == plaintext


@pytest.mark.parametrize("plaintext", ["", "a", "0123456789abcdef", "한글 텍스트", "x" * 100])
def test_round_trip_various(plaintext):
    assert aes256_decode(aes256_encode(plaintext)) == plaintext


def test_ciphertext_is_block_aligned():
    raw = base64.b64decode(aes256_encode("admin"))
    assert len(raw) % BLOCK_SIZE == 0
    assert len(raw) == BLOCK_SIZE


@pytest.mark.parametrize(
    "plaintext, encoded_length",
    [("admin", 24), ("0123456789abcdef", 44), ("", 24)],
)
def test_encoded_text_length(plaintext, encoded_length):
    assert len(aes256_encode(plaintext)) == encoded_length


def test_pkcs5_padding_partial_block():
    padded = pkcs5_padding(b"admin", 16)
    assert padded == b"admin" + bytes([11]) * 11


def test_pkcs5_padding_full_block_adds_block():
    data = b"0123456789abcdef"
    padded = pkcs5_padding(data, 16)
    assert len(padded) == 32
    assert padded[16:] == bytes([16]) * 16


def test_decode_invalid_base64():
    with pytest.raises(ValueError, match="base64 decode error"):
        aes256_decode("not base64 !!")


def test_decode_wrong_length():
    with pytest.raises(ValueError):
        aes256_decode(base64.b64encode(b"short").decode())