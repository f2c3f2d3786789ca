"""
AES-256-CBC helpers used to protect exam content.

Two envelope formats are produced:

- at rest (database): ``"<base64 iv>:<base64 ciphertext>"``
- content store: ``{"iv", "encryptedData", "timestamp", "version"}``

Keys are 64 lowercase hex characters (256 bits). Every encryption draws a fresh
16 byte IV. Decryption returns a tagged payload: ``Structured`` when the
plaintext is valid JSON, ``Raw`` otherwise.
"""

import base64
import binascii
import json
import secrets
import time
from dataclasses import dataclass
from typing import Any, Mapping, Union

from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

KEY_HEX_LENGTH = 64
IV_SIZE = 16
BLOCK_SIZE_BITS = 128
ENVELOPE_VERSION = "1.0"


class DecryptionError(Exception):
    """Envelope is malformed, the key is wrong, or the ciphertext was tampered with."""


@dataclass(frozen=True)
class Structured:
    value: Any


@dataclass(frozen=True)
class Raw:
    text: str


DecryptedPayload = Union[Structured, Raw]


def generate_key() -> str:
    """Return a new random 256-bit key as 64 hex characters."""
    return secrets.token_hex(KEY_HEX_LENGTH // 2)


def _key_bytes(key: str) -> bytes:
    if not isinstance(key, str) or len(key) != KEY_HEX_LENGTH:
        raise DecryptionError("Encryption key must be 64 hex characters")
    try:
        return bytes.fromhex(key)
    except ValueError:
        raise DecryptionError("Encryption key must be 64 hex characters")


def _to_bytes(data: Union[str, bytes, Mapping, list]) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode("utf-8")
    # compact separators keep the ciphertext compatible with JSON.stringify output
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _encrypt(plaintext: bytes, key: bytes):
    iv = secrets.token_bytes(IV_SIZE)
    padder = sym_padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return iv, encryptor.update(padded) + encryptor.finalize()


def _decrypt(iv: bytes, ciphertext: bytes, key: bytes) -> bytes:
    if len(iv) != IV_SIZE:
        raise DecryptionError("Invalid IV length")
    if not ciphertext or len(ciphertext) % IV_SIZE:
        raise DecryptionError("Invalid ciphertext length")
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = sym_padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise DecryptionError("Bad padding: wrong key or corrupted data")


def _b64decode(value: Any, field: str) -> bytes:
    if not isinstance(value, str) or not value:
        raise DecryptionError(f"Missing {field}")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise DecryptionError(f"{field} is not valid base64")


def _decode_plaintext(plaintext: bytes) -> DecryptedPayload:
    try:
        text = plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionError("Decrypted data is not valid UTF-8: wrong key or corrupted data")
    try:
        return Structured(json.loads(text))
    except ValueError:
        return Raw(text)


def encrypt_at_rest(data: Union[str, bytes, Mapping, list], key: str) -> str:
    iv, ciphertext = _encrypt(_to_bytes(data), _key_bytes(key))
    return base64.b64encode(iv).decode("ascii") + ":" + base64.b64encode(ciphertext).decode("ascii")


def decrypt_at_rest(envelope: str, key: str) -> DecryptedPayload:
    if not isinstance(envelope, str):
        raise DecryptionError("Invalid encrypted data format")
    parts = envelope.split(":")
    if len(parts) != 2:
        raise DecryptionError("Invalid encrypted data format")
    iv = _b64decode(parts[0], "iv")
    ciphertext = _b64decode(parts[1], "ciphertext")
    return _decode_plaintext(_decrypt(iv, ciphertext, _key_bytes(key)))


def encrypt_for_store(data: Union[str, bytes, Mapping, list], key: str) -> dict:
    iv, ciphertext = _encrypt(_to_bytes(data), _key_bytes(key))
    return {
        "iv": base64.b64encode(iv).decode("ascii"),
        "encryptedData": base64.b64encode(ciphertext).decode("ascii"),
        "timestamp": int(time.time() * 1000),
        "version": ENVELOPE_VERSION,
    }


def decrypt_from_store(envelope: Mapping[str, Any], key: str) -> DecryptedPayload:
    if not isinstance(envelope, Mapping):
        raise DecryptionError("Invalid encrypted envelope")
    iv = _b64decode(envelope.get("iv"), "iv")
    ciphertext = _b64decode(envelope.get("encryptedData"), "encryptedData")
    return _decode_plaintext(_decrypt(iv, ciphertext, _key_bytes(key)))
