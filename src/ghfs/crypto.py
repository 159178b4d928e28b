from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32

# scrypt cost parameters (N, r, p)
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


class DecryptionError(ValueError):
    """Envelope is malformed, the secret is wrong, or the tag did not verify."""


@dataclass(frozen=True)
class Envelope:
    salt: bytes
    iv: bytes
    ciphertext: bytes
    tag: bytes

    def to_string(self) -> str:
        return ":".join(
            part.hex() for part in (self.salt, self.iv, self.ciphertext, self.tag)
        )

    @classmethod
    def parse(cls, text: str) -> "Envelope":
        parts = text.split(":")
        if len(parts) != 4:
            raise DecryptionError(
                f"Malformed envelope: expected 4 fields, got {len(parts)}"
            )
        try:
            salt, iv, ciphertext, tag = (bytes.fromhex(p) for p in parts)
        except ValueError as ex:
            raise DecryptionError("Malformed envelope: invalid hex field") from ex

        if len(salt) != SALT_SIZE:
            raise DecryptionError("Malformed envelope: bad salt length")
        if len(iv) != NONCE_SIZE:
            raise DecryptionError("Malformed envelope: bad iv length")
        if len(tag) != TAG_SIZE:
            raise DecryptionError("Malformed envelope: bad tag length")
        return cls(salt=salt, iv=iv, ciphertext=ciphertext, tag=tag)


def _derive_key(secret: str, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_SIZE, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


class EnvelopeCodec:
    """
    AES-256-GCM envelope encryption keyed by a shared secret.

    - Every `seal` draws a fresh salt and nonce, so the scrypt-derived key and
      the nonce are never reused across envelopes.
    - Envelope text is `salt:iv:ciphertext:tag`, each field lowercase hex.
    - `open` fails closed with `DecryptionError`; it never returns plaintext
      that did not pass tag verification.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("encryption secret is required")
        self._secret = secret

    def seal(self, plaintext: str) -> str:
        salt = os.urandom(SALT_SIZE)
        iv = os.urandom(NONCE_SIZE)
        key = _derive_key(self._secret, salt)
        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        envelope = Envelope(
            salt=salt,
            iv=iv,
            ciphertext=sealed[:-TAG_SIZE],
            tag=sealed[-TAG_SIZE:],
        )
        return envelope.to_string()

    def open(self, envelope: str) -> str:
        env = Envelope.parse(envelope)
        key = _derive_key(self._secret, env.salt)
        try:
            data = AESGCM(key).decrypt(env.iv, env.ciphertext + env.tag, None)
        except InvalidTag as ex:
            raise DecryptionError(
                "Failed to decrypt envelope: authentication failed"
            ) from ex

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as ex:
            raise DecryptionError("Decrypted payload is not valid UTF-8") from ex


# -------- Convenience top-level helpers --------
def seal(plaintext: str, secret: str) -> str:
    return EnvelopeCodec(secret).seal(plaintext)


def open_envelope(envelope: str, secret: str) -> str:
    return EnvelopeCodec(secret).open(envelope)


__all__ = [
    "DecryptionError",
    "Envelope",
    "EnvelopeCodec",
    "open_envelope",
    "seal",
]
