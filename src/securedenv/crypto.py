"""
Key derivation and authenticated encryption.

Keys are derived in three PBKDF2-HMAC-SHA256 rounds, each feeding the
next:

    round 1: secret,   salt,                     500k iterations
    round 2: round 1,  salt || project entropy,  100k iterations
    round 3: round 2,  SHA-256(salt || entropy),  50k iterations

The random salt defeats precomputed tables, the project entropy binds
the key to one project name, and the extra rounds add work factor.
Encryption is AES-256-GCM with a fresh 32-byte salt and 16-byte nonce
on every call.
"""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import DecryptionError
from .keys import KeyMaterial, Password
from .models import EncryptedBlob, ProjectIdentity
from .validation import ensure_strong

logger = logging.getLogger("securedenv.crypto")

KEY_LENGTH = 32
SALT_LENGTH = 32
NONCE_LENGTH = 16
TAG_LENGTH = 16

ROUND_ITERATIONS: tuple[int, int, int] = (500_000, 100_000, 50_000)


def _pbkdf2(secret: bytes, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


def derive_key(
    material: KeyMaterial,
    salt: bytes,
    identity: ProjectIdentity,
    iterations: Optional[tuple[int, int, int]] = None,
) -> bytes:
    """Derive the 256-bit encryption key.

    Args:
        material: Password or raw key-file bytes.
        salt: Per-encryption random salt.
        identity: Project whose entropy is mixed in.
        iterations: Per-round iteration counts. Defaults to
            ROUND_ITERATIONS.

    Returns:
        bytes: 32-byte key.

    Raises:
        WeakKeyError: If a password fails the strength policy.
    """
    if isinstance(material, Password):
        ensure_strong(material.value)

    first, second, third = iterations or ROUND_ITERATIONS
    entropy = identity.entropy

    key = _pbkdf2(material.secret, salt, first)
    key = _pbkdf2(key, salt + entropy, second)
    final_salt = hashlib.sha256(salt + entropy).digest()
    return _pbkdf2(key, final_salt, third)


def encrypt(
    plaintext: bytes, material: KeyMaterial, identity: ProjectIdentity
) -> EncryptedBlob:
    """Encrypt bytes under a freshly salted key.

    Args:
        plaintext: Data to seal.
        material: Password or raw key.
        identity: Project the key is bound to.

    Returns:
        EncryptedBlob: Ciphertext, salt, nonce and tag (hex).
    """
    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    key = derive_key(material, salt, identity)

    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return EncryptedBlob(
        ciphertext=ciphertext.hex(),
        salt=salt.hex(),
        nonce=nonce.hex(),
        auth_tag=tag.hex(),
    )


def decrypt(
    blob: EncryptedBlob, material: KeyMaterial, identity: ProjectIdentity
) -> bytes:
    """Verify and decrypt a blob.

    Args:
        blob: The encrypted record.
        material: Password or raw key used at encryption time.
        identity: Project the key is bound to.

    Returns:
        bytes: The original plaintext.

    Raises:
        DecryptionError: Wrong key, or the blob was altered.
        WeakKeyError: If a password fails the strength policy.
    """
    try:
        ciphertext = bytes.fromhex(blob.ciphertext)
        salt = bytes.fromhex(blob.salt)
        nonce = bytes.fromhex(blob.nonce)
        tag = bytes.fromhex(blob.auth_tag)
    except ValueError as exc:
        raise DecryptionError(f"Malformed encrypted data: {exc}") from exc

    if len(salt) != SALT_LENGTH or len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
        raise DecryptionError("Malformed encrypted data: bad salt, nonce or tag length")

    key = derive_key(material, salt, identity)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as exc:
        raise DecryptionError(
            "Decryption failed: wrong key or corrupted data"
        ) from exc
