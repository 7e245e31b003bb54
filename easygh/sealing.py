"""
Anonymous public-key encryption compatible with libsodium's crypto_box_seal.

A sealed box is the ephemeral public key followed by the output of
crypto_box for that ephemeral key and the recipient's key. The nonce is never
transmitted: both sides derive it from the two public keys with BLAKE2b set to
a 24 byte digest. Truncating a longer digest gives a different nonce that the
recipient cannot decrypt.
"""

import base64
import binascii
import logging

import nacl.encoding
import nacl.exceptions
import nacl.hash
import nacl.public

from .errors import EncryptionError

log = logging.getLogger(__name__)

KEY_SIZE = nacl.public.PublicKey.SIZE
NONCE_SIZE = nacl.public.Box.NONCE_SIZE
MAC_SIZE = 16
OVERHEAD = KEY_SIZE + MAC_SIZE


def derive_nonce(ephemeral_public_key: bytes, recipient_public_key: bytes) -> bytes:
    """Derive the sealed box nonce from the ephemeral and recipient keys."""
    return nacl.hash.blake2b(
        ephemeral_public_key + recipient_public_key,
        digest_size=NONCE_SIZE,
        encoder=nacl.encoding.RawEncoder)


def seal(plaintext: bytes, recipient_key: bytes) -> bytes:
    """
    Encrypt plaintext so only the holder of the recipient's private key can
    read it.

    Every call uses a new ephemeral keypair, so sealing the same plaintext
    twice gives different output. The result is KEY_SIZE + len(plaintext) +
    MAC_SIZE bytes long.
    """
    if len(recipient_key) != KEY_SIZE:
        raise EncryptionError(
            f"Recipient public key must be {KEY_SIZE} bytes, "
            f"got {len(recipient_key)}")

    try:
        ephemeral = nacl.public.PrivateKey.generate()
        ephemeral_public_key = bytes(ephemeral.public_key)
        box = nacl.public.Box(ephemeral, nacl.public.PublicKey(recipient_key))
        encrypted = box.encrypt(
            plaintext, derive_nonce(ephemeral_public_key, recipient_key))
    except nacl.exceptions.CryptoError as error:
        raise EncryptionError(f"Failed to seal value: {error}") from error

    return ephemeral_public_key + encrypted.ciphertext


def decode_key(public_key: str) -> bytes:
    """Decode a base64 public key as returned by the GitHub API."""
    try:
        return base64.b64decode(public_key, validate=True)
    except (binascii.Error, ValueError) as error:
        raise EncryptionError(f"Failed to decode public key: {error}") from error


def seal_base64(value: str, public_key: str) -> str:
    """Seal a text value for a base64 public key, returning base64."""
    log.debug("Sealing value for a base64 public key")
    return base64.b64encode(seal(value.encode('utf-8'), decode_key(public_key))).decode('ascii')
