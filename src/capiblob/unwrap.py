"""Recovers symmetric session keys from SIMPLEBLOBs, and produces SIMPLEBLOBs from them.

A SIMPLEBLOB holds a PKCS#1 v1.5 (block type 2) RSA ciphertext of the session key, stored with its byte order
reversed as a whole. Note the granularity: structured key blobs are reversed field by field, this one is reversed
across the entire payload.

The recovered `SessionKey` is a secret. Its bytes live in a bytearray that `wipe()` zeroes, and using it as a
context manager guarantees the wipe on every exit path. Doing so is up to the caller.

Typical usage example:

    with unwrap(codec.decode(wire), private_key) as session:
        clear = session.decrypt(ciphertext)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import algorithms
from cryptography.hazmat.primitives.ciphers import Cipher
from cryptography.hazmat.primitives.ciphers import modes

from capiblob.codec import BlobHeader
from capiblob.codec import RsaPrivateKeyFields
from capiblob.codec import RsaPublicKeyFields
from capiblob.codec import SimpleBlob
from capiblob.constants import AlgId
from capiblob.constants import BlobType
from capiblob.constants import CIPHER_MODE
from capiblob.constants import SESSION_KEY_SIZES
from capiblob.constants import ZERO_IV
from capiblob.errors import DecryptionFailed
from capiblob.errors import EncodeError
from capiblob.errors import LengthMismatch
from capiblob.errors import PaddingInvalid
from capiblob.errors import UnsupportedAlgorithm
from capiblob.rsa import unpad_pkcs1

logger = logging.getLogger(__name__)


class SessionKey:
    """A plaintext symmetric key as CryptoAPI would instantiate it after import.

    CryptoAPI always sets up imported block cipher keys in CBC mode with an all-zero IV, which is not stored in the
    blob. Ciphertext produced under that convention decrypts only if it is reproduced.

    Attributes:
        algorithm: The session key algorithm.
        key: The key bytes. Zeroed by `wipe()`.
        mode: Always "CBC".
        iv: Always 16 zero bytes.
    """

    def __init__(self, algorithm: AlgId, key: bytes | bytearray) -> None:
        self.algorithm = algorithm
        self.key = bytearray(key)
        self.mode = CIPHER_MODE
        self.iv = ZERO_IV

    def __enter__(self) -> "SessionKey":
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"SessionKey({self.algorithm!s}, {len(self.key)} bytes, {self.mode})"

    def wipe(self) -> None:
        """Overwrites the key bytes with zeros in place."""
        self.key[:] = bytes(len(self.key))

    def cipher(self) -> Cipher:
        """Builds the AES-CBC cipher with the fixed zero IV."""
        return Cipher(algorithms.AES(bytes(self.key)), modes.CBC(self.iv))

    def encrypt(self, data: bytes) -> bytes:
        """Encrypts like CryptEncrypt with Final=TRUE: PKCS#7 padding, then AES-CBC."""
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = self.cipher().encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, data: bytes) -> bytes:
        """Decrypts like CryptDecrypt with Final=TRUE.

        Args:
            data: Ciphertext, a multiple of 16 bytes.

        Returns:
            The plaintext with PKCS#7 padding removed.

        Raises:
            ValueError: If the data is not block aligned or the padding is invalid.
        """
        decryptor = self.cipher().decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()


def unwrap(simple_blob: SimpleBlob, private_key: RsaPrivateKeyFields) -> SessionKey:
    """Decrypts the session key carried by a SIMPLEBLOB.

    The private key must be the counterpart of the key-exchange key that wrapped the blob. A wrong key cannot be
    detected up front, it shows up as a padding or length failure.

    Args:
        simple_blob: The decoded SIMPLEBLOB.
        private_key: The decoded PRIVATEKEYBLOB of the key-exchange key.

    Returns:
        The session key, in CBC mode with a zero IV. The caller should wipe it after use.

    Raises:
        UnsupportedAlgorithm: The blob declares an algorithm without a fixed key size.
        DecryptionFailed: The ciphertext does not fit the private key.
        PaddingInvalid: The decrypted block is not PKCS#1 v1.5 type 2.
        LengthMismatch: The recovered key does not have the size the algorithm requires.
    """
    algorithm = simple_blob.header.alg_id
    if algorithm not in SESSION_KEY_SIZES:
        raise UnsupportedAlgorithm(f"{algorithm!s} is not a supported session key algorithm.")
    rsa = private_key.to_rsa()
    ciphertext = bytes(simple_blob.encrypted_key)[::-1]
    try:
        em = rsa.decrypt_block(ciphertext)
    except ValueError as err:
        raise DecryptionFailed(str(err)) from err
    try:
        key = unpad_pkcs1(em)
    except ValueError as err:
        raise PaddingInvalid("Decrypted block is not PKCS#1 v1.5 padded.") from err
    finally:
        em[:] = bytes(len(em))
    expected = SESSION_KEY_SIZES[algorithm]
    if len(key) != expected:
        found = len(key)
        key[:] = bytes(found)
        raise LengthMismatch(f"{algorithm!s} needs a {expected}-byte key, recovered {found} bytes.")
    logger.debug("Unwrapped %s session key with a %d-bit key.", algorithm, private_key.bit_length)
    session = SessionKey(algorithm, key)
    key[:] = bytes(len(key))
    return session


def wrap(session_key: SessionKey | bytes,
         public_key: RsaPublicKeyFields | RsaPrivateKeyFields,
         algorithm: AlgId | None = None) -> SimpleBlob:
    """Encrypts a session key into a SIMPLEBLOB.

    Args:
        session_key: A SessionKey, or the raw key bytes.
        public_key: The key-exchange key to wrap under. A private key is reduced to its public half.
        algorithm: The session key algorithm. Taken from the SessionKey if omitted, defaults to AES-128 for bytes.

    Returns:
        The SIMPLEBLOB, ready for `codec.encode`.

    Raises:
        UnsupportedAlgorithm: The algorithm has no fixed key size.
        LengthMismatch: The key does not have the size the algorithm requires.
        EncodeError: The RSA key is too small to carry the session key.
    """
    if isinstance(session_key, SessionKey):
        algorithm = algorithm or session_key.algorithm
        raw = bytes(session_key.key)
    else:
        algorithm = algorithm or AlgId.CALG_AES_128
        raw = bytes(session_key)
    if algorithm not in SESSION_KEY_SIZES:
        raise UnsupportedAlgorithm(f"{algorithm!s} is not a supported session key algorithm.")
    if len(raw) != SESSION_KEY_SIZES[algorithm]:
        raise LengthMismatch(f"{algorithm!s} needs a {SESSION_KEY_SIZES[algorithm]}-byte key, got {len(raw)} bytes.")
    if isinstance(public_key, RsaPrivateKeyFields):
        public_key = public_key.public()
    try:
        ciphertext = public_key.to_rsa().encrypt(raw)
    except ValueError as err:
        raise EncodeError(f"A {public_key.bit_length}-bit key cannot carry a {len(raw)}-byte session key.") from err
    header = BlobHeader(BlobType.SIMPLEBLOB, algorithm)
    logger.debug("Wrapped %s session key with a %d-bit key.", algorithm, public_key.bit_length)
    return SimpleBlob(header, AlgId.CALG_RSA_KEYX, ciphertext[::-1])
