"""Provides the RSA primitive used to wrap and unwrap session keys.

Facilitates "textbook" RSA with CRT acceleration for private keys, plus the PKCS#1 v1.5 encryption padding (block
type 2) that CryptoAPI applies to SIMPLEBLOB payloads. Everything here works on big-endian octet strings, the
byte-order quirks of the blobs are handled by the callers.

Typical usage example:

    pub = RSAPubKey(n, e)
    c = pub.encrypt(b"sixteen byte key")
    m = RSAPrivKey(n, e, d, p, q).decrypt(c)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from secrets import token_bytes

from capiblob.constants import PKCS1_MIN_PADDING
from capiblob.constants import PKCS1_OVERHEAD


class RSAKey:
    """The overall RSA key class implementation.

    Acts mostly as a template for the "core" components of a RSA Key that are strictly mandatory in both a public
    and a private key.

    Attributes:
        mod: The modulus of the keypair.
        expo: The exponent of the key, whether private or public.
        bsize: Length of the modulus in bytes.
    """

    def __init__(self, mod: int, expo: int) -> None:
        self.mod = mod
        self.expo = expo
        self.bsize = (self.mod.bit_length() + 7) // 8

    def c_rsa(self, message: int) -> int:
        """Performs core RSA operation. (Encrypt/Decrypt)

        Args:
            message: The int-marshalled message.

        Returns:
            The transformed message.

        Raises:
            ValueError: If the message is out of range for the current key.
        """
        if not 0 <= message < self.mod:
            raise ValueError("Message representative must be in range [0, mod-1]")
        return pow(message, self.expo, self.mod)


class RSAPubKey(RSAKey):
    """Public half of a key-exchange key pair.

    The init is not overwritten as a Public Key consists solely of a modulus and exponent.
    """

    def encrypt(self, message: bytes) -> bytes:
        """Encrypts the message according to RSAES-PKCS1-v1_5.

        Args:
            message: Message to be encrypted.

        Returns:
            Big-endian ciphertext of exactly `bsize` bytes.

        Raises:
            ValueError: If the message is too long for the key.
        """
        em = pad_pkcs1(message, self.bsize)
        return integer_to_bytes(self.c_rsa(bytes_to_integer(em)), self.bsize)


class RSAPrivKey(RSAKey):
    """RSA Private Key class implementation.

    Attributes:
        mod: The modulus of the keypair.
        expo: The private exponent of the key.
        pub: The public key of the key.
        p: Private Prime 1.
        q: Private Prime 2.
    """

    def __init__(self,
                 mod: int,
                 pub_exp: int,
                 priv_exp: int,
                 p: int | None = None,
                 q: int | None = None,
                 exp1: int | None = None,
                 exp2: int | None = None,
                 coeff: int | None = None) -> None:
        """Initialize the RSA Private Key.

        Args:
            mod: The modulus of the keypair.
            pub_exp: The public exponent of the key.
            priv_exp: The private exponent of the key.
            p: The private prime 1.
            q: The private prime 2.
            exp1: CRT Component dmp1.
            exp2: CRT Component dmq1.
            coeff: CRT Component iqmp.
        """
        super().__init__(mod, priv_exp)
        self.pub: RSAPubKey = RSAPubKey(mod, pub_exp)
        self.p: int | None = None
        self.q: int | None = None
        self.exp1: int | None = None
        self.exp2: int | None = None
        self.coeff: int | None = None
        if p and q:
            self.p = p
            self.q = q
            self.exp1 = exp1 if exp1 is not None else priv_exp % (p - 1)
            self.exp2 = exp2 if exp2 is not None else priv_exp % (q - 1)
            self.coeff = coeff if coeff is not None else pow(q, -1, p)

    def c_rsa(self, message: int) -> int:
        """Performs core RSA operation accelerated with CRT.

        Args:
            message: The int-marshalled ciphertext.

        Returns:
            The decrypted message representative.

        Raises:
            ValueError: If the message is out of range for the current key.
        """
        if not self.p or not self.q:
            return super().c_rsa(message)
        if not 0 <= message < self.mod:
            raise ValueError("Message representative must be in range [0, mod-1]")
        m_1 = pow(message, self.exp1, self.p)
        m_2 = pow(message, self.exp2, self.q)
        h = ((m_1 - m_2) * self.coeff) % self.p
        return m_2 + self.q * h

    def decrypt_block(self, ciphertext: bytes) -> bytearray:
        """Runs the raw RSA decryption, leaving the padding in place.

        Returned as a bytearray so the caller can zero it after use.

        Args:
            ciphertext: Big-endian ciphertext of exactly `bsize` bytes.

        Returns:
            The encoded message block.

        Raises:
            ValueError: If the ciphertext has the wrong length or is out of range, or the key is inconsistent.
        """
        if len(ciphertext) != self.bsize:
            raise ValueError("Ciphertext does not match expected length.")
        m = self.c_rsa(bytes_to_integer(ciphertext))
        if m >= self.mod:
            # CRT output is bounded by p*q, which only equals mod for a consistent key.
            raise ValueError("Decrypted representative exceeds the modulus.")
        return bytearray(integer_to_bytes(m, self.bsize))

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypts an RSAES-PKCS1-v1_5 ciphertext.

        Args:
            ciphertext: Big-endian ciphertext of exactly `bsize` bytes.

        Returns:
            The decrypted message.

        Raises:
            ValueError: On range, length or padding failures.
        """
        em = self.decrypt_block(ciphertext)
        try:
            return bytes(unpad_pkcs1(em))
        finally:
            em[:] = bytes(len(em))


def pad_pkcs1(message: bytes, size: int) -> bytes:
    """Builds the PKCS#1 v1.5 encryption block `00 02 PS 00 M`.

    Args:
        message: The payload.
        size: Length of the modulus in bytes.

    Returns:
        The encoded block of `size` bytes.

    Raises:
        ValueError: If the message leaves less than eight bytes of padding.
    """
    if len(message) > size - PKCS1_OVERHEAD:
        raise ValueError("Message too long for the current key")
    pslen = size - len(message) - 3
    ps = b""
    while len(ps) < pslen:
        ps += token_bytes(pslen - len(ps)).replace(b"\x00", b"")
    return b"\x00\x02" + ps + b"\x00" + message


def unpad_pkcs1(em: bytes | bytearray) -> bytearray:
    """Strips a PKCS#1 v1.5 encryption block.

    Args:
        em: The encoded block as produced by the raw decryption.

    Returns:
        The message carried by the block, as a bytearray the caller can zero.

    Raises:
        ValueError: If the block is not a well-formed type 2 block.
    """
    if len(em) < PKCS1_OVERHEAD or em[0] != 0x00 or em[1] != 0x02:
        raise ValueError("Decryption error.")
    sep = em.find(b"\x00", 2)
    if sep < 2 + PKCS1_MIN_PADDING:
        raise ValueError("Decryption error.")
    return bytearray(em[sep + 1:])


def bytes_to_integer(msg: bytes) -> int:
    """Converts a byte string to an integer in accordance to preset procedures.

    Args:
        msg: The bytes (AKA Octet String) to convert.

    Returns:
        The representative integer.
    """
    return int.from_bytes(msg, byteorder="big", signed=False)


def integer_to_bytes(msg: int, fixedlen: int) -> bytes:
    """Converts an integer to a string, using a fixed-length byte representation.

    Args:
        msg: The integer to unmarshal.
        fixedlen: The target length of the byte string.

    Returns:
        The representative bytes. (AKA Octet String)
    """
    return msg.to_bytes(fixedlen, byteorder="big", signed=False)
