"""Wire-format constants of the Microsoft CryptoAPI key blobs.

Every fixed tag the codec and the unwrapper rely on lives here: blob types, `CALG_*` algorithm identifiers, the RSA
key magics, and the conventions CryptoAPI applies to imported session keys (CBC mode with an all-zero IV).
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum


class BlobType(enum.IntEnum):
    """The `bType` byte of a BLOBHEADER."""
    SIMPLEBLOB = 0x01
    PUBLICKEYBLOB = 0x06
    PRIVATEKEYBLOB = 0x07


class AlgId(enum.IntEnum):
    """Recognized `ALG_ID` values.

    Only a handful are supported by the codec, the rest are listed so a known-but-unsupported identifier can be told
    apart from garbage.
    """
    CALG_DES = 0x6601
    CALG_RC2 = 0x6602
    CALG_3DES = 0x6603
    CALG_3DES_112 = 0x6609
    CALG_AES_128 = 0x660E
    CALG_AES_192 = 0x660F
    CALG_AES_256 = 0x6610
    CALG_AES = 0x6611
    CALG_RC4 = 0x6801
    CALG_RSA_SIGN = 0x2400
    CALG_RSA_KEYX = 0xA400

    def __str__(self) -> str:
        return self.name


CUR_BLOB_VERSION = 0x02

HEADER_SIZE = 8
SIMPLEBLOB_PREFIX_SIZE = HEADER_SIZE + 4

RSA_MAGIC = {
    BlobType.PUBLICKEYBLOB: b"RSA1",
    BlobType.PRIVATEKEYBLOB: b"RSA2",
}

RSA_ALGORITHMS = frozenset({AlgId.CALG_RSA_KEYX, AlgId.CALG_RSA_SIGN})

# Session key length in bytes per SIMPLEBLOB algorithm.
SESSION_KEY_SIZES = {
    AlgId.CALG_AES_128: 16,
    AlgId.CALG_AES_192: 24,
    AlgId.CALG_AES_256: 32,
}

# SIMPLEBLOBs may only be wrapped with a key-exchange key.
WRAPPING_ALGORITHMS = frozenset({AlgId.CALG_RSA_KEYX})

CIPHER_MODE = "CBC"
ZERO_IV = bytes(16)

# PKCS#1 v1.5 encryption block (type 2): 00 02 PS 00 M, with at least 8 bytes of non-zero PS.
PKCS1_MIN_PADDING = 8
PKCS1_OVERHEAD = PKCS1_MIN_PADDING + 3
