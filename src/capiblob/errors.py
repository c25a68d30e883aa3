"""Exceptions raised by the blob codec and the session key unwrapper.

All of them derive from `ValueError`, as a bad blob is a bad value. Callers that only care about "this blob is
unusable" can catch `BlobError`, callers that need to tell a wrong key from a corrupted buffer catch the leaves.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0


class BlobError(ValueError):
    """Base class for every capiblob failure."""


class DecodeError(BlobError):
    """The wire bytes do not form a valid blob."""


class InvalidMagic(DecodeError):
    """A blob type, version, algorithm id or RSA magic tag is not recognized."""


class TruncatedInput(DecodeError):
    """Fewer bytes remain than the field layout requires."""


class UnsupportedAlgorithm(DecodeError):
    """The algorithm or key length is known but not valid for this blob kind."""


class EncodeError(BlobError):
    """A structure cannot be serialized, usually because a field has the wrong length."""


class UnwrapError(BlobError):
    """A session key could not be recovered from a SIMPLEBLOB."""


class DecryptionFailed(UnwrapError):
    """The RSA primitive rejected the ciphertext."""


class PaddingInvalid(UnwrapError):
    """The decrypted block is not PKCS#1 v1.5 type 2. Usually the wrong private key."""


class LengthMismatch(UnwrapError):
    """The recovered key length does not match the declared algorithm."""
