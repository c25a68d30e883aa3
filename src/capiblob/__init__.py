"""Microsoft CryptoAPI key blobs, for the rest of the world.

Decodes and encodes PUBLICKEYBLOB, PRIVATEKEYBLOB and SIMPLEBLOB structures, converts RSA key blobs to and from
PKCS#1 / PKCS#8, and unwraps (or wraps) the RSA-encrypted session key of a SIMPLEBLOB.

Typical usage example:

    priv = decode(open("exchange.key", "rb").read())
    with unwrap(decode(open("session.blob", "rb").read()), priv) as session:
        clear = session.decrypt(payload)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging

from capiblob.codec import BlobHeader
from capiblob.codec import decode
from capiblob.codec import encode
from capiblob.codec import field_layout
from capiblob.codec import infer_kind
from capiblob.codec import RsaPrivateKeyFields
from capiblob.codec import RsaPublicKeyFields
from capiblob.codec import SimpleBlob
from capiblob.constants import AlgId
from capiblob.constants import BlobType
from capiblob.errors import BlobError
from capiblob.errors import DecodeError
from capiblob.errors import DecryptionFailed
from capiblob.errors import EncodeError
from capiblob.errors import InvalidMagic
from capiblob.errors import LengthMismatch
from capiblob.errors import PaddingInvalid
from capiblob.errors import TruncatedInput
from capiblob.errors import UnsupportedAlgorithm
from capiblob.errors import UnwrapError
from capiblob.unwrap import SessionKey
from capiblob.unwrap import unwrap
from capiblob.unwrap import wrap

__version__ = "0.1.0"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the capiblob modules.

    Args:
        level: Logging level (default: logging.INFO)
    """
    logger = logging.getLogger("capiblob")
    logger.setLevel(level)
    logger.propagate = True
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")


__all__ = [
    "AlgId",
    "BlobType",
    "BlobHeader",
    "RsaPublicKeyFields",
    "RsaPrivateKeyFields",
    "SimpleBlob",
    "SessionKey",
    "decode",
    "encode",
    "field_layout",
    "infer_kind",
    "unwrap",
    "wrap",
    "BlobError",
    "DecodeError",
    "InvalidMagic",
    "TruncatedInput",
    "UnsupportedAlgorithm",
    "EncodeError",
    "UnwrapError",
    "DecryptionFailed",
    "PaddingInvalid",
    "LengthMismatch",
    "setup_logging",
]
