"""Bidirectional codec for CryptoAPI PUBLICKEYBLOB, PRIVATEKEYBLOB and SIMPLEBLOB structures.

CryptoAPI stores every numeric field little-endian, at a length derived from the bit length of the key rather than
from any length prefix. Decoding lifts each field into a big-endian octet string of that fixed length, encoding does
the reverse. The field lengths are computed in exactly one place, `field_layout`.

The SIMPLEBLOB payload is not a structured field but an RSA ciphertext stored byte-reversed as a whole. The codec
keeps it verbatim; reversing it is the job of `capiblob.unwrap`.

Typical usage example:

    key = decode(wire)
    assert encode(key) == wire
    pub = key.public()
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import math
import struct
from typing import NamedTuple

from capiblob.constants import AlgId
from capiblob.constants import BlobType
from capiblob.constants import CUR_BLOB_VERSION
from capiblob.constants import HEADER_SIZE
from capiblob.constants import RSA_ALGORITHMS
from capiblob.constants import RSA_MAGIC
from capiblob.constants import SESSION_KEY_SIZES
from capiblob.constants import SIMPLEBLOB_PREFIX_SIZE
from capiblob.constants import WRAPPING_ALGORITHMS
from capiblob.errors import EncodeError
from capiblob.errors import InvalidMagic
from capiblob.errors import TruncatedInput
from capiblob.errors import UnsupportedAlgorithm
from capiblob.rsa import bytes_to_integer
from capiblob.rsa import integer_to_bytes
from capiblob.rsa import RSAPrivKey
from capiblob.rsa import RSAPubKey

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<BBHI")
_RSAPUBKEY = struct.Struct("<II")
_ALG_ID = struct.Struct("<I")

PRIVATE_FIELDS = ("prime1", "prime2", "exponent1", "exponent2", "coefficient", "private_exponent")


class Field(NamedTuple):
    """Position of one field inside an RSA blob, offsets counted from the start of the blob."""
    name: str
    offset: int
    length: int


class BlobHeader(NamedTuple):
    """The 8-byte BLOBHEADER shared by all blob kinds."""
    blob_type: BlobType
    alg_id: AlgId
    version: int = CUR_BLOB_VERSION
    reserved: int = 0

    def pack(self) -> bytes:
        return _HEADER.pack(self.blob_type, self.version, self.reserved, self.alg_id)


class RsaPublicKeyFields(NamedTuple):
    """A decoded PUBLICKEYBLOB, with the modulus in big-endian order."""
    header: BlobHeader
    bit_length: int
    public_exponent: int
    modulus: bytes

    @property
    def n(self) -> int:
        return bytes_to_integer(self.modulus)

    @property
    def e(self) -> int:
        return self.public_exponent

    def to_rsa(self) -> RSAPubKey:
        return RSAPubKey(self.n, self.e)

    @classmethod
    def from_numbers(cls,
                     n: int,
                     e: int,
                     bit_length: int | None = None,
                     alg_id: AlgId = AlgId.CALG_RSA_KEYX) -> "RsaPublicKeyFields":
        """Builds the fields from the public numbers of a key.

        Args:
            n: The modulus.
            e: The public exponent.
            bit_length: Declared key size, defaults to the size of the modulus rounded up to 16 bits.
            alg_id: CALG_RSA_KEYX for key-exchange keys, CALG_RSA_SIGN for signature keys.

        Returns:
            The public key fields, ready for `encode`.
        """
        bit_length = bit_length or _round_bits(n)
        header = BlobHeader(BlobType.PUBLICKEYBLOB, alg_id)
        return cls(header, bit_length, e, _fixed(n, bit_length // 8, "modulus"))


class RsaPrivateKeyFields(NamedTuple):
    """A decoded PRIVATEKEYBLOB.

    The CRT fields are half the modulus length, the private exponent is the full modulus length. All big-endian.
    """
    header: BlobHeader
    bit_length: int
    public_exponent: int
    modulus: bytes
    prime1: bytes
    prime2: bytes
    exponent1: bytes
    exponent2: bytes
    coefficient: bytes
    private_exponent: bytes

    @property
    def n(self) -> int:
        return bytes_to_integer(self.modulus)

    @property
    def e(self) -> int:
        return self.public_exponent

    @property
    def d(self) -> int:
        return bytes_to_integer(self.private_exponent)

    @property
    def p(self) -> int:
        return bytes_to_integer(self.prime1)

    @property
    def q(self) -> int:
        return bytes_to_integer(self.prime2)

    @property
    def dmp1(self) -> int:
        return bytes_to_integer(self.exponent1)

    @property
    def dmq1(self) -> int:
        return bytes_to_integer(self.exponent2)

    @property
    def iqmp(self) -> int:
        return bytes_to_integer(self.coefficient)

    def public(self) -> RsaPublicKeyFields:
        """Returns the matching public key, as it would be exported in a PUBLICKEYBLOB."""
        header = self.header._replace(blob_type=BlobType.PUBLICKEYBLOB)
        return RsaPublicKeyFields(header, self.bit_length, self.public_exponent, self.modulus)

    def to_rsa(self) -> RSAPrivKey:
        return RSAPrivKey(self.n, self.e, self.d, self.p, self.q, self.dmp1, self.dmq1, self.iqmp)

    def check(self) -> bool:
        """Conformance check of the key components.

        A blob can be perfectly well-formed and still carry an inconsistent key, this tells the two apart.

        Returns:
            True if modulus, primes, exponents and coefficient belong to one RSA key.
        """
        n, e, d, p, q = self.n, self.e, self.d, self.p, self.q
        if p < 2 or q < 2 or p * q != n:
            return False
        lam = (p - 1) * (q - 1) // math.gcd(p - 1, q - 1)
        if e * d % lam != 1:
            return False
        return self.dmp1 == d % (p - 1) and self.dmq1 == d % (q - 1) and self.iqmp * q % p == 1

    @classmethod
    def from_numbers(cls,
                     n: int,
                     e: int,
                     d: int,
                     p: int,
                     q: int,
                     dmp1: int | None = None,
                     dmq1: int | None = None,
                     iqmp: int | None = None,
                     bit_length: int | None = None,
                     alg_id: AlgId = AlgId.CALG_RSA_KEYX) -> "RsaPrivateKeyFields":
        """Builds the fields from the private numbers of a key.

        Missing CRT components are derived from `d`, `p` and `q`.

        Args:
            n: The modulus.
            e: The public exponent.
            d: The private exponent.
            p: The first prime.
            q: The second prime.
            dmp1: d mod (p - 1).
            dmq1: d mod (q - 1).
            iqmp: q^-1 mod p.
            bit_length: Declared key size, defaults to the size of the modulus rounded up to 16 bits.
            alg_id: CALG_RSA_KEYX for key-exchange keys, CALG_RSA_SIGN for signature keys.

        Returns:
            The private key fields, ready for `encode`.

        Raises:
            EncodeError: If a component does not fit its field.
        """
        bit_length = bit_length or _round_bits(n)
        full, half = bit_length // 8, bit_length // 16
        dmp1 = dmp1 if dmp1 is not None else d % (p - 1)
        dmq1 = dmq1 if dmq1 is not None else d % (q - 1)
        iqmp = iqmp if iqmp is not None else pow(q, -1, p)
        header = BlobHeader(BlobType.PRIVATEKEYBLOB, alg_id)
        return cls(header, bit_length, e, _fixed(n, full, "modulus"), _fixed(p, half, "prime1"),
                   _fixed(q, half, "prime2"), _fixed(dmp1, half, "exponent1"), _fixed(dmq1, half, "exponent2"),
                   _fixed(iqmp, half, "coefficient"), _fixed(d, full, "private_exponent"))


class SimpleBlob(NamedTuple):
    """A decoded SIMPLEBLOB.

    `encrypted_key` is kept exactly as stored on the wire, i.e. the RSA ciphertext in reversed byte order.
    """
    header: BlobHeader
    wrapping_alg_id: AlgId
    encrypted_key: bytes

    @property
    def key_size(self) -> int:
        """Length in bytes of the session key the header declares."""
        return SESSION_KEY_SIZES[self.header.alg_id]


ParsedKey = RsaPublicKeyFields | RsaPrivateKeyFields | SimpleBlob


def field_layout(blob_type: BlobType, bit_length: int) -> list[Field]:
    """Computes the position of every field of an RSA key blob.

    Args:
        blob_type: PUBLICKEYBLOB or PRIVATEKEYBLOB.
        bit_length: The key size declared by the blob.

    Returns:
        The fields in wire order, from the RSA magic to the last key component.

    Raises:
        UnsupportedAlgorithm: If the bit length is zero or not a multiple of 16.
        ValueError: If the blob type has no fixed layout.
    """
    if blob_type not in RSA_MAGIC:
        raise ValueError(f"No fixed field layout for {blob_type!r}")
    if bit_length <= 0 or bit_length % 16:
        raise UnsupportedAlgorithm(f"Bit length {bit_length} is not a positive multiple of 16.")
    full, half = bit_length // 8, bit_length // 16
    sizes = [("magic", 4), ("bit_length", 4), ("public_exponent", 4), ("modulus", full)]
    if blob_type == BlobType.PRIVATEKEYBLOB:
        sizes += [(name, half) for name in PRIVATE_FIELDS[:-1]]
        sizes.append((PRIVATE_FIELDS[-1], full))
    layout = []
    offset = HEADER_SIZE
    for name, length in sizes:
        layout.append(Field(name, offset, length))
        offset += length
    return layout


def read_header(wire: bytes) -> BlobHeader:
    """Reads and validates the BLOBHEADER.

    Args:
        wire: The raw blob.

    Returns:
        The parsed header.

    Raises:
        TruncatedInput: If fewer than 8 bytes are given.
        InvalidMagic: If the type, version or algorithm id is not recognized.
    """
    if len(wire) < HEADER_SIZE:
        raise TruncatedInput(f"Blob header needs {HEADER_SIZE} bytes, got {len(wire)}.")
    btype, version, reserved, alg = _HEADER.unpack_from(wire)
    try:
        blob_type = BlobType(btype)
    except ValueError:
        raise InvalidMagic(f"Unknown blob type 0x{btype:02X}.") from None
    if version != CUR_BLOB_VERSION:
        raise InvalidMagic(f"Unknown blob version 0x{version:02X}.")
    return BlobHeader(blob_type, _alg_id(alg), version, reserved)


def infer_kind(wire: bytes) -> BlobType:
    """Tells which kind of blob the buffer holds, from its header alone."""
    return read_header(wire).blob_type


def decode(wire: bytes, kind: BlobType | None = None) -> ParsedKey:
    """Decodes a CryptoAPI blob.

    Args:
        wire: The raw blob. Any bytes-like object, the result does not reference it.
        kind: The expected blob kind. Inferred from the header if omitted.

    Returns:
        RsaPublicKeyFields, RsaPrivateKeyFields or SimpleBlob.

    Raises:
        InvalidMagic: Unrecognized type, version, algorithm or RSA magic, or a kind other than requested.
        TruncatedInput: The buffer ends before the computed field layout does.
        UnsupportedAlgorithm: The algorithm is known but not valid for the blob kind.
    """
    data = bytes(wire)
    header = read_header(data)
    if kind is not None and header.blob_type != kind:
        raise InvalidMagic(f"Expected {BlobType(kind).name}, found {header.blob_type.name}.")
    if header.blob_type == BlobType.SIMPLEBLOB:
        parsed = _decode_simple(header, data)
    else:
        parsed = _decode_rsa(header, data)
    logger.debug("Decoded %s with %s.", header.blob_type.name, header.alg_id)
    return parsed


def encode(parsed: ParsedKey) -> bytes:
    """Serializes a parsed blob back into its wire layout.

    Args:
        parsed: RsaPublicKeyFields, RsaPrivateKeyFields or SimpleBlob.

    Returns:
        The raw blob.

    Raises:
        EncodeError: If the structure cannot be represented, e.g. a field of the wrong length.
    """
    match parsed:
        case SimpleBlob():
            wire = _encode_simple(parsed)
        case RsaPublicKeyFields() | RsaPrivateKeyFields():
            wire = _encode_rsa(parsed)
        case _:
            raise EncodeError(f"Cannot encode {type(parsed).__name__}.")
    logger.debug("Encoded %s, %d bytes.", parsed.header.blob_type.name, len(wire))
    return wire


def _decode_rsa(header: BlobHeader, data: bytes) -> RsaPublicKeyFields | RsaPrivateKeyFields:
    if header.alg_id not in RSA_ALGORITHMS:
        raise UnsupportedAlgorithm(f"{header.alg_id!s} is not an RSA algorithm.")
    _require(data, HEADER_SIZE + 4 + _RSAPUBKEY.size, "RSAPUBKEY")
    magic = data[HEADER_SIZE:HEADER_SIZE + 4]
    if magic != RSA_MAGIC[header.blob_type]:
        raise InvalidMagic(f"Invalid RSA magic {magic.hex(':').upper()} for {header.blob_type.name}.")
    bit_length, public_exponent = _RSAPUBKEY.unpack_from(data, HEADER_SIZE + 4)
    layout = field_layout(header.blob_type, bit_length)
    end = layout[-1].offset + layout[-1].length
    _require(data, end, f"{bit_length}-bit {header.blob_type.name}")
    if len(data) > end:
        logger.warning("Ignoring %d trailing bytes after %s.", len(data) - end, header.blob_type.name)
    fields = {f.name: data[f.offset:f.offset + f.length][::-1] for f in layout[3:]}
    logger.debug("Read %d fields of a %d-bit key.", len(fields), bit_length)
    if header.blob_type == BlobType.PRIVATEKEYBLOB:
        return RsaPrivateKeyFields(header, bit_length, public_exponent, **fields)
    return RsaPublicKeyFields(header, bit_length, public_exponent, **fields)


def _decode_simple(header: BlobHeader, data: bytes) -> SimpleBlob:
    if header.alg_id not in SESSION_KEY_SIZES:
        raise UnsupportedAlgorithm(f"{header.alg_id!s} is not a supported session key algorithm.")
    _require(data, SIMPLEBLOB_PREFIX_SIZE, "SIMPLEBLOB")
    wrapping = _alg_id(_ALG_ID.unpack_from(data, HEADER_SIZE)[0])
    if wrapping not in WRAPPING_ALGORITHMS:
        raise UnsupportedAlgorithm(f"{wrapping!s} cannot wrap a session key.")
    payload = data[SIMPLEBLOB_PREFIX_SIZE:]
    if not payload:
        raise TruncatedInput("SIMPLEBLOB carries no encrypted key.")
    return SimpleBlob(header, wrapping, payload)


def _encode_rsa(parsed: RsaPublicKeyFields | RsaPrivateKeyFields) -> bytes:
    header = parsed.header
    expected = BlobType.PRIVATEKEYBLOB if isinstance(parsed, RsaPrivateKeyFields) else BlobType.PUBLICKEYBLOB
    if header.blob_type != expected:
        raise EncodeError(f"{type(parsed).__name__} cannot be stored as {header.blob_type.name}.")
    try:
        layout = field_layout(expected, parsed.bit_length)
    except UnsupportedAlgorithm as err:
        raise EncodeError(str(err)) from err
    out = bytearray(layout[-1].offset + layout[-1].length)
    out[:HEADER_SIZE] = header.pack()
    out[HEADER_SIZE:HEADER_SIZE + 4] = RSA_MAGIC[expected]
    try:
        _RSAPUBKEY.pack_into(out, HEADER_SIZE + 4, parsed.bit_length, parsed.public_exponent)
    except struct.error as err:
        raise EncodeError("Public exponent does not fit in 32 bits.") from err
    for f in layout[3:]:
        value = getattr(parsed, f.name)
        if len(value) != f.length:
            raise EncodeError(f"Field {f.name} must be {f.length} bytes, got {len(value)}.")
        out[f.offset:f.offset + f.length] = value[::-1]
    return bytes(out)


def _encode_simple(parsed: SimpleBlob) -> bytes:
    if parsed.header.blob_type != BlobType.SIMPLEBLOB:
        raise EncodeError(f"SimpleBlob cannot be stored as {parsed.header.blob_type.name}.")
    if not parsed.encrypted_key:
        raise EncodeError("SIMPLEBLOB carries no encrypted key.")
    return parsed.header.pack() + _ALG_ID.pack(parsed.wrapping_alg_id) + bytes(parsed.encrypted_key)


def _alg_id(value: int) -> AlgId:
    try:
        return AlgId(value)
    except ValueError:
        raise InvalidMagic(f"Unknown algorithm id 0x{value:08X}.") from None


def _require(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise TruncatedInput(f"{what} needs {size} bytes, got {len(data)}.")


def _round_bits(n: int) -> int:
    return (n.bit_length() + 15) // 16 * 16


def _fixed(value: int, length: int, name: str) -> bytes:
    try:
        return integer_to_bytes(value, length)
    except OverflowError as err:
        raise EncodeError(f"Field {name} does not fit in {length} bytes.") from err
