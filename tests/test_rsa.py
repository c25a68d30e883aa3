# pylint: disable=missing-module-docstring,redefined-outer-name
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

import capiblob.rsa as rsau

standard_payload = b"The quick brown fox jumps over the lazy dog1234567890!@#$%^&*()-_=+[{}];:\\|<>,./?~`'\""


@pytest.fixture(scope="module", params=[True, False])
def crt(request) -> bool:
    return request.param


def localize_keys(pk: rsa.RSAPrivateKey, crt: bool = True) -> tuple[rsau.RSAPubKey, rsau.RSAPrivKey]:
    privs = pk.private_numbers()
    pubs = pk.public_key().public_numbers()
    if crt:
        pkey = rsau.RSAPrivKey(pubs.n, pubs.e, privs.d, privs.p, privs.q, privs.dmp1, privs.dmq1, privs.iqmp)
    else:
        pkey = rsau.RSAPrivKey(pubs.n, pubs.e, privs.d)
    pubk = rsau.RSAPubKey(pubs.n, pubs.e)
    return pubk, pkey


def capload(keysz: int) -> bytes:
    """Returns a payload capped to what PKCS#1 v1.5 fits in the key."""
    return standard_payload[:keysz - 11]


def test_fields_to_rsa(keyset):
    template_key, key = keyset
    privs = template_key.private_numbers()
    priv = key.to_rsa()
    assert (priv.mod, priv.expo, priv.pub.expo) == (privs.public_numbers.n, privs.d, privs.public_numbers.e)
    assert (priv.p, priv.q, priv.exp1, priv.exp2, priv.coeff) == (privs.p, privs.q, privs.dmp1, privs.dmq1,
                                                                 privs.iqmp)
    assert priv.bsize == key.bit_length // 8


def test_derived_crt_components(keyset):
    template_key = keyset[0]
    privs = template_key.private_numbers()
    priv = rsau.RSAPrivKey(privs.public_numbers.n, privs.public_numbers.e, privs.d, privs.p, privs.q)
    assert (priv.exp1, priv.exp2, priv.coeff) == (privs.dmp1, privs.dmq1, privs.iqmp)


def test_encrypt_pkcs1(keyset):
    template_key = keyset[0]
    pubkey = localize_keys(template_key)[0]
    payload = capload(pubkey.bsize)
    ciphtext = pubkey.encrypt(payload)
    assert len(ciphtext) == pubkey.bsize
    assert template_key.decrypt(ciphtext, padding.PKCS1v15()) == payload


def test_decrypt_pkcs1(keyset, crt):
    template_key = keyset[0]
    priv = localize_keys(template_key, crt=crt)[1]
    payload = capload(priv.bsize)
    ciphtext = template_key.public_key().encrypt(payload, padding.PKCS1v15())
    assert priv.decrypt(ciphtext) == payload


def test_encrypt_decrypt(keyset, crt):
    pubkey, priv = localize_keys(keyset[0], crt)
    for payload in (b"", b"\x00" * 16, capload(pubkey.bsize)):
        assert priv.decrypt(pubkey.encrypt(payload)) == payload


def test_encrypt_validates(key1024):
    pubkey = localize_keys(key1024[0])[0]
    with pytest.raises(ValueError, match="Message too long"):
        pubkey.encrypt(b"A" * (pubkey.bsize - 10))


def test_decrypt_block_validates(key1024):
    priv = localize_keys(key1024[0])[1]
    with pytest.raises(ValueError, match="Ciphertext does not match expected length."):
        priv.decrypt_block(b"\x01" * (priv.bsize - 1))
    with pytest.raises(ValueError, match="range"):
        priv.decrypt_block(b"\xff" * priv.bsize)


def test_decrypt_block_inconsistent_key():
    # 5 * 7 != 10, so the CRT result can land above the modulus.
    priv = rsau.RSAPrivKey(10, 3, 3, 5, 7)
    with pytest.raises(ValueError, match="exceeds the modulus"):
        priv.decrypt_block(b"\x09")


def test_decrypt_wipes_block(mocker, key1024):
    pubkey, priv = localize_keys(key1024[0])
    block = bytearray()
    real = rsau.RSAPrivKey.decrypt_block

    def keep(self, ciphertext):
        block.extend(real(self, ciphertext))
        return block

    mocker.patch("capiblob.rsa.RSAPrivKey.decrypt_block", keep)
    assert priv.decrypt(pubkey.encrypt(b"secret")) == b"secret"
    assert block == bytearray(priv.bsize)


def test_pad_pkcs1_layout():
    em = rsau.pad_pkcs1(b"\xAB" * 16, 128)
    assert len(em) == 128
    assert em[:2] == b"\x00\x02"
    assert b"\x00" not in em[2:111]
    assert em[111:112] == b"\x00"
    assert em[112:] == b"\xAB" * 16


@pytest.mark.parametrize("em", [
    b"",
    b"\x00\x02" + b"\x01" * 8,
    b"\x00\x01" + b"\x01" * 8 + b"\x00",
    b"\x02\x00" + b"\x01" * 8 + b"\x00",
    b"\x00\x02" + b"\x01" * 7 + b"\x00\x01",
    b"\x00\x02" + b"\x01" * 20,
])
def test_unpad_pkcs1_fails(em):
    with pytest.raises(ValueError, match="Decryption error."):
        rsau.unpad_pkcs1(em)


def test_unpad_pkcs1_empty_message():
    assert rsau.unpad_pkcs1(b"\x00\x02" + b"\x01" * 8 + b"\x00") == b""
    assert rsau.unpad_pkcs1(bytearray(b"\x00\x02" + b"\x01" * 8 + b"\x00\x00\x07")) == b"\x00\x07"


@pytest.mark.parametrize("flow", [-1, 1])
def test_overflow_underflow_c_rsa(keyset, flow):
    pubkey, priv = localize_keys(keyset[0])
    with pytest.raises(ValueError):
        priv.c_rsa(priv.mod * flow)
    with pytest.raises(ValueError):
        pubkey.c_rsa(pubkey.mod * flow)


@pytest.mark.parametrize("value,size", [(0, 1), (1, 4), (0x0102, 2), (2**1024 - 1, 128)])
def test_integer_bytes(value, size):
    encoded = rsau.integer_to_bytes(value, size)
    assert len(encoded) == size
    assert rsau.bytes_to_integer(encoded) == value
    assert encoded == value.to_bytes(size, "big")


def test_unpad_pkcs1_returns_wipeable():
    message = rsau.unpad_pkcs1(b"\x00\x02" + b"\x01" * 8 + b"\x00" + b"\x42" * 16)
    assert isinstance(message, bytearray)
    message[:] = bytes(16)
    assert message == bytearray(16)
