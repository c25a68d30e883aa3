"""Configures pytest further, and provides the RSA keys the tests share."""
from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

from capiblob import RsaPrivateKeyFields

TARGET_SIZES = [1024, 2048, pytest.param(4096, marks=pytest.mark.slow)]
e = 65537
_generated: dict[tuple[int, int], rsa.RSAPrivateKey] = {}


def pytest_addoption(parser):
    parser.addoption("--skip-slow", action="store_true", default=False, help="skip slower tests")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--skip-slow"):
        return
    skip = pytest.mark.skip(reason="Slow test: needs no --skip-slow option")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip)


def reference_key(size: int, slot: int = 0) -> rsa.RSAPrivateKey:
    """Generates (once per session) a reference key of the given size."""
    if (size, slot) not in _generated:
        _generated[size, slot] = rsa.generate_private_key(public_exponent=e, key_size=size)
    return _generated[size, slot]


def localize_key(pk: rsa.RSAPrivateKey) -> RsaPrivateKeyFields:
    privs = pk.private_numbers()
    pubs = privs.public_numbers
    return RsaPrivateKeyFields.from_numbers(pubs.n, pubs.e, privs.d, privs.p, privs.q, privs.dmp1, privs.dmq1,
                                            privs.iqmp)


@pytest.fixture(scope="module", params=TARGET_SIZES)
def keyset(request) -> tuple[rsa.RSAPrivateKey, RsaPrivateKeyFields]:
    pk = reference_key(request.param)
    return pk, localize_key(pk)


@pytest.fixture(scope="module")
def key1024() -> tuple[rsa.RSAPrivateKey, RsaPrivateKeyFields]:
    pk = reference_key(1024)
    return pk, localize_key(pk)


@pytest.fixture(scope="module")
def other1024() -> tuple[rsa.RSAPrivateKey, RsaPrivateKeyFields]:
    pk = reference_key(1024, slot=1)
    return pk, localize_key(pk)
