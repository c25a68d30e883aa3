# pylint: disable=missing-module-docstring,redefined-outer-name
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from cryptography.hazmat.primitives import serialization
import pytest

import capiblob
from capiblob import __main__ as cli


@pytest.fixture
def key_files(key1024, tmp_path):
    template_key, key = key1024
    pem = tmp_path / "exchange.pem"
    pem.write_bytes(template_key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8,
                                               serialization.NoEncryption()))
    blob = tmp_path / "exchange.key"
    blob.write_bytes(capiblob.encode(key))
    return pem, blob


def test_import_export(key1024, key_files, tmp_path):
    template_key, key = key1024
    pem, _ = key_files
    out = tmp_path / "imported.key"
    cli.main(["-n", "import", "--key", str(pem), "--output", str(out)])
    assert out.read_bytes() == capiblob.encode(key)
    back = tmp_path / "exported.pem"
    cli.main(["-n", "export", "--blob", str(out), "--output", str(back)])
    loaded = serialization.load_pem_private_key(back.read_bytes(), None)
    assert loaded.private_numbers() == template_key.private_numbers()


def test_import_signature_key(key_files, tmp_path):
    pem, _ = key_files
    out = tmp_path / "sign.key"
    cli.main(["-n", "import", "--key", str(pem), "--output", str(out), "--key-algorithm", "CALG_RSA_SIGN"])
    assert capiblob.decode(out.read_bytes()).header.alg_id is capiblob.AlgId.CALG_RSA_SIGN


def test_inspect(key_files, capsys):
    _, blob = key_files
    cli.main(["-n", "inspect", "--blob", str(blob)])
    out = capsys.readouterr().out
    assert "Type: PRIVATEKEYBLOB" in out
    assert "Algorithm: CALG_RSA_KEYX" in out
    assert "Bit length: 1024" in out
    assert "Public exponent: 65537" in out


def test_wrap_unwrap(key_files, tmp_path, capsys):
    pem, blob = key_files
    simple = tmp_path / "session.blob"
    session_key = "00112233445566778899aabbccddeeff"
    cli.main(["-n", "wrap", "--public_key", str(pem), "--session_key", session_key, "--output", str(simple)])
    assert capiblob.infer_kind(simple.read_bytes()) is capiblob.BlobType.SIMPLEBLOB
    cli.main(["-n", "unwrap", "--blob", str(simple), "--private_key", str(blob)])
    assert capsys.readouterr().out.strip() == session_key
    cli.main(["-n", "unwrap", "--blob", str(simple), "--private_key", str(pem)])
    assert capsys.readouterr().out.strip() == session_key


def test_blob_error_exits(tmp_path, capsys):
    garbage = tmp_path / "garbage.blob"
    garbage.write_bytes(b"\xff" * 64)
    with pytest.raises(SystemExit) as exc:
        cli.main(["-n", "inspect", "--blob", str(garbage)])
    assert exc.value.code == 1
    assert "InvalidMagic" in capsys.readouterr().err


def test_wrap_bad_hex_exits(key_files, tmp_path, capsys):
    pem, _ = key_files
    simple = tmp_path / "session.blob"
    with pytest.raises(SystemExit) as exc:
        cli.main(["-n", "wrap", "--public_key", str(pem), "--session_key", "not hex", "--output", str(simple)])
    assert exc.value.code == 1
    assert "EncodeError" in capsys.readouterr().err
    assert not simple.exists()


def test_export_simpleblob_fails(key1024, tmp_path):
    _, key = key1024
    simple = tmp_path / "session.blob"
    simple.write_bytes(capiblob.encode(capiblob.wrap(bytes(16), key)))
    with pytest.raises(SystemExit):
        cli.main(["-n", "export", "--blob", str(simple), "--output", str(tmp_path / "out.pem")])


def test_non_interactive_missing_argument():
    with pytest.raises(IOError, match="non-interactive"):
        cli.main(["-n", "inspect"])


def test_no_overwrite(key_files, capsys):
    pem, blob = key_files
    before = blob.read_bytes()
    cli.main(["-n", "import", "--key", str(pem), "--output", str(blob), "--key-algorithm", "CALG_RSA_SIGN"])
    assert "Destination file already exists!" in capsys.readouterr().out
    assert blob.read_bytes() == before


def test_interactive_prompts(mocker, key_files, capsys):
    _, blob = key_files
    mocker.patch("builtins.input", side_effect=["bogus", "inspect", str(blob)])
    cli.main([])
    out = capsys.readouterr().out
    assert "Please select an option from the list." in out
    assert "Type: PRIVATEKEYBLOB" in out
