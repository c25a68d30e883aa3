"""The Command Line Interface for the utility, including Interactive elements.

A hybrid CLI/ICLI (Command Line Interface/Interactive Command Line Interface) that prompts for whatever the command
line left out, unless non-interactive mode is requested.

Typical usage example:

    capiblob inspect --blob exchange.key
    OR
    python -m capiblob -n unwrap --blob session.blob --private_key exchange.key
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import argparse
import logging
import pathlib
import sys
import typing

import capiblob
from capiblob import der


class HelpData(typing.NamedTuple):
    description: str
    format: typing.Type = str
    choices: list[str] | None = None
    default: typing.Any = None
    advanced: bool = False


help_dict: dict[str, HelpData] = {
    "subcommand":
        HelpData(
            description="The available subcommands in capiblob.",
            choices=["inspect", "export", "import", "unwrap", "wrap"],
        ),
    "inspect":
        HelpData("Show the structure of a blob."),
    "export":
        HelpData("Convert an RSA key blob to PEM."),
    "import":
        HelpData("Convert a PEM RSA key to a key blob."),
    "unwrap":
        HelpData("Recover the session key of a SIMPLEBLOB."),
    "wrap":
        HelpData("Wrap a session key into a SIMPLEBLOB."),
    "blob":
        HelpData(
            description="Location of the blob file.",
            format=pathlib.Path,
        ),
    "key":
        HelpData(
            description="Location of the PEM key file.",
            format=pathlib.Path,
        ),
    "output":
        HelpData(
            description="Location of the file to write.",
            format=pathlib.Path,
        ),
    "private_key":
        HelpData(
            description="Location of the private key, as PRIVATEKEYBLOB or PEM.",
            format=pathlib.Path,
        ),
    "public_key":
        HelpData(
            description="Location of the public key, as PUBLICKEYBLOB or PEM.",
            format=pathlib.Path,
        ),
    "session_key":
        HelpData(
            description="The session key, hex encoded.",
            format=str,
        ),
    "key_algorithm":
        HelpData(
            description="Algorithm id of the imported RSA key.",
            choices=["CALG_RSA_KEYX", "CALG_RSA_SIGN"],
            advanced=True,
            default="CALG_RSA_KEYX",
        ),
    "session_algorithm":
        HelpData(
            description="Algorithm of the session key.",
            choices=["CALG_AES_128", "CALG_AES_192", "CALG_AES_256"],
            default="CALG_AES_128",
        ),
    "overwrite":
        HelpData(
            description="Overwrite specified destination files if they exist?",
            choices=["Y", "N"],
            default="N",
        )
}

needs = {
    "inspect": ("blob",),
    "export": ("blob", "output"),
    "import": ("key", "output", "key_algorithm"),
    "unwrap": ("blob", "private_key"),
    "wrap": ("public_key", "session_key", "session_algorithm", "output"),
}

blobp = argparse.ArgumentParser(add_help=False)
blobp.add_argument("--blob", "-b", type=help_dict["blob"].format, help=help_dict["blob"].description)
outp = argparse.ArgumentParser(add_help=False)
outp.add_argument("--output", "-O", type=help_dict["output"].format, help=help_dict["output"].description)
outp.add_argument("--overwrite", "-o", action="store_const", const="Y", help=help_dict["overwrite"].description)
corep = argparse.ArgumentParser(prog="capiblob")
corep.add_argument("--version", "-v", action="version", version=f"%(prog)s {capiblob.__version__}")
corep.add_argument("--non-interactive", "-n", action="store_true", help="Enable non-interactive mode")
corep.add_argument("--advanced", "-a", action="store_true", help="Enable advanced mode, for interactive mode")
corep.add_argument("--verbose", "-V", action="store_true", help="Log what the codec is doing")
commands = corep.add_subparsers(dest="subcommand", title="Subcommands")

inspect = commands.add_parser("inspect", parents=[blobp], help=help_dict["inspect"].description)
export = commands.add_parser("export", parents=[blobp, outp], help=help_dict["export"].description)
importp = commands.add_parser("import", parents=[outp], help=help_dict["import"].description)
importp.add_argument("--key", "-k", type=help_dict["key"].format, help=help_dict["key"].description)
importp.add_argument("--key-algorithm",
                     choices=help_dict["key_algorithm"].choices,
                     help=help_dict["key_algorithm"].description)
unwrapp = commands.add_parser("unwrap", parents=[blobp], help=help_dict["unwrap"].description)
unwrapp.add_argument("--private_key",
                     "-P",
                     type=help_dict["private_key"].format,
                     help=help_dict["private_key"].description)
wrapp = commands.add_parser("wrap", parents=[outp], help=help_dict["wrap"].description)
wrapp.add_argument("--public_key", "-p", type=help_dict["public_key"].format, help=help_dict["public_key"].description)
wrapp.add_argument("--session_key", "-s", type=help_dict["session_key"].format,
                   help=help_dict["session_key"].description)
wrapp.add_argument("--session-algorithm",
                   choices=help_dict["session_algorithm"].choices,
                   help=help_dict["session_algorithm"].description)


def checkmodes(arg: str, mode: tuple[bool, bool]):
    helper_data = help_dict[arg]
    if (mode[0] or (helper_data.advanced and not mode[1])) and helper_data.default:
        return helper_data.default
    if mode[0]:
        raise IOError(f"Argument {arg} is missing and non-interactive mode is active.")
    return helper_data


def choice_handler(arg: str, mode: tuple[bool, bool], prntr: typing.Callable = print):
    helper_data = checkmodes(arg, mode)
    if not isinstance(helper_data, HelpData):
        return helper_data
    prntr(f"Please specify the {arg}!")
    prntr("Description: " + helper_data.description)
    choices = helper_data.choices
    vald = set(choices)
    for choice in choices:
        defstring = " (Default)" if choice == helper_data.default else ""
        if help_dict.get(choice, None):
            prntr(f"{choice} - {help_dict[choice].description}" + defstring)
        else:
            prntr(f"{choice}" + defstring)
    if helper_data.default is not None:
        prntr("To accept default just click enter. Otherwise specify value.")
    while True:
        ch = input(f"{arg}: ")
        if ch in vald:
            return ch
        if not ch and helper_data.default is not None:
            return helper_data.default
        prntr("Please select an option from the list.")


def input_handler(arg: str, mode: tuple[bool, bool], prntr: typing.Callable = print):
    helper_data = checkmodes(arg, mode)
    if not isinstance(helper_data, HelpData):
        return helper_data
    prntr(f"Please specify the {arg}!")
    prntr("Description: " + helper_data.description)
    if helper_data.default is not None:
        prntr(f"Default value: {helper_data.default}")
        prntr("To accept default just click enter. Otherwise specify value.")
    cls = helper_data.format
    while True:
        ch = input(f"{arg}: ")
        if not ch and helper_data.default is not None:
            return helper_data.default
        if ch == "":
            prntr("Please provide a value.")
            continue
        try:
            return cls(ch)
        except ValueError:
            prntr(f"We could not convert your value to {cls.__name__}.")


def load_private(file: pathlib.Path) -> capiblob.RsaPrivateKeyFields:
    """Read a private key from a PRIVATEKEYBLOB or PEM file."""
    if der.sniff_pem(file):
        return der.import_private(file)
    with open(file, "rb") as f:
        return capiblob.decode(f.read(), capiblob.BlobType.PRIVATEKEYBLOB)


def load_public(file: pathlib.Path) -> capiblob.RsaPublicKeyFields:
    """Read a public key from a key blob or PEM file, reducing private keys to their public half."""
    subtype = der.sniff_pem(file)
    if subtype == "PKCS1_PUB":
        return der.import_public(file)
    if subtype:
        return der.import_private(file).public()
    with open(file, "rb") as f:
        key = capiblob.decode(f.read())
    if isinstance(key, capiblob.RsaPrivateKeyFields):
        return key.public()
    if not isinstance(key, capiblob.RsaPublicKeyFields):
        raise capiblob.InvalidMagic(f"{file} does not hold an RSA key blob.")
    return key


def describe(key) -> list[str]:
    """Summarize a decoded blob without revealing secret material."""
    lines = [f"Type: {key.header.blob_type.name}", f"Algorithm: {key.header.alg_id!s}"]
    if isinstance(key, capiblob.SimpleBlob):
        lines.append(f"Wrapped with: {key.wrapping_alg_id!s}")
        lines.append(f"Encrypted key: {len(key.encrypted_key)} bytes")
    else:
        lines.append(f"Bit length: {key.bit_length}")
        lines.append(f"Public exponent: {key.public_exponent}")
        lines.append(f"Modulus: {key.modulus.hex()}")
    return lines


def main(argv: list[str] | None = None):
    """Core Hybrid CLI/ICLI (Command Line Interface/Interactive Command Line Interface)"""
    args = corep.parse_args(argv)
    pstatus = (args.non_interactive, args.advanced)
    if args.verbose:
        capiblob.setup_logging(logging.DEBUG)

    def pspr(text: str):
        """Print only if not in non-interactive mode."""
        if not pstatus[0]:
            print(text)

    pspr("Welcome to capiblob!\n")
    if not args.subcommand:
        args.subcommand = choice_handler("subcommand", pstatus)
    for reqs in needs[args.subcommand]:
        if getattr(args, reqs, None) is None:
            if help_dict[reqs].choices is not None:
                res = choice_handler(reqs, pstatus)
            else:
                res = input_handler(reqs, pstatus)
            setattr(args, reqs, res)
        else:
            pspr(f"{reqs}: {getattr(args, reqs)}")
    output = getattr(args, "output", None)
    if output is not None and output.exists():
        rs = getattr(args, "overwrite", None)
        if rs is None:
            rs = choice_handler("overwrite", pstatus, pspr)
        if rs == "N":
            print("Destination file already exists!")
            return
    pspr("\nInput Complete! Executing...")
    try:
        run(args, pspr)
    except capiblob.BlobError as err:
        print(f"{type(err).__name__}: {err}", file=sys.stderr)
        sys.exit(1)
    pspr("Goodbye!")


def run(args: argparse.Namespace, pspr: typing.Callable = print):
    """Execute the selected subcommand once all arguments are known."""
    match args.subcommand:
        case "inspect":
            with open(args.blob, "rb") as f:
                key = capiblob.decode(f.read())
            for line in describe(key):
                print(line)
        case "export":
            with open(args.blob, "rb") as f:
                key = capiblob.decode(f.read())
            if isinstance(key, capiblob.SimpleBlob):
                raise capiblob.UnsupportedAlgorithm("A SIMPLEBLOB has no PEM representation.")
            der.export_key(key, args.output)
            pspr(f"\n{key.header.blob_type.name} exported!")
        case "import":
            alg_id = capiblob.AlgId[args.key_algorithm]
            if der.sniff_pem(args.key) == "PKCS1_PUB":
                key = der.import_public(args.key, alg_id)
            else:
                key = der.import_private(args.key, alg_id)
            with open(args.output, "wb") as f:
                f.write(capiblob.encode(key))
            pspr(f"\n{key.header.blob_type.name} written!")
        case "unwrap":
            with open(args.blob, "rb") as f:
                simple = capiblob.decode(f.read(), capiblob.BlobType.SIMPLEBLOB)
            with capiblob.unwrap(simple, load_private(args.private_key)) as session:
                pspr("Session key:")
                print(session.key.hex())
                pspr(f"Mode: {session.mode}, IV: {session.iv.hex()}")
        case "wrap":
            try:
                raw = bytearray.fromhex(args.session_key)
            except ValueError as err:
                raise capiblob.EncodeError("The session key must be hex encoded.") from err
            with capiblob.SessionKey(capiblob.AlgId[args.session_algorithm], raw) as session:
                raw[:] = bytes(len(raw))
                simple = capiblob.wrap(session, load_public(args.public_key))
            with open(args.output, "wb") as f:
                f.write(capiblob.encode(simple))
            pspr("\nSIMPLEBLOB written!")


if __name__ == "__main__":
    main()
