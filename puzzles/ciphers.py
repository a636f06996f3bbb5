"""
Encodages utilisés par les énigmes : hexadécimal, base64, binaire.
Fonctions pures ; les décodeurs ne lèvent jamais d'exception et renvoient
un marqueur « Invalid ... » sur une entrée illisible.
"""
import base64
import binascii
import re

_WS = re.compile(r"\s+")


def hex_encode(text: str) -> str:
    return " ".join(f"{ord(c):02X}" for c in text)


def hex_decode(hex_str: str) -> str:
    clean = _WS.sub("", hex_str or "")
    if not clean:
        return "Invalid Hex"
    out = []
    for i in range(0, len(clean), 2):
        pair = clean[i:i + 2]
        try:
            out.append(chr(int(pair, 16)))
        except ValueError:
            out.append("?")
    return "".join(out)


def is_valid_hex(s: str) -> bool:
    clean = _WS.sub("", s or "")
    return bool(re.fullmatch(r"[0-9A-Fa-f]+", clean)) and len(clean) % 2 == 0


def base64_encode(text: str) -> str:
    try:
        return base64.b64encode(text.encode("latin-1")).decode("ascii")
    except UnicodeEncodeError:
        return ""


def base64_decode(encoded: str) -> str:
    try:
        return base64.b64decode(encoded, validate=True).decode("latin-1")
    except (binascii.Error, ValueError):
        return "Invalid Base64"


def is_valid_base64(s: str) -> bool:
    return base64_decode(s) != "Invalid Base64"


def binary_encode(text: str) -> str:
    return " ".join(f"{ord(c):08b}" for c in text)


def binary_decode(binary: str) -> str:
    binary = (binary or "").strip()
    if not binary:
        return "Invalid Binary"
    if " " in binary:
        groups = binary.split()
    else:
        groups = [binary[i:i + 8] for i in range(0, len(binary), 8)]
    out = []
    for g in groups:
        try:
            code = int(g, 2)
        except ValueError:
            out.append("?")
            continue
        out.append(chr(code) if code <= 255 else "?")
    return "".join(out)


def is_valid_binary(s: str) -> bool:
    return bool(re.fullmatch(r"[01]+", _WS.sub("", s or "")))


_DECODERS = {
    "hex": (is_valid_hex, hex_decode),
    "base64": (is_valid_base64, base64_decode),
    "binary": (is_valid_binary, binary_decode),
}


def decode(cipher: str, text: str) -> str:
    """Outil du décodeur : KeyError si le chiffrement est inconnu."""
    is_valid, decoder = _DECODERS[cipher]
    if not is_valid(text):
        return f"Not valid {cipher}"
    return decoder(text)
