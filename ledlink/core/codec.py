"""Wire-format encoding for display commands.

Every packet starts with a one-byte opcode:

    0x00  text        len(1B) utf8(len) rgb(3B)
    0x01  brightness  level(1B, 0-100)
    0x02  power       0x01 on / 0x00 off
    0x03  clear
"""

from __future__ import annotations

import re

from ledlink.core.errors import ColorParseError, LengthExceededError
from ledlink.core.model import RGB, Clear, Command, SetBrightness, SetPower, SetText

OP_TEXT = 0x00
OP_BRIGHTNESS = 0x01
OP_POWER = 0x02
OP_CLEAR = 0x03

MAX_TEXT_BYTES = 0xFF
MIN_BRIGHTNESS = 0
MAX_BRIGHTNESS = 100

_HEX_COLOR_RE = re.compile(r"[0-9a-f]{6}")


def parse_color(value: str) -> RGB:
    normalized = value.lower().removeprefix("#")
    if not _HEX_COLOR_RE.fullmatch(normalized):
        raise ColorParseError(f"Color '{value}' must be 6 hex digits, optionally prefixed with '#'")
    raw = bytes.fromhex(normalized)
    return RGB(red=raw[0], green=raw[1], blue=raw[2])


def clamp_brightness(level: int) -> int:
    return max(MIN_BRIGHTNESS, min(MAX_BRIGHTNESS, int(level)))


def encode_text(text: str, color: RGB) -> bytes:
    text_bytes = text.encode("utf-8")
    if len(text_bytes) > MAX_TEXT_BYTES:
        raise LengthExceededError(
            f"Text encodes to {len(text_bytes)} bytes; at most {MAX_TEXT_BYTES} fit the length field"
        )
    try:
        color_bytes = bytes(color)
    except ValueError as exc:
        raise ColorParseError(f"Color components out of range: {color}") from exc
    return bytes((OP_TEXT, len(text_bytes))) + text_bytes + color_bytes


def encode_brightness(level: int) -> bytes:
    return bytes((OP_BRIGHTNESS, clamp_brightness(level)))


def encode_power(on: bool) -> bytes:
    return bytes((OP_POWER, 0x01 if on else 0x00))


def encode_clear() -> bytes:
    return bytes((OP_CLEAR,))


def encode_command(command: Command) -> bytes:
    if isinstance(command, SetText):
        return encode_text(command.text, command.color)
    if isinstance(command, SetBrightness):
        return encode_brightness(command.level)
    if isinstance(command, SetPower):
        return encode_power(command.on)
    if isinstance(command, Clear):
        return encode_clear()
    raise TypeError(f"Unsupported command type {type(command).__name__}")
