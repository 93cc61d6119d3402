"""Little-endian reader for instruction and event payloads."""

import struct

import base58

from dexparser.exceptions import DecodeError

# Anchor emits self-CPI events as: EVENT_IX_TAG (8 bytes) + event discriminator (8 bytes) + body
ANCHOR_EVENT_PREFIX = bytes([228, 69, 165, 46, 81, 203, 154, 29])


class BinaryReader:
    """Sequential reader over a bytes payload. Raises DecodeError on truncation."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = data
        self._offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _take(self, size: int) -> bytes:
        if self._offset + size > len(self._data):
            raise DecodeError(
                f"Payload truncated: need {size} bytes at offset {self._offset}, have {self.remaining}"
            )
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def skip(self, size: int) -> None:
        self._take(size)

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_bool(self) -> bool:
        return self.read_u8() != 0

    def read_u16(self) -> int:
        return struct.unpack("<H", self._take(2))[0]

    def read_u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def read_u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def read_i64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def read_u128(self) -> int:
        return int.from_bytes(self._take(16), "little")

    def read_pubkey(self) -> str:
        return base58.b58encode(self._take(32)).decode()

    def read_string(self) -> str:
        """Borsh string: u32 length prefix, then UTF-8 bytes."""
        raw = self._take(self.read_u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 string at offset {self._offset - len(raw)}: {e}") from e


def has_prefix(data: bytes, prefix: bytes) -> bool:
    return len(data) >= len(prefix) and data[:len(prefix)] == prefix
