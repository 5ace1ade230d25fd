"""
Streaming digests for the checksum CLI.

Every algorithm is exposed through the same small interface:

  update(data)   feed more bytes
  finalize()     return the checksum as bytes
  reset()        start over with an empty state

Cryptographic hashes come from hashlib, XXH64 from the xxhash package,
adler32 and crc32 from zlib, CRC-32C and CRC-64/ISO from crcmod. FNV-1 is
computed in Python.
"""
from __future__ import annotations
import hashlib
import zlib
from typing import Callable, Dict, List

import crcmod
import crcmod.predefined
import xxhash


class ChecksumError(Exception):
    pass


class InvalidArgument(ChecksumError, ValueError):
    """An algorithm or encoding name that the tool does not know."""

    def __init__(self, message: str, value: str):
        super().__init__(message)
        self.value = value


# ------- Digest variants -------

class Digest:
    digest_size = 0

    def update(self, data: bytes) -> None:
        raise NotImplementedError

    def finalize(self) -> bytes:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError


class NullDigest(Digest):
    """Swallows input; used to time raw I/O without hashing cost."""

    def update(self, data: bytes) -> None:
        pass

    def finalize(self) -> bytes:
        return b""

    def reset(self) -> None:
        pass


class LibraryDigest(Digest):
    """Wraps a hashlib-style object (hashlib, xxhash, crcmod)."""

    def __init__(self, factory: Callable):
        self._factory = factory
        self._h = factory()
        self.digest_size = self._h.digest_size

    def update(self, data: bytes) -> None:
        self._h.update(data)

    def finalize(self) -> bytes:
        return self._h.digest()

    def reset(self) -> None:
        # hashlib objects have no reset()
        self._h = self._factory()


class ZlibDigest(Digest):
    digest_size = 4

    def __init__(self, fn: Callable[[bytes, int], int], initial: int):
        self._fn = fn
        self._initial = initial
        self._value = initial

    def update(self, data: bytes) -> None:
        self._value = self._fn(data, self._value)

    def finalize(self) -> bytes:
        return (self._value & 0xFFFFFFFF).to_bytes(4, "big")

    def reset(self) -> None:
        self._value = self._initial


class FNV1(Digest):
    """FNV-1: multiply by the prime, then xor the byte."""

    def __init__(self, offset: int, prime: int, width: int):
        self._offset = offset
        self._prime = prime
        self._mask = (1 << width) - 1
        self.digest_size = width // 8
        self._h = offset

    def update(self, data: bytes) -> None:
        h = self._h
        prime, mask = self._prime, self._mask
        for b in data:
            h = ((h * prime) & mask) ^ b
        self._h = h

    def finalize(self) -> bytes:
        return self._h.to_bytes(self.digest_size, "big")

    def reset(self) -> None:
        self._h = self._offset


# ------- Resolver -------

# crcmod takes initCrc as the register start value xor xorOut, so 0 here
# means an all-ones register.
CRC32C = crcmod.predefined.Crc("crc-32c")
CRC64_ISO = crcmod.Crc(0x1000000000000001B, initCrc=0, rev=True, xorOut=0xFFFFFFFFFFFFFFFF)

ALGORITHMS: Dict[str, Callable[[], Digest]] = {
    "adler32": lambda: ZlibDigest(zlib.adler32, 1),
    "crc32": lambda: ZlibDigest(zlib.crc32, 0),
    "crc32c": lambda: LibraryDigest(CRC32C.new),
    "crc64": lambda: LibraryDigest(CRC64_ISO.new),
    "fnv32": lambda: FNV1(0x811C9DC5, 0x01000193, 32),
    "fnv64": lambda: FNV1(0xCBF29CE484222325, 0x100000001B3, 64),
    "md5": lambda: LibraryDigest(hashlib.md5),
    "none": NullDigest,
    "sha1": lambda: LibraryDigest(hashlib.sha1),
    "sha256": lambda: LibraryDigest(hashlib.sha256),
    "xxh64": lambda: LibraryDigest(xxhash.xxh64),
}


def available_algorithms() -> List[str]:
    return sorted(ALGORITHMS)


def resolve_algorithm(name: str) -> Callable[[], Digest]:
    """Return a factory producing fresh digest sessions for ``name``.

    Names are case-sensitive. Raises InvalidArgument for anything else,
    including the empty string.
    """
    try:
        return ALGORITHMS[name]
    except KeyError:
        raise InvalidArgument(f'unknown checksum algorithm "{name}"', name) from None


def new_digest(name: str) -> Digest:
    return resolve_algorithm(name)()
