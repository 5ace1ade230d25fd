#!/usr/bin/env python3
"""
checksum — stream files or stdin through a digest and print the result.

Features
- Algorithms: adler32, crc32, crc32c, crc64, fnv32, fnv64, md5, none, sha1,
  sha256, xxh64 ("none" hashes nothing and is handy for timing raw I/O).
- Encodings: hex (default), base64, raw.
- Directories are walked recursively; anything that is not a regular file or
  a directory is skipped with a warning on stderr.
- Optional resource usage report (wall clock, user and system CPU).

Examples
  # sha256 of stdin
  echo hello | checksum -a sha256

  # crc32c of every file under a tree, base64 encoded
  checksum -a crc32c -e base64 ./data

  # Measure read throughput without hashing
  checksum -a none --stats big.iso

Exit codes
  0 success
  1 runtime error (bad algorithm/encoding, I/O failure, accounting failure)
  2 usage error
"""
from __future__ import annotations
import argparse
import base64
import os
import stat
import sys
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Iterable, Iterator, List, Optional

from digests import ChecksumError, Digest, InvalidArgument, available_algorithms, resolve_algorithm

try:
    import resource
except ImportError:  # not available on Windows
    resource = None

CHUNK_SIZE = 64 * 1024


class AccountingError(ChecksumError):
    pass


# ------- Core hashing helpers -------

ENCODINGS: Dict[str, Callable[[bytes], bytes]] = {
    "base64": base64.b64encode,
    "hex": lambda b: b.hex().encode("ascii"),
    "raw": bytes,
}


def resolve_encoding(name: str) -> Callable[[bytes], bytes]:
    try:
        return ENCODINGS[name]
    except KeyError:
        raise InvalidArgument(f'unknown checksum encoding "{name}"', name) from None


def chunk_reader(f, chunk_size: int = CHUNK_SIZE) -> Iterable[bytes]:
    while True:
        chunk = f.read(chunk_size)
        if not chunk:
            break
        yield chunk


def digest_stream(f: BinaryIO, digest: Digest, chunk_size: int = CHUNK_SIZE) -> bytes:
    for chunk in chunk_reader(f, chunk_size):
        digest.update(chunk)
    return digest.finalize()


def format_line(encoded: bytes, name: str = "") -> bytes:
    """``<digest>\\n`` for stdin, ``<digest> <name>\\n`` for named targets."""
    if name:
        return encoded + b" " + os.fsencode(name) + b"\n"
    return encoded + b"\n"


# ------- Target enumeration -------

_KINDS = (
    (stat.S_ISLNK, "symlink"),
    (stat.S_ISFIFO, "fifo"),
    (stat.S_ISSOCK, "socket"),
    (stat.S_ISCHR, "char device"),
    (stat.S_ISBLK, "block device"),
)


def file_kind(mode: int) -> str:
    for check, kind in _KINDS:
        if check(mode):
            return kind
    return "unknown"


def _warn_stderr(message: str) -> None:
    print(message, file=sys.stderr)


def iter_files(root: str, warn: Callable[[str], None] = _warn_stderr) -> Iterator[str]:
    """Yield the regular files under ``root``, in name order.

    Symlinks are never followed, the root included. Entries that are
    neither regular files nor directories are reported through ``warn``
    and skipped. OSError from lstat/scandir propagates and ends the walk.
    """
    yield from _walk(root, os.lstat(root).st_mode, warn)


def _walk(path: str, mode: int, warn: Callable[[str], None]) -> Iterator[str]:
    if stat.S_ISDIR(mode):
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            yield from _walk(entry.path, entry.stat(follow_symlinks=False).st_mode, warn)
    elif stat.S_ISREG(mode):
        yield path
    else:
        warn(f"{path}: skipping because of type {file_kind(mode)}")


# ------- Resource accounting -------

@dataclass(frozen=True)
class ResourceSnapshot:
    wall: float
    user: float
    system: float


@dataclass(frozen=True)
class ResourceUsage:
    elapsed: float
    user: float
    system: float

    @property
    def cpu_percent(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return 100 * (self.user + self.system) / self.elapsed

    def __str__(self) -> str:
        return (
            f"{format_duration(self.elapsed)} elapsed, {format_duration(self.user)} user, "
            f"{format_duration(self.system)} system, {self.cpu_percent:.2f}% CPU"
        )


def capture_resource_snapshot() -> ResourceSnapshot:
    if resource is None:
        raise AccountingError("CPU time accounting is not available on this platform")
    try:
        usage = resource.getrusage(resource.RUSAGE_SELF)
    except (OSError, ValueError) as e:
        raise AccountingError(f"getrusage failed: {e}") from e
    return ResourceSnapshot(wall=time.monotonic(), user=usage.ru_utime, system=usage.ru_stime)


def measure(start: ResourceSnapshot, end: ResourceSnapshot) -> ResourceUsage:
    return ResourceUsage(
        elapsed=end.wall - start.wall,
        user=max(end.user - start.user, 0.0),
        system=max(end.system - start.system, 0.0),
    )


def _trim(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def format_duration(seconds: float) -> str:
    # 1h2m3.5s, 1.5s, 12.345ms, 7µs, 250ns
    # The unit is picked after rounding so 0.9999996 reads 1s, not 1000ms.
    ns = round(seconds * 1e9)
    if ns <= 0:
        return "0s"
    if ns < 1000:
        return f"{ns}ns"
    for unit, scale in (("µs", 1e3), ("ms", 1e6)):
        value = round(ns / scale, 3)
        if value < 1000:
            return f"{_trim(value)}{unit}"
    ms = round(ns / 1e6)
    if ms < 60_000:
        return f"{_trim(ms / 1000)}s"
    minutes, ms = divmod(ms, 60_000)
    hours, minutes = divmod(minutes, 60)
    head = f"{hours}h{minutes}m" if hours else f"{minutes}m"
    return f"{head}{_trim(ms / 1000)}s"


# ------- Actions -------

def action_sum(
    paths: List[str],
    algo: str,
    encoding: str,
    stats: bool = False,
    stdin: Optional[BinaryIO] = None,
    out: Optional[BinaryIO] = None,
    warn: Callable[[str], None] = _warn_stderr,
) -> None:
    """Hash every target and write one line per target to ``out``.

    Both names are checked before any target is opened, so a bad name never
    produces partial output. The first OSError aborts the run; lines already
    written stay written.
    """
    new_digest = resolve_algorithm(algo)
    encode = resolve_encoding(encoding)
    stdin = stdin if stdin is not None else sys.stdin.buffer
    out = out if out is not None else sys.stdout.buffer

    start = capture_resource_snapshot() if stats else None

    def emit(f: BinaryIO, name: str) -> None:
        out.write(format_line(encode(digest_stream(f, new_digest())), name))

    try:
        if paths:
            for root in paths:
                for path in iter_files(root, warn):
                    with open(path, "rb") as f:
                        emit(f, path)
        else:
            emit(stdin, "")
    finally:
        out.flush()

    if start is not None:
        usage = measure(start, capture_resource_snapshot())
        print(usage, file=sys.stderr)


def action_list() -> int:
    for a in available_algorithms():
        print(a)
    return 0


# ------- CLI parsing -------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="checksum",
        description="Compute checksums of files, directories or stdin.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument(
        "-a",
        dest="algo",
        metavar="ALGO",
        default="",
        help=f"Checksum algorithm ({', '.join(available_algorithms())})",
    )
    p.add_argument(
        "-e",
        dest="encoding",
        metavar="ENCODING",
        default="hex",
        help=f"Checksum encoding ({', '.join(sorted(ENCODINGS))})",
    )
    p.add_argument("--stats", action="store_true", help="Print resource usage to stderr")
    p.add_argument("--list-algorithms", action="store_true", help="List supported algorithms and exit")
    p.add_argument("paths", nargs="*", help="Files/dirs to hash; stdin when none are given")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.list_algorithms:
        return action_list()

    try:
        action_sum(args.paths, algo=args.algo, encoding=args.encoding, stats=args.stats)
    except (ChecksumError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
