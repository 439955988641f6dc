"""Parser for long-format ``ls`` output lines."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import posixpath
import re
from typing import Iterable, Optional

from podfs.models.files import FileEntry, FileKind, UnixPex

logger = logging.getLogger(__name__)

LS_RE = re.compile(
    r"^([\-ld])([\-rwxsStT]{9})\s+(\d+)\s+(.+)\s+(.+)\s+(\d+)\s+"
    r"(\w{3}\s+\d{1,2}\s+(?:\d{1,2}:\d{1,2}|\d{4}))\s+(.+)$"
)

SYMLINK_SEPARATOR = " -> "
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_KINDS = {
    "-": FileKind.FILE,
    "d": FileKind.DIRECTORY,
    "l": FileKind.SYMLINK,
}


class ListingParseError(ValueError):
    pass


def parse_ls_line(
    directory: str, line: str, log: Optional[logging.Logger] = None
) -> FileEntry:
    """Parse one ``ls -l`` line into a ``FileEntry`` located in ``directory``.

    Raises ``ListingParseError`` for lines that do not describe a regular
    file, a directory or a symlink, and for the ``.`` and ``..`` entries.
    """
    log = log or logger
    log.debug("Parsing ls line: '%s'", line)
    match = LS_RE.match(line)
    if match is None:
        raise ListingParseError(f"Not a listing line: {line!r}")
    kind_char, pex, _links, owner, group, size, modified, name_token = match.groups()
    kind = _KINDS.get(kind_char)
    if kind is None:
        raise ListingParseError(f"Unsupported file type: {kind_char!r}")
    if len(pex) < 9:
        raise ListingParseError(f"Bad permission string: {pex!r}")

    symlink = None
    if kind is FileKind.SYMLINK:
        name, symlink = split_name_and_link(name_token)
        if symlink is None:
            kind = FileKind.FILE
    else:
        name = name_token

    name = posixpath.basename(name.rstrip("/")) or name
    if name in (".", ".."):
        log.debug("File name is %s; ignoring entry", name)
        raise ListingParseError(f"Ignored entry: {name}")

    entry = FileEntry(
        path=posixpath.join(directory, name),
        kind=kind,
        mode=parse_pex(pex),
        uid=_parse_id(owner),
        gid=_parse_id(group),
        size=_parse_size(size),
        modified=parse_lstime(modified),
        symlink=symlink,
    )
    log.debug("Found entry at %s: %s", entry.path, entry)
    return entry


def parse_listing(
    directory: str, output: str, log: Optional[logging.Logger] = None
) -> list[FileEntry]:
    """Parse a whole ``ls -la`` output, skipping lines that are not entries."""
    log = log or logger
    lines = output.splitlines()
    entries = list(_parse_lines(directory, lines, log))
    log.debug("Found %d out of %d valid file entries", len(entries), len(lines))
    return entries


def _parse_lines(
    directory: str, lines: Iterable[str], log: logging.Logger
) -> Iterable[FileEntry]:
    for line in lines:
        try:
            yield parse_ls_line(directory, line, log)
        except ListingParseError as exc:
            log.debug("Skipping line: %s", exc)


def split_name_and_link(token: str) -> tuple[str, Optional[str]]:
    name, sep, target = token.partition(SYMLINK_SEPARATOR)
    if not sep:
        return name, None
    return name, target.split(SYMLINK_SEPARATOR)[0]


def parse_pex(pex: str) -> UnixPex:
    """Map a 9-char permission string to owner/group/others classes.

    Setuid, setgid and sticky markers in the execute slot count as execute.
    """

    def klass(chunk: str) -> int:
        value = 0
        for weight, char in zip((4, 2, 1), chunk):
            if char != "-":
                value += weight
        return value

    return UnixPex(user=klass(pex[0:3]), group=klass(pex[3:6]), others=klass(pex[6:9]))


def parse_lstime(token: str, now: Optional[datetime] = None) -> datetime:
    """Parse an ``ls`` timestamp; recent files omit the year."""
    text = " ".join(token.split())
    try:
        return datetime.strptime(text, "%b %d %Y").replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    year = (now or datetime.now(timezone.utc)).year
    try:
        parsed = datetime.strptime(f"{text} {year}", "%b %d %H:%M %Y")
    except ValueError:
        return EPOCH
    return parsed.replace(tzinfo=timezone.utc)


def _parse_id(token: str) -> Optional[int]:
    try:
        value = int(token)
    except ValueError:
        return None
    return value if value >= 0 else None


def _parse_size(token: str) -> int:
    try:
        return max(int(token), 0)
    except ValueError:
        return 0
