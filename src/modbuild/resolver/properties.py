"""Reader for ``.properties`` key/value files.

Supports the subset of the format used by module index files: ``#`` and
``!`` comments, ``=``/``:``/whitespace separators, backslash line
continuations and the common escapes (including ``\\uXXXX``).
"""

from pathlib import Path

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _logical_lines(text: str) -> list[str]:
    lines: list[str] = []
    pending = ""
    for raw in text.splitlines():
        line = raw.lstrip() if pending else raw.strip()
        if not pending and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        lines.append(pending + line)
        pending = ""
    if pending:
        lines.append(pending)
    return lines


def _unescape(value: str) -> str:
    out = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch != "\\" or i + 1 >= len(value):
            out.append(ch)
            i += 1
            continue
        nxt = value[i + 1]
        if nxt == "u" and i + 6 <= len(value):
            out.append(chr(int(value[i + 2 : i + 6], 16)))
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _split(line: str) -> tuple[str, str]:
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=:" or ch.isspace():
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip()
    # At most one separator character follows the key, surrounded by blanks
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip()
    return _unescape(key), _unescape(rest)


def parse_properties(text: str) -> dict[str, str]:
    """Parse properties text into a dict; later keys override earlier ones."""
    properties: dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split(line)
        if key:
            properties[key] = value
    return properties


def read_properties(path: Path) -> dict[str, str]:
    """Read a properties file, returning an empty dict if it does not exist.

    Raises:
        OSError: If the file exists but cannot be read
    """
    if not path.is_file():
        return {}
    return parse_properties(path.read_text(encoding="utf-8", errors="replace"))
