from __future__ import annotations

from typing import BinaryIO, Iterator, TextIO, Union


class InputReadError(RuntimeError):
    """Raised when the input stream fails before end-of-stream."""


def _strip_terminator(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def read_urls(stream: Union[BinaryIO, TextIO]) -> Iterator[str]:
    """
    Yield one URL per input line, terminator stripped.

    Binary streams are split on b"\\n" only and each line is decoded as
    UTF-8 on its own, so a bad line does not swallow the lines before it.
    Empty lines come through as empty strings. A failing read or decode
    raises InputReadError instead of yielding anything further.
    """
    while True:
        try:
            line = stream.readline()
        except (OSError, UnicodeDecodeError) as exc:
            raise InputReadError(str(exc)) from exc
        if not line:
            return
        if isinstance(line, bytes):
            try:
                line = line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InputReadError(str(exc)) from exc
        yield _strip_terminator(line)
