"""텍스트 라인 기반 프로토콜: 프레이밍, 명령 파싱, 응답 포맷."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

MAX_LINE_BYTES = 64 * 1024  # 한 줄 최대 크기

BAD_SYNTAX = "BAD_SYNTAX"
UNKNOWN_COMMAND = "UNKNOWN_COMMAND"
SERVER_ERROR = "SERVER_ERROR"

FILTER_PREFIXES = ("color=", "contains=", "refersTo=")

MAX_NUMBER_DIGITS = 18

_INT_RE = re.compile(r"[+-]?[0-9]{1,%d}" % MAX_NUMBER_DIGITS)


class ProtocolError(Exception):
    """프레이밍/파싱 실패. code는 그대로 ERROR 응답에 실린다."""

    def __init__(self, code: str, detail: str = "") -> None:
        super().__init__(detail or code)
        self.code = code


class LineFramer:
    """TCP 스트림을 줄 단위로 분리하는 헬퍼.

    최대 크기를 넘는 줄은 다음 개행까지 버리고 그 자리에 None을 돌려준다.
    """

    def __init__(self, *, max_line_bytes: int = MAX_LINE_BYTES) -> None:
        self._buffer = bytearray()
        self._max_line_bytes = max_line_bytes
        self._discarding = False

    def feed(self, chunk: bytes) -> List[Optional[str]]:
        """새로운 바이트 청크를 넣고 완성된 줄들을 반환 (CR 제거)."""
        if not chunk:
            return []
        self._buffer.extend(chunk)

        lines: List[Optional[str]] = []
        while True:
            newline_index = self._buffer.find(b"\n")
            if newline_index == -1:
                break
            raw = bytes(self._buffer[:newline_index])
            del self._buffer[: newline_index + 1]
            if self._discarding or len(raw) > self._max_line_bytes:
                self._discarding = False
                lines.append(None)
                continue
            lines.append(raw.decode("utf-8", errors="replace").rstrip("\r"))
        if len(self._buffer) > self._max_line_bytes:
            self._discarding = True
            self.flush()
        return lines

    def flush(self) -> None:
        """버퍼 초기화."""
        self._buffer.clear()


# ---------- 명령 ----------
@dataclass(frozen=True)
class PostCommand:
    x: int
    y: int
    color: str
    message: str


@dataclass(frozen=True)
class GetCommand:
    color: Optional[str] = None
    contains: Optional[tuple[int, int]] = None
    refers_to: Optional[str] = None


@dataclass(frozen=True)
class GetPinsCommand:
    pass


@dataclass(frozen=True)
class PinCommand:
    x: int
    y: int


@dataclass(frozen=True)
class UnpinCommand:
    x: int
    y: int


@dataclass(frozen=True)
class ShakeCommand:
    pass


@dataclass(frozen=True)
class ClearCommand:
    pass


@dataclass(frozen=True)
class DisconnectCommand:
    pass


def parse_command(line: str) -> Optional[object]:
    """한 줄을 명령 객체로 변환. 빈 줄이면 None.

    실패 시 ProtocolError(BAD_SYNTAX | UNKNOWN_COMMAND).
    """
    stripped = line.strip()
    if not stripped:
        return None
    verb = stripped.split(None, 1)[0].upper()

    if verb == "POST":
        return _parse_post(stripped)

    tokens = stripped.split()
    args = tokens[1:]
    if verb == "GET":
        return _parse_get(args)
    if verb == "PIN":
        x, y = _parse_point(args)
        return PinCommand(x, y)
    if verb == "UNPIN":
        x, y = _parse_point(args)
        return UnpinCommand(x, y)
    if verb in _NO_ARG_COMMANDS:
        if args:
            raise ProtocolError(BAD_SYNTAX, f"{verb} takes no arguments")
        return _NO_ARG_COMMANDS[verb]
    raise ProtocolError(UNKNOWN_COMMAND, verb)


_NO_ARG_COMMANDS = {
    "SHAKE": ShakeCommand(),
    "CLEAR": ClearCommand(),
    "DISCONNECT": DisconnectCommand(),
}


def _parse_post(line: str) -> PostCommand:
    # 메시지는 네 번째 토큰 이후의 나머지 전체 (내부 공백 유지)
    parts = line.split(None, 4)
    if len(parts) < 4:
        raise ProtocolError(BAD_SYNTAX, "POST requires x y color")
    x = _parse_int(parts[1])
    y = _parse_int(parts[2])
    message = parts[4] if len(parts) == 5 else ""
    return PostCommand(x, y, parts[3].lower(), message)


def _parse_get(args: Sequence[str]) -> object:
    if args and args[0].upper() == "PINS":
        if len(args) > 1:
            raise ProtocolError(BAD_SYNTAX, "GET PINS takes no filters")
        return GetPinsCommand()

    color: Optional[str] = None
    contains: Optional[tuple[int, int]] = None
    refers_to: Optional[str] = None

    i = 0
    while i < len(args):
        token = args[i]
        if token.startswith("color="):
            color = token[len("color="):]
        elif token.startswith("contains="):
            if i + 1 >= len(args):
                raise ProtocolError(BAD_SYNTAX, "contains= requires x y")
            contains = (_parse_int(token[len("contains="):]), _parse_int(args[i + 1]))
            i += 1
        elif token.startswith("refersTo="):
            words = [token[len("refersTo="):]]
            while i + 1 < len(args) and not args[i + 1].startswith(FILTER_PREFIXES):
                words.append(args[i + 1])
                i += 1
            refers_to = " ".join(words).strip()
        else:
            raise ProtocolError(BAD_SYNTAX, f"unknown filter: {token}")
        i += 1
    return GetCommand(color=color, contains=contains, refers_to=refers_to)


def _parse_point(args: Sequence[str]) -> tuple[int, int]:
    if len(args) != 2:
        raise ProtocolError(BAD_SYNTAX, "expected x y")
    return _parse_int(args[0]), _parse_int(args[1])


def _parse_int(token: str) -> int:
    if not _INT_RE.fullmatch(token):
        raise ProtocolError(BAD_SYNTAX, f"not a number: {token!r}")
    return int(token)


# ---------- 응답 포맷 ----------
def format_greeting(board_width: int, board_height: int, note_width: int, note_height: int,
                    colors: Iterable[str]) -> str:
    return f"BOARD {board_width} {board_height} NOTES {note_width} {note_height} COLORS {','.join(colors)}"


def format_ok(status: str = "") -> str:
    return f"OK {status}" if status else "OK"


def format_error(code: str) -> str:
    return f"ERROR {code}"


def format_note(x: int, y: int, color: str, message: str, pinned: bool) -> str:
    return f"NOTE {x} {y} {color} {message} PINNED={'true' if pinned else 'false'}"


def format_pin(x: int, y: int) -> str:
    return f"PIN {x} {y}"


def encode_lines(lines: Sequence[str]) -> bytes:
    """여러 응답 줄을 한 번에 직렬화."""
    return "".join(line + "\n" for line in lines).encode("utf-8")


__all__ = [
    "BAD_SYNTAX",
    "ClearCommand",
    "DisconnectCommand",
    "GetCommand",
    "GetPinsCommand",
    "LineFramer",
    "PinCommand",
    "PostCommand",
    "ProtocolError",
    "SERVER_ERROR",
    "ShakeCommand",
    "UNKNOWN_COMMAND",
    "UnpinCommand",
    "encode_lines",
    "format_error",
    "format_greeting",
    "format_note",
    "format_ok",
    "format_pin",
    "parse_command",
]
