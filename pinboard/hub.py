"""세션 관리 및 명령 라우팅."""

from __future__ import annotations

import logging
import socket
import threading
import uuid
from typing import Dict, List, Optional, Sequence

from .board import Board, BoardError
from .protocol import (
    ClearCommand,
    DisconnectCommand,
    GetCommand,
    GetPinsCommand,
    PinCommand,
    PostCommand,
    ProtocolError,
    ShakeCommand,
    UnpinCommand,
    encode_lines,
    format_error,
    format_greeting,
    format_note,
    format_ok,
    format_pin,
    parse_command,
)

LOGGER = logging.getLogger(__name__)


class Session:
    """TCP 세션 상태. 보드 데이터는 갖지 않는다."""

    def __init__(self, sid: str, sock: socket.socket, addr: tuple[str, int]):
        self.id = sid
        self.socket = sock
        self.addr = addr
        self.alive = True
        self._writer_lock = threading.Lock()

    def send(self, lines: Sequence[str]) -> None:
        if not self.alive:
            raise ConnectionError("session closed")
        data = encode_lines(lines)
        with self._writer_lock:
            try:
                self.socket.sendall(data)
            except OSError as exc:
                raise ConnectionError("send failed") from exc

    def close(self) -> None:
        if not self.alive:
            return
        self.alive = False
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        finally:
            try:
                self.socket.close()
            except OSError:
                pass


class ServerHub:
    """세션 등록과 명령 → 보드 연산 라우팅을 담당."""

    def __init__(self, board: Optional[Board] = None) -> None:
        self.board = board if board is not None else Board()
        self.sessions: Dict[str, Session] = {}
        self._sessions_lock = threading.Lock()

    # ---------- 세션 관리 ----------
    def new_session(self, sock: socket.socket, addr: tuple[str, int]) -> Session:
        sid = f"S-{uuid.uuid4().hex[:8]}"
        session = Session(sid, sock, addr)
        with self._sessions_lock:
            self.sessions[sid] = session
        LOGGER.info("session connected: %s %s", sid, addr)
        return session

    def unregister_session(self, session: Session) -> None:
        with self._sessions_lock:
            removed = self.sessions.pop(session.id, None)
        session.close()
        if removed is not None:
            LOGGER.info("session closed: %s", session.id)

    def greet(self, session: Session) -> bool:
        cfg = self.board.config
        greeting = format_greeting(
            cfg.board_width, cfg.board_height, cfg.note_width, cfg.note_height, cfg.colors
        )
        return self._safe_send(session, [greeting])

    # ---------- 라우팅 ----------
    def handle_line(self, session: Session, line: str) -> bool:
        """한 줄을 처리하고 응답을 보낸다. 세션을 계속 유지할지 반환."""
        try:
            command = parse_command(line)
        except ProtocolError as exc:
            LOGGER.debug("%s: %r -> %s", session.id, line, exc.code)
            return self.send_error(session, exc.code)
        if command is None:
            return session.alive

        LOGGER.debug("%s: %s", session.id, command)
        if isinstance(command, DisconnectCommand):
            self._safe_send(session, [format_ok("DISCONNECTING")])
            return False

        try:
            reply = self.execute(command)
        except BoardError as exc:
            LOGGER.debug("%s: rejected %s", session.id, exc.code)
            return self.send_error(session, exc.code)
        return self._safe_send(session, reply)

    def execute(self, command: object) -> List[str]:
        """명령을 보드에 적용하고 응답 줄 목록을 만든다."""
        board = self.board
        if isinstance(command, PostCommand):
            board.post(command.x, command.y, command.color, command.message)
            return [format_ok("NOTE_POSTED")]
        if isinstance(command, GetCommand):
            matches = board.query(
                color=command.color,
                contains=command.contains,
                refers_to=command.refers_to,
            )
            lines = [format_ok(str(len(matches)))]
            lines.extend(
                format_note(note.x, note.y, note.color, note.message, pinned)
                for note, pinned in matches
            )
            return lines
        if isinstance(command, GetPinsCommand):
            pins = board.pins()
            return [format_ok(str(len(pins)))] + [format_pin(pin.x, pin.y) for pin in pins]
        if isinstance(command, PinCommand):
            board.pin(command.x, command.y)
            return [format_ok("PIN_ADDED")]
        if isinstance(command, UnpinCommand):
            board.unpin(command.x, command.y)
            return [format_ok()]
        if isinstance(command, ShakeCommand):
            removed, kept = board.shake()
            LOGGER.info("board shaken: removed=%d kept=%d", removed, kept)
            return [format_ok("SHAKE_COMPLETE")]
        if isinstance(command, ClearCommand):
            board.clear()
            LOGGER.info("board cleared")
            return [format_ok("BOARD_CLEARED")]
        raise TypeError(f"unsupported command: {command!r}")

    # ---------- 헬퍼 ----------
    def _safe_send(self, session: Session, lines: Sequence[str]) -> bool:
        if not session.alive:
            return False
        try:
            session.send(lines)
        except ConnectionError:
            self.unregister_session(session)
            return False
        return True

    def send_error(self, session: Session, code: str) -> bool:
        return self._safe_send(session, [format_error(code)])

    def shutdown(self) -> None:
        with self._sessions_lock:
            sessions = list(self.sessions.values())
        for session in sessions:
            self.unregister_session(session)


__all__ = [
    "ServerHub",
    "Session",
]
