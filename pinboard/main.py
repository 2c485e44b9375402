"""Pinboard TCP 진입점."""

from __future__ import annotations

import argparse
import logging
import socket
import threading
from typing import List, Optional

from .board import DEFAULT_COLORS, Board, BoardConfig
from .hub import ServerHub, Session
from .protocol import BAD_SYNTAX, SERVER_ERROR, LineFramer

LOGGER = logging.getLogger(__name__)

ACCEPT_POLL_SECONDS = 0.5


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Shared Pinboard - Server")
    parser.add_argument("--host", default="0.0.0.0", help="서버 바인드 호스트 (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=4554, help="서버 포트 (default: 4554)")
    parser.add_argument("--backlog", type=int, default=128, help="listen backlog 크기")
    parser.add_argument("--board-width", type=int, default=150, help="보드 너비 (default: 150)")
    parser.add_argument("--board-height", type=int, default=100, help="보드 높이 (default: 100)")
    parser.add_argument("--note-width", type=int, default=15, help="노트 너비 (default: 15)")
    parser.add_argument("--note-height", type=int, default=10, help="노트 높이 (default: 10)")
    parser.add_argument(
        "--colors",
        default=",".join(DEFAULT_COLORS),
        help="쉼표로 구분한 색상 팔레트 (default: %(default)s)",
    )
    parser.add_argument("--log-level", default="INFO", help="로그 레벨 (DEBUG/INFO/...)")
    args = parser.parse_args(argv)
    try:
        args.board_config = build_board_config(args)
    except ValueError as exc:
        parser.error(str(exc))
    return args


def build_board_config(args: argparse.Namespace) -> BoardConfig:
    colors = tuple(c.strip().lower() for c in args.colors.split(",") if c.strip())
    config = BoardConfig(
        board_width=args.board_width,
        board_height=args.board_height,
        note_width=args.note_width,
        note_height=args.note_height,
        colors=colors,
    )
    config.validate()
    return config


def client_worker(hub: ServerHub, session: Session) -> None:
    """세션 하나의 명령을 순서대로 처리."""
    framer = LineFramer()
    sock = session.socket
    try:
        if not hub.greet(session):
            return
        while session.alive:
            chunk = sock.recv(4096)
            if not chunk:
                break
            for line in framer.feed(chunk):
                if line is None:
                    # 최대 크기를 넘어 버려진 줄
                    keep = hub.send_error(session, BAD_SYNTAX)
                    if not keep:
                        return
                    continue
                try:
                    keep = hub.handle_line(session, line)
                except Exception:
                    LOGGER.exception("handle_line failed: session=%s", session.id)
                    hub.send_error(session, SERVER_ERROR)
                    keep = False
                if not keep:
                    return
    except (ConnectionError, OSError):
        pass
    finally:
        hub.unregister_session(session)


def open_listener(host: str, port: int, backlog: int = 128) -> socket.socket:
    server_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server_sock.bind((host, port))
        server_sock.listen(backlog)
    except OSError:
        server_sock.close()
        raise
    return server_sock


def accept_loop(hub: ServerHub, server_sock: socket.socket, stop_event: threading.Event) -> None:
    """연결마다 독립 스레드를 띄운다. stop_event 또는 소켓 종료 시 반환."""
    server_sock.settimeout(ACCEPT_POLL_SECONDS)
    while not stop_event.is_set():
        try:
            conn, addr = server_sock.accept()
        except socket.timeout:
            continue
        except OSError as exc:
            if stop_event.is_set() or server_sock.fileno() == -1:
                break
            # EMFILE 등 일시적 실패. 잠시 쉬고 계속 받는다.
            LOGGER.warning("accept failed: %s", exc)
            stop_event.wait(ACCEPT_POLL_SECONDS)
            continue
        conn.settimeout(None)
        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        session = hub.new_session(conn, addr)
        threading.Thread(target=client_worker, args=(hub, session), daemon=True).start()


def run_server(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    hub = ServerHub(Board(args.board_config))
    stop_event = threading.Event()

    with open_listener(args.host, args.port, args.backlog) as server_sock:
        LOGGER.info("Pinboard listening on %s:%s", args.host, args.port)
        try:
            accept_loop(hub, server_sock, stop_event)
        except KeyboardInterrupt:
            LOGGER.info("KeyboardInterrupt → shutting down")
        finally:
            stop_event.set()
            hub.shutdown()


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    run_server(args)


if __name__ == "__main__":
    main()
