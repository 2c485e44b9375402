import socket
import threading

import pytest

from pinboard.board import Board
from pinboard.hub import ServerHub, Session
from pinboard.main import accept_loop, open_listener


class FakeSocket:
    """sendall 내용을 모아두는 소켓 대역."""

    def __init__(self, fail_send=False):
        self.sent = bytearray()
        self.closed = False
        self.fail_send = fail_send

    def sendall(self, data):
        if self.fail_send:
            raise BrokenPipeError("peer gone")
        self.sent.extend(data)

    def shutdown(self, how):
        pass

    def close(self):
        self.closed = True

    def lines(self):
        return self.sent.decode("utf-8").splitlines()


class LineClient:
    def __init__(self, port):
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=5)
        self.reader = self.sock.makefile("rb")
        self.greeting = self.readline()

    def readline(self):
        return self.reader.readline().decode("utf-8").rstrip("\r\n")

    def send(self, line):
        self.sock.sendall((line + "\n").encode("utf-8"))

    def request(self, line):
        self.send(line)
        return self.readline()

    def query(self, line):
        self.send(line)
        head = self.readline()
        assert head.startswith("OK "), head
        return [self.readline() for _ in range(int(head.split()[1]))]

    def close(self):
        self.reader.close()
        self.sock.close()


@pytest.fixture
def board():
    return Board()


@pytest.fixture
def hub(board):
    return ServerHub(board)


@pytest.fixture
def fake_session(hub):
    return hub.new_session(FakeSocket(), ("127.0.0.1", 50000))


@pytest.fixture
def server():
    hub = ServerHub()
    listener = open_listener("127.0.0.1", 0)
    port = listener.getsockname()[1]
    stop_event = threading.Event()
    thread = threading.Thread(target=accept_loop, args=(hub, listener, stop_event), daemon=True)
    thread.start()
    clients = []

    def connect():
        client = LineClient(port)
        clients.append(client)
        return client

    yield hub, connect
    for client in clients:
        client.close()
    stop_event.set()
    thread.join(timeout=2)
    listener.close()
    hub.shutdown()
