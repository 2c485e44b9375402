"""보드 상태(노트/핀) 관리 및 배치 규칙 검증 로직.

모든 연산은 하나의 락 아래에서 검증 후 변경되므로, 거절된 명령은
보드 상태를 바꾸지 않는다.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

DEFAULT_COLORS = ("red", "blue", "green", "yellow", "white")

OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
COLOR_NOT_SUPPORTED = "COLOR_NOT_SUPPORTED"
COMPLETE_OVERLAP = "COMPLETE_OVERLAP"
PIN_ON_EDGE = "PIN_ON_EDGE"
NO_NOTE_AT_COORDINATE = "NO_NOTE_AT_COORDINATE"
PIN_NOT_FOUND = "PIN_NOT_FOUND"

Point = Tuple[int, int]


class BoardError(Exception):
    """보드 규칙 위반. code는 그대로 ERROR 응답에 실린다."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class BoardConfig:
    """보드/노트 크기와 색상 팔레트."""

    board_width: int = 150
    board_height: int = 100
    note_width: int = 15
    note_height: int = 10
    colors: Tuple[str, ...] = DEFAULT_COLORS

    def validate(self) -> None:
        if self.board_width <= 0 or self.board_height <= 0:
            raise ValueError("board dimensions must be positive")
        if self.note_width <= 0 or self.note_height <= 0:
            raise ValueError("note dimensions must be positive")
        if self.note_width > self.board_width or self.note_height > self.board_height:
            raise ValueError("note does not fit on the board")
        if not self.colors:
            raise ValueError("at least one color is required")
        for color in self.colors:
            if not color or color != color.lower() or "," in color or any(ch.isspace() for ch in color):
                raise ValueError(f"invalid color name: {color!r}")


@dataclass(frozen=True)
class Note:
    x: int
    y: int
    color: str
    message: str

    @property
    def origin(self) -> Point:
        return (self.x, self.y)


@dataclass(frozen=True)
class Pin:
    x: int
    y: int
    # 생성 시점에 덮고 있던 노트 원점들. 이후 다시 계산하지 않는다.
    members: FrozenSet[Point] = field(default_factory=frozenset)


@dataclass(eq=False)
class Board:
    """모든 세션이 공유하는 노트/핀 저장소."""

    config: BoardConfig = field(default_factory=BoardConfig)
    _notes: List[Note] = field(default_factory=list, repr=False)
    _pins: List[Pin] = field(default_factory=list, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        self.config.validate()

    # ---------- 변경 연산 ----------
    def post(self, x: int, y: int, color: str, message: str) -> Note:
        cfg = self.config
        color = color.lower()
        if color not in cfg.colors:
            raise BoardError(COLOR_NOT_SUPPORTED)
        if x < 0 or y < 0 or x + cfg.note_width > cfg.board_width or y + cfg.note_height > cfg.board_height:
            raise BoardError(OUT_OF_BOUNDS)
        note = Note(x, y, color, message)
        with self._lock:
            if any(existing.origin == note.origin for existing in self._notes):
                raise BoardError(COMPLETE_OVERLAP)
            self._notes.append(note)
        return note

    def pin(self, x: int, y: int) -> Pin:
        """(x, y)에 핀을 꽂는다. 노트 테두리에 닿으면 전체 거절."""
        with self._lock:
            if any((p.x, p.y) == (x, y) for p in self._pins):
                raise BoardError(COMPLETE_OVERLAP)
            covered = []
            on_edge = False
            for note in self._notes:
                if not self._inside(note, x, y):
                    continue
                if self._on_border(note, x, y):
                    on_edge = True
                else:
                    covered.append(note.origin)
            if on_edge:
                raise BoardError(PIN_ON_EDGE)
            if not covered:
                raise BoardError(NO_NOTE_AT_COORDINATE)
            pin = Pin(x, y, frozenset(covered))
            self._pins.append(pin)
        return pin

    def unpin(self, x: int, y: int) -> None:
        with self._lock:
            for index, pin in enumerate(self._pins):
                if (pin.x, pin.y) == (x, y):
                    del self._pins[index]
                    return
        raise BoardError(PIN_NOT_FOUND)

    def shake(self) -> Tuple[int, int]:
        """고정되지 않은 노트를 제거. (제거 수, 남은 수) 반환."""
        with self._lock:
            protected = self._protected_origins()
            kept = [note for note in self._notes if note.origin in protected]
            removed = len(self._notes) - len(kept)
            self._notes = kept
        return removed, len(kept)

    def clear(self) -> None:
        with self._lock:
            self._notes = []
            self._pins = []

    # ---------- 조회 ----------
    def query(
        self,
        *,
        color: Optional[str] = None,
        contains: Optional[Point] = None,
        refers_to: Optional[str] = None,
    ) -> List[Tuple[Note, bool]]:
        """필터(AND 결합)에 맞는 노트와 고정 여부를 삽입 순서대로 반환."""
        color_key = color.lower() if color is not None else None
        needle = refers_to.lower() if refers_to is not None else None
        with self._lock:
            protected = self._protected_origins()
            results = []
            for note in self._notes:
                if color_key is not None and note.color.lower() != color_key:
                    continue
                if contains is not None and not self._inside(note, *contains):
                    continue
                if needle is not None and needle not in note.message.lower():
                    continue
                results.append((note, note.origin in protected))
        return results

    def pins(self) -> List[Pin]:
        with self._lock:
            return list(self._pins)

    def snapshot(self) -> Tuple[Tuple[Note, ...], Tuple[Pin, ...]]:
        with self._lock:
            return tuple(self._notes), tuple(self._pins)

    # ---------- 헬퍼 (락 보유 상태에서 호출) ----------
    def _protected_origins(self) -> FrozenSet[Point]:
        origins: set[Point] = set()
        for pin in self._pins:
            origins.update(pin.members)
        return frozenset(origins)

    def _inside(self, note: Note, x: int, y: int) -> bool:
        cfg = self.config
        return note.x <= x <= note.x + cfg.note_width and note.y <= y <= note.y + cfg.note_height

    def _on_border(self, note: Note, x: int, y: int) -> bool:
        cfg = self.config
        return x in (note.x, note.x + cfg.note_width) or y in (note.y, note.y + cfg.note_height)


__all__ = [
    "Board",
    "BoardConfig",
    "BoardError",
    "DEFAULT_COLORS",
    "Note",
    "Pin",
]
