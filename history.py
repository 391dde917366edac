# history.py
from __future__ import annotations
from collections import deque
from typing import Deque, Iterator, List, Optional

from models import SensorReading

HISTORY_LIMIT = 10


class HistoryBuffer:
    """
    Ventana deslizante en memoria con las últimas lecturas.

    El índice 0 es siempre la lectura más reciente. Al superar el límite
    se descarta la más antigua (no se persiste en ningún sitio).
    """

    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        self.limit = limit
        self._items: Deque[SensorReading] = deque(maxlen=limit)

    def push(self, reading: SensorReading) -> None:
        # appendleft con maxlen expulsa el último elemento (el más antiguo)
        self._items.appendleft(reading)

    def get(self, index: int) -> SensorReading:
        if index < 0 or index >= len(self._items):
            raise IndexError(f"history index out of range: {index}")
        return self._items[index]

    def latest(self) -> Optional[SensorReading]:
        return self._items[0] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def to_list(self) -> List[SensorReading]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[SensorReading]:
        return iter(self._items)
