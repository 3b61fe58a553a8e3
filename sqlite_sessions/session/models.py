from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass, field


@dataclass(slots=True, eq=False)
class ConnectionHandle:
    key: str
    path: str
    connection: sqlite3.Connection
    checkpoint_pending: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
