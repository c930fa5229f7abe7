"""ワイヤーヘッダーのキャッシュ"""

from __future__ import annotations

import threading


class HeaderCache:
    """(スキーマ ID, メッセージ完全名) ごとに生成済みヘッダーを保持する。

    エントリは削除しない。件数はシリアライズしたスキーマと型の組み合わせ数で
    上限が決まる。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._headers: dict[tuple[int, str], bytes] | None = None

    def get(self, schema_id: int, message_name: str) -> bytes | None:
        with self._lock:
            if self._headers is None:
                return None
            return self._headers.get((schema_id, message_name))

    def put(self, schema_id: int, message_name: str, header: bytes) -> None:
        with self._lock:
            if self._headers is None:
                self._headers = {}
            self._headers[(schema_id, message_name)] = header

    def __len__(self) -> int:
        with self._lock:
            return len(self._headers or {})
