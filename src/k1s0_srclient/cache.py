"""スキーマキャッシュ"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from .schema import Schema

K = TypeVar("K")


class SchemaCache(Generic[K]):
    """ロックで保護されたスキーマのマップ。

    エントリは fetch 成功時に書き込まれ、clear() でのみ消える。
    取得中の状態は持たないため、同じキーの重複 fetch は起こりうる。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[K, Schema] = {}

    def get(self, key: K) -> Schema | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: K, schema: Schema) -> None:
        with self._lock:
            self._entries[key] = schema

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def subject_cache_key(subject: str, version: str, fmt: str | None = None) -> str:
    """サブジェクト・バージョンキャッシュのキー。"latest" もそのままキーになる。

    format を指定した取得は format ごとに別のキーになる。
    """
    key = f"{subject}-{version}"
    if fmt:
        key = f"{key}@{fmt}"
    return key
