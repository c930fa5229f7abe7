"""Schema Registry HTTP クライアント実装"""

from __future__ import annotations

import re
import threading
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from .cache import SchemaCache, subject_cache_key
from .client import SchemaRegistryClient
from .config import SchemaRegistryConfig
from .exceptions import SchemaRegistryError, SchemaRegistryErrorCodes
from .models import CompatibilityLevel, Reference, SchemaType, SubjectVersion
from .schema import Schema
from .transport import PreRequestHook, RegistryTransport

logger = structlog.get_logger(__name__)

_LINE_BREAK = re.compile(r"\r?\n")
LATEST = "latest"


class HttpSchemaRegistryClient(SchemaRegistryClient):
    """httpx を使った Schema Registry HTTP クライアント。

    ID 別とサブジェクト・バージョン別の 2 つのキャッシュを持つ。"latest" は
    独立したキーとしてキャッシュされ、他のクライアントが新バージョンを登録しても
    reset_cache() まで更新されない。

    get_schema などの fmt はレジストリの format パラメータで、省略時は
    config.schema_format を使う。キャッシュは実際に使った format ごとに分かれる。
    http_client / async_http_client / pre_request は RegistryTransport に渡す。
    """

    def __init__(
        self,
        config: SchemaRegistryConfig,
        transport: RegistryTransport | None = None,
        *,
        http_client: httpx.Client | None = None,
        async_http_client: httpx.AsyncClient | None = None,
        pre_request: PreRequestHook | None = None,
    ) -> None:
        self._config = config
        self._transport = transport or RegistryTransport(
            config,
            http_client=http_client,
            async_http_client=async_http_client,
            pre_request=pre_request,
        )
        self._flags_lock = threading.Lock()
        self._caching_enabled = config.caching_enabled
        self._codec_creation_enabled = config.codec_creation_enabled
        self._id_cache: SchemaCache[tuple[int, str | None]] = SchemaCache()
        self._subject_cache: SchemaCache[str] = SchemaCache()

    @property
    def url(self) -> str:
        return self._transport.url

    @property
    def caching_enabled(self) -> bool:
        with self._flags_lock:
            return self._caching_enabled

    def set_caching_enabled(self, value: bool) -> None:
        """キャッシュの有効・無効を切り替える。"""
        with self._flags_lock:
            self._caching_enabled = value

    @property
    def codec_creation_enabled(self) -> bool:
        with self._flags_lock:
            return self._codec_creation_enabled

    def set_codec_creation_enabled(self, value: bool) -> None:
        """取得時に Avro コーデックを生成するか切り替える。"""
        with self._flags_lock:
            self._codec_creation_enabled = value

    def set_credentials(self, username: str, password: str) -> None:
        """Basic 認証の資格情報を設定する。Bearer トークンは破棄される。"""
        self._transport.set_credentials(username, password)

    def set_bearer_token(self, token: str) -> None:
        """Bearer トークンを設定する。Basic 認証の資格情報は破棄される。"""
        self._transport.set_bearer_token(token)

    def set_timeout(self, seconds: float) -> None:
        self._transport.set_timeout(seconds)

    def reset_cache(self) -> None:
        # ロックは 1 つずつ取る
        self._id_cache.clear()
        self._subject_cache.clear()
        logger.debug("schema caches reset")

    # --- 読み取り ---

    def get_schema(self, schema_id: int, fmt: str | None = None) -> Schema:
        fmt = self._format(fmt)
        cached = self._cached_by_id(schema_id, fmt)
        if cached is not None:
            return cached
        data = self._transport.request(
            "GET", f"/schemas/ids/{schema_id}", params=_format_params(fmt)
        )
        return self._store_by_id(self._build_schema(data, schema_id), fmt)

    async def get_schema_async(self, schema_id: int, fmt: str | None = None) -> Schema:
        fmt = self._format(fmt)
        cached = self._cached_by_id(schema_id, fmt)
        if cached is not None:
            return cached
        data = await self._transport.request_async(
            "GET", f"/schemas/ids/{schema_id}", params=_format_params(fmt)
        )
        return self._store_by_id(self._build_schema(data, schema_id), fmt)

    def get_latest_schema(self, subject: str, fmt: str | None = None) -> Schema:
        return self._get_version(subject, LATEST, fmt)

    async def get_latest_schema_async(self, subject: str, fmt: str | None = None) -> Schema:
        return await self._get_version_async(subject, LATEST, fmt)

    def get_schema_by_version(
        self, subject: str, version: int, fmt: str | None = None
    ) -> Schema:
        return self._get_version(subject, str(version), fmt)

    async def get_schema_by_version_async(
        self, subject: str, version: int, fmt: str | None = None
    ) -> Schema:
        return await self._get_version_async(subject, str(version), fmt)

    def get_schema_versions(self, subject: str) -> list[int]:
        data = self._transport.request("GET", f"/subjects/{_escape(subject)}/versions")
        return [int(v) for v in data]

    def get_subjects(self, include_deleted: bool = False) -> list[str]:
        params = {"deleted": "true"} if include_deleted else None
        data = self._transport.request("GET", "/subjects", params=params)
        return list(data)

    def get_subject_versions_by_id(self, schema_id: int) -> list[SubjectVersion]:
        data = self._transport.request("GET", f"/schemas/ids/{schema_id}/versions")
        return [SubjectVersion(subject=d["subject"], version=int(d["version"])) for d in data]

    # --- 書き込み ---

    def create_schema(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        body = _schema_request(schema, SchemaType.parse(schema_type), references)
        data = self._transport.request(
            "POST", f"/subjects/{_escape(subject)}/versions", json=body
        )
        # レジストリが確定した内容を ID で取り直す
        created = self.get_schema(_response_id(data))
        self._store_created(subject, created, self._format(None))
        return created

    async def create_schema_async(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        body = _schema_request(schema, SchemaType.parse(schema_type), references)
        data = await self._transport.request_async(
            "POST", f"/subjects/{_escape(subject)}/versions", json=body
        )
        created = await self.get_schema_async(_response_id(data))
        self._store_created(subject, created, self._format(None))
        return created

    def lookup_schema(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        body = _schema_request(schema, SchemaType.parse(schema_type), references)
        data = self._transport.request("POST", f"/subjects/{_escape(subject)}", json=body)
        found = self._build_schema(data)
        # lookup の応答は登録時の本文なので format なしのキーに入れる
        self._store_created(subject, found, None)
        return found

    def is_schema_compatible(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        version: str = LATEST,
        references: Sequence[Reference] | None = None,
    ) -> bool:
        body = _schema_request(schema, SchemaType.parse(schema_type), references, normalize=False)
        data = self._transport.request(
            "POST",
            f"/compatibility/subjects/{_escape(subject)}/versions/{version}",
            json=body,
        )
        return bool(data.get("is_compatible", False))

    def get_global_compatibility_level(self) -> CompatibilityLevel:
        data = self._transport.request("GET", "/config")
        return _compatibility_from(data)

    def get_compatibility_level(
        self, subject: str, default_to_global: bool = False
    ) -> CompatibilityLevel:
        data = self._transport.request(
            "GET",
            f"/config/{_escape(subject)}",
            params={"defaultToGlobal": "true" if default_to_global else "false"},
        )
        return _compatibility_from(data)

    def change_subject_compatibility_level(
        self, subject: str, level: CompatibilityLevel
    ) -> CompatibilityLevel:
        data = self._transport.request(
            "PUT", f"/config/{_escape(subject)}", json={"compatibility": level.value}
        )
        return _compatibility_from(data)

    def delete_subject_compatibility_level(self, subject: str) -> CompatibilityLevel:
        data = self._transport.request("DELETE", f"/config/{_escape(subject)}")
        return _compatibility_from(data)

    def delete_subject(self, subject: str, permanent: bool = False) -> None:
        params = {"permanent": "true"} if permanent else None
        self._transport.request("DELETE", f"/subjects/{_escape(subject)}", params=params)

    def delete_subject_by_version(
        self, subject: str, version: int, permanent: bool = False
    ) -> None:
        path = f"/subjects/{_escape(subject)}/versions/{version}"
        self._transport.request("DELETE", path)
        if permanent:
            # 完全削除はソフト削除済みのバージョンにのみ許可される
            self._transport.request("DELETE", path, params={"permanent": "true"})

    # --- 内部処理 ---

    def _get_version(self, subject: str, version: str, fmt: str | None) -> Schema:
        fmt = self._format(fmt)
        key = subject_cache_key(subject, version, fmt)
        cached = self._cached_by_subject(key)
        if cached is not None:
            return cached
        data = self._transport.request(
            "GET",
            f"/subjects/{_escape(subject)}/versions/{version}",
            params=_format_params(fmt),
        )
        return self._store_by_subject(key, self._build_schema(data), fmt)

    async def _get_version_async(self, subject: str, version: str, fmt: str | None) -> Schema:
        fmt = self._format(fmt)
        key = subject_cache_key(subject, version, fmt)
        cached = self._cached_by_subject(key)
        if cached is not None:
            return cached
        data = await self._transport.request_async(
            "GET",
            f"/subjects/{_escape(subject)}/versions/{version}",
            params=_format_params(fmt),
        )
        return self._store_by_subject(key, self._build_schema(data), fmt)

    def _format(self, fmt: str | None) -> str | None:
        return fmt or self._config.schema_format

    def _build_schema(self, data: Any, schema_id: int | None = None) -> Schema:  # noqa: ANN401
        try:
            schema = Schema.from_response(data, schema_id)
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.INVALID_RESPONSE,
                message=f"Unexpected schema response: {e}",
                cause=e,
            ) from e
        if self.codec_creation_enabled and schema.schema_type is SchemaType.AVRO:
            schema.codec()
        return schema

    def _cached_by_id(self, schema_id: int, fmt: str | None) -> Schema | None:
        if not self.caching_enabled:
            return None
        cached = self._id_cache.get((schema_id, fmt))
        logger.debug("id cache lookup", schema_id=schema_id, fmt=fmt, hit=cached is not None)
        return cached

    def _cached_by_subject(self, key: str) -> Schema | None:
        if not self.caching_enabled:
            return None
        cached = self._subject_cache.get(key)
        logger.debug("subject cache lookup", key=key, hit=cached is not None)
        return cached

    def _store_by_id(self, schema: Schema, fmt: str | None) -> Schema:
        if self.caching_enabled:
            self._id_cache.put((schema.id, fmt), schema)
        return schema

    def _store_by_subject(self, key: str, schema: Schema, fmt: str | None) -> Schema:
        if self.caching_enabled:
            self._subject_cache.put(key, schema)
            self._id_cache.put((schema.id, fmt), schema)
        return schema

    def _store_created(self, subject: str, schema: Schema, fmt: str | None) -> None:
        logger.debug(
            "schema registered", subject=subject, schema_id=schema.id, version=schema.version
        )
        if not self.caching_enabled:
            return
        self._id_cache.put((schema.id, fmt), schema)
        if schema.version > 0:
            key = subject_cache_key(subject, str(schema.version), fmt)
            self._subject_cache.put(key, schema)


def _escape(subject: str) -> str:
    return quote(subject, safe="")


def _format_params(fmt: str | None) -> dict[str, str] | None:
    return {"format": fmt} if fmt else None


def _schema_request(
    schema: str,
    schema_type: SchemaType,
    references: Sequence[Reference] | None,
    normalize: bool = True,
) -> dict[str, Any]:
    if normalize and schema_type in (SchemaType.AVRO, SchemaType.JSON):
        schema = _LINE_BREAK.sub(" ", schema)
    body: dict[str, Any] = {"schema": schema}
    wire_type = schema_type.wire_value()
    if wire_type is not None:
        body["schemaType"] = wire_type
    if references:
        body["references"] = [r.to_dict() for r in references]
    return body


def _response_id(data: Any) -> int:  # noqa: ANN401
    try:
        return int(data["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.INVALID_RESPONSE,
            message=f"Registry response has no schema id: {data!r}",
            cause=e,
        ) from e


def _compatibility_from(data: Any) -> CompatibilityLevel:  # noqa: ANN401
    level = data.get("compatibilityLevel") or data.get("compatibility")
    return CompatibilityLevel(level)
