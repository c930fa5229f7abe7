"""InMemorySchemaRegistryClient 実装"""

from __future__ import annotations

import re
import threading
from collections.abc import Sequence

from .client import SchemaRegistryClient
from .exceptions import SchemaRegistryError, SchemaRegistryErrorCodes
from .models import CompatibilityLevel, Reference, SchemaType, SubjectVersion
from .schema import Schema

_LINE_BREAK = re.compile(r"\r?\n")


class InMemorySchemaRegistryClient(SchemaRegistryClient):
    """テスト用インメモリ Schema Registry クライアント。

    互換性チェックと lookup は実装しない。すべての状態を 1 つのロックで守る。
    fmt は受け付けるが無視し、登録された本文をそのまま返す。
    """

    def __init__(self, url: str = "mock://") -> None:
        self._url = url
        self._lock = threading.Lock()
        self._subjects: dict[str, dict[int, Schema]] = {}
        self._ids: dict[int, Schema] = {}
        self._id_counter = 0

    @property
    def url(self) -> str:
        return self._url

    def set_schema(
        self,
        schema_id: int,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        version: int = -1,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        """ID を指定してスキーマを登録する。version が -1 なら次の番号を振る。"""
        schema_type = SchemaType.parse(schema_type)
        if schema_type in (SchemaType.AVRO, SchemaType.JSON):
            schema = _LINE_BREAK.sub(" ", schema)
        with self._lock:
            self._id_counter = max(self._id_counter, schema_id)
            return self._register(schema_id, subject, schema, schema_type, version, references)

    def create_schema(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        schema_type = SchemaType.parse(schema_type)
        if schema_type in (SchemaType.AVRO, SchemaType.JSON):
            schema = _LINE_BREAK.sub(" ", schema)
        with self._lock:
            self._id_counter += 1
            return self._register(self._id_counter, subject, schema, schema_type, -1, references)

    async def create_schema_async(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        return self.create_schema(subject, schema, schema_type, references)

    def get_schema(self, schema_id: int, fmt: str | None = None) -> Schema:
        with self._lock:
            found = self._ids.get(schema_id)
        if found is None:
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND,
                message=f"{self._url}/schemas/ids/{schema_id}: schema not found",
            )
        return found

    async def get_schema_async(self, schema_id: int, fmt: str | None = None) -> Schema:
        return self.get_schema(schema_id, fmt)

    def get_latest_schema(self, subject: str, fmt: str | None = None) -> Schema:
        with self._lock:
            versions = self._subjects.get(subject)
            if versions:
                return versions[max(versions)]
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND,
            message=f"{self._url}/subjects/{subject}/versions/latest: schema not found",
        )

    async def get_latest_schema_async(self, subject: str, fmt: str | None = None) -> Schema:
        return self.get_latest_schema(subject, fmt)

    def get_schema_by_version(
        self, subject: str, version: int, fmt: str | None = None
    ) -> Schema:
        context = f"{self._url}/subjects/{subject}/versions/{version}"
        with self._lock:
            versions = self._subjects.get(subject)
            found = versions.get(version) if versions is not None else None
        if versions is None:
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.SUBJECT_NOT_FOUND,
                message=f"{context}: subject not found",
            )
        if found is None:
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND,
                message=f"{context}: schema not found",
            )
        return found

    async def get_schema_by_version_async(
        self, subject: str, version: int, fmt: str | None = None
    ) -> Schema:
        return self.get_schema_by_version(subject, version, fmt)

    def get_schema_versions(self, subject: str) -> list[int]:
        with self._lock:
            return sorted(self._subjects.get(subject, {}))

    def get_subjects(self, include_deleted: bool = False) -> list[str]:
        if include_deleted:
            raise _not_implemented("get_subjects(include_deleted=True)")
        with self._lock:
            return list(self._subjects)

    def get_subject_versions_by_id(self, schema_id: int) -> list[SubjectVersion]:
        with self._lock:
            return [
                SubjectVersion(subject=subject, version=version)
                for subject, versions in self._subjects.items()
                for version, schema in sorted(versions.items())
                if schema.id == schema_id
            ]

    def lookup_schema(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        raise _not_implemented("lookup_schema")

    def is_schema_compatible(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        version: str = "latest",
        references: Sequence[Reference] | None = None,
    ) -> bool:
        raise _not_implemented("is_schema_compatible")

    def get_global_compatibility_level(self) -> CompatibilityLevel:
        raise _not_implemented("get_global_compatibility_level")

    def get_compatibility_level(
        self, subject: str, default_to_global: bool = False
    ) -> CompatibilityLevel:
        raise _not_implemented("get_compatibility_level")

    def change_subject_compatibility_level(
        self, subject: str, level: CompatibilityLevel
    ) -> CompatibilityLevel:
        raise _not_implemented("change_subject_compatibility_level")

    def delete_subject_compatibility_level(self, subject: str) -> CompatibilityLevel:
        raise _not_implemented("delete_subject_compatibility_level")

    def delete_subject(self, subject: str, permanent: bool = False) -> None:
        with self._lock:
            self._subjects.pop(subject, None)

    def delete_subject_by_version(
        self, subject: str, version: int, permanent: bool = False
    ) -> None:
        context = f"{self._url}/subjects/{subject}/versions/{version}"
        with self._lock:
            versions = self._subjects.get(subject)
            if versions is None:
                raise SchemaRegistryError(
                    code=SchemaRegistryErrorCodes.SUBJECT_NOT_FOUND,
                    message=f"{context}: subject not found",
                )
            if versions.pop(version, None) is None:
                raise SchemaRegistryError(
                    code=SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND,
                    message=f"{context}: schema not found",
                )

    def reset_cache(self) -> None:
        # 保存内容そのものがレジストリなので何もしない
        pass

    def _register(
        self,
        schema_id: int,
        subject: str,
        schema: str,
        schema_type: SchemaType,
        version: int,
        references: Sequence[Reference] | None,
    ) -> Schema:
        versions = self._subjects.setdefault(subject, {})
        if any(existing.schema == schema for existing in versions.values()):
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.SCHEMA_ALREADY_REGISTERED,
                message=f"{self._url}/subjects/{subject}/versions: schema already registered",
            )
        if version < 0:
            version = max(versions, default=0) + 1
        registered = Schema(
            id=schema_id,
            schema=schema,
            schema_type=schema_type,
            version=version,
            references=references or (),
        )
        versions[version] = registered
        self._ids[schema_id] = registered
        return registered


def _not_implemented(operation: str) -> SchemaRegistryError:
    return SchemaRegistryError(
        code=SchemaRegistryErrorCodes.NOT_IMPLEMENTED,
        message=f"{operation} is not supported by the in-memory registry",
    )
