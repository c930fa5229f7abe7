"""Schema Registry クライアント抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .models import CompatibilityLevel, Reference, SchemaType, SubjectVersion
from .schema import Schema


class SchemaRegistryClient(ABC):
    """Schema Registry クライアント抽象基底クラス。"""

    @abstractmethod
    def get_schema(self, schema_id: int, fmt: str | None = None) -> Schema:
        """ID でスキーマを取得する。

        fmt はレジストリの format パラメータ (例: "serialized")。
        """
        ...

    @abstractmethod
    async def get_schema_async(self, schema_id: int, fmt: str | None = None) -> Schema:
        """非同期で ID でスキーマを取得する。"""
        ...

    @abstractmethod
    def get_latest_schema(self, subject: str, fmt: str | None = None) -> Schema:
        """サブジェクトの最新バージョンのスキーマを取得する。"""
        ...

    @abstractmethod
    async def get_latest_schema_async(self, subject: str, fmt: str | None = None) -> Schema:
        """非同期でサブジェクトの最新バージョンのスキーマを取得する。"""
        ...

    @abstractmethod
    def get_schema_by_version(
        self, subject: str, version: int, fmt: str | None = None
    ) -> Schema:
        """サブジェクトとバージョンでスキーマを取得する。"""
        ...

    @abstractmethod
    async def get_schema_by_version_async(
        self, subject: str, version: int, fmt: str | None = None
    ) -> Schema:
        """非同期でサブジェクトとバージョンでスキーマを取得する。"""
        ...

    @abstractmethod
    def get_schema_versions(self, subject: str) -> list[int]:
        """サブジェクトに登録済みのバージョン一覧を返す。"""
        ...

    @abstractmethod
    def get_subjects(self, include_deleted: bool = False) -> list[str]:
        """登録済みサブジェクト一覧を返す。"""
        ...

    @abstractmethod
    def get_subject_versions_by_id(self, schema_id: int) -> list[SubjectVersion]:
        """スキーマ ID を使用しているサブジェクトとバージョンの組を返す。"""
        ...

    @abstractmethod
    def create_schema(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        """スキーマを登録し、レジストリが確定した内容のスキーマを返す。"""
        ...

    @abstractmethod
    async def create_schema_async(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        """非同期でスキーマを登録する。"""
        ...

    @abstractmethod
    def lookup_schema(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        references: Sequence[Reference] | None = None,
    ) -> Schema:
        """サブジェクト配下に同一スキーマが登録済みか検索する。"""
        ...

    @abstractmethod
    def is_schema_compatible(
        self,
        subject: str,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        version: str = "latest",
        references: Sequence[Reference] | None = None,
    ) -> bool:
        """レジストリに互換性チェックを依頼する。"""
        ...

    @abstractmethod
    def get_global_compatibility_level(self) -> CompatibilityLevel:
        """グローバルの互換性レベルを返す。"""
        ...

    @abstractmethod
    def get_compatibility_level(
        self, subject: str, default_to_global: bool = False
    ) -> CompatibilityLevel:
        """サブジェクトの互換性レベルを返す。"""
        ...

    @abstractmethod
    def change_subject_compatibility_level(
        self, subject: str, level: CompatibilityLevel
    ) -> CompatibilityLevel:
        """サブジェクトの互換性レベルを変更する。"""
        ...

    @abstractmethod
    def delete_subject_compatibility_level(self, subject: str) -> CompatibilityLevel:
        """サブジェクト固有の互換性レベルを削除してグローバル設定に戻す。"""
        ...

    @abstractmethod
    def delete_subject(self, subject: str, permanent: bool = False) -> None:
        """サブジェクトを削除する。"""
        ...

    @abstractmethod
    def delete_subject_by_version(
        self, subject: str, version: int, permanent: bool = False
    ) -> None:
        """サブジェクトの指定バージョンを削除する。"""
        ...

    @abstractmethod
    def reset_cache(self) -> None:
        """スキーマキャッシュを破棄する。"""
        ...
