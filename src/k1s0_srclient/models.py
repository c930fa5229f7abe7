"""Schema Registry データモデル"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .exceptions import SchemaRegistryError, SchemaRegistryErrorCodes


class SchemaType(StrEnum):
    """スキーマタイプ。"""

    AVRO = "AVRO"
    JSON = "JSON"
    PROTOBUF = "PROTOBUF"

    @classmethod
    def parse(cls, value: str | SchemaType | None) -> SchemaType:
        """文字列からスキーマタイプを得る。None はレジストリ既定の AVRO。"""
        if value is None or value == "":
            return cls.AVRO
        try:
            return cls(str(value).upper())
        except ValueError as e:
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.INVALID_SCHEMA_TYPE,
                message=f"invalid schema type {value!r}. valid values are AVRO, JSON or PROTOBUF",
                cause=e,
            ) from e

    def wire_value(self) -> str | None:
        """リクエストに載せる schemaType。AVRO は旧 API 互換のため省略する。"""
        if self is SchemaType.AVRO:
            return None
        return self.value


class CompatibilityLevel(StrEnum):
    """互換性レベル。"""

    NONE = "NONE"
    BACKWARD = "BACKWARD"
    BACKWARD_TRANSITIVE = "BACKWARD_TRANSITIVE"
    FORWARD = "FORWARD"
    FORWARD_TRANSITIVE = "FORWARD_TRANSITIVE"
    FULL = "FULL"
    FULL_TRANSITIVE = "FULL_TRANSITIVE"


class SerializationType(StrEnum):
    """キー/値のどちらをシリアライズするか。"""

    KEY = "key"
    VALUE = "value"

    def subject_for(self, topic: str) -> str:
        """TopicNameStrategy に従いサブジェクト名を返す。"""
        return f"{topic}-{self.value}"


@dataclass(frozen=True)
class Reference:
    """スキーマ参照 (Protobuf の import / JSON Schema の $ref)。"""

    name: str
    subject: str
    version: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "subject": self.subject, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reference:
        return cls(
            name=data["name"],
            subject=data["subject"],
            version=int(data["version"]),
        )


@dataclass(frozen=True)
class SubjectVersion:
    """スキーマ ID に紐づくサブジェクトとバージョンの組。"""

    subject: str
    version: int
