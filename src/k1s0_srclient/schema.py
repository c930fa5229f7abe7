"""スキーマ値オブジェクト"""

from __future__ import annotations

import io
import json
import threading
from collections.abc import Iterable
from typing import Any

import fastavro
import jsonschema
from fastavro.schema import SchemaParseException
from google.protobuf import descriptor_pb2

from .descriptors import parse_serialized_schema
from .exceptions import SchemaRegistryError, SchemaRegistryErrorCodes
from .models import Reference, SchemaType


class AvroCodec:
    """fastavro の解析済みスキーマを使った Avro バイナリコーデック。"""

    def __init__(self, parsed_schema: Any) -> None:  # noqa: ANN401
        self.parsed_schema = parsed_schema

    def encode(self, record: Any) -> bytes:  # noqa: ANN401
        buf = io.BytesIO()
        fastavro.schemaless_writer(buf, self.parsed_schema, record)
        return buf.getvalue()

    def decode(self, data: bytes) -> Any:  # noqa: ANN401
        return fastavro.schemaless_reader(io.BytesIO(data), self.parsed_schema)


class Schema:
    """レジストリに登録されたスキーマ。

    生成後は不変。コーデック・バリデータ・記述子は初回アクセス時に構築して
    メモ化する。構築に失敗した場合は例外を送出し、次回アクセスで再試行する。
    """

    __slots__ = (
        "_id",
        "_schema",
        "_schema_type",
        "_version",
        "_references",
        "_lock",
        "_codec",
        "_json_schema",
        "_file_descriptor",
    )

    def __init__(
        self,
        id: int,
        schema: str,
        schema_type: SchemaType = SchemaType.AVRO,
        version: int = 0,
        references: Iterable[Reference] = (),
        codec: AvroCodec | None = None,
    ) -> None:
        if not schema:
            raise ValueError("schema cannot be empty")
        self._id = id
        self._schema = schema
        self._schema_type = schema_type
        self._version = version
        self._references = tuple(references)
        self._lock = threading.Lock()
        self._codec = codec
        self._json_schema: Any = None
        self._file_descriptor: descriptor_pb2.FileDescriptorProto | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any], schema_id: int | None = None) -> Schema:
        """レジストリの JSON レスポンスから Schema を生成する。"""
        return cls(
            id=int(data["id"]) if schema_id is None else schema_id,
            schema=data["schema"],
            schema_type=SchemaType.parse(data.get("schemaType")),
            version=int(data.get("version", 0)),
            references=[Reference.from_dict(r) for r in data.get("references") or []],
        )

    @property
    def id(self) -> int:
        return self._id

    @property
    def schema(self) -> str:
        return self._schema

    @property
    def schema_type(self) -> SchemaType:
        return self._schema_type

    @property
    def version(self) -> int:
        """サブジェクト内のバージョン。ID 指定で取得した場合は 0 (不明) になりうる。"""
        return self._version

    @property
    def references(self) -> tuple[Reference, ...]:
        return self._references

    def codec(self) -> AvroCodec:
        """Avro コーデックを返す。"""
        with self._lock:
            if self._codec is None:
                self._codec = build_avro_codec(self._schema)
            return self._codec

    def json_schema(self) -> Any:  # noqa: ANN401
        """コンパイル済み JSON Schema バリデータを返す。"""
        with self._lock:
            if self._json_schema is None:
                try:
                    document = json.loads(self._schema)
                    validator_cls = jsonschema.validators.validator_for(document)
                    validator_cls.check_schema(document)
                except (ValueError, jsonschema.SchemaError) as e:
                    raise SchemaRegistryError(
                        code=SchemaRegistryErrorCodes.CODEC_ERROR,
                        message=f"Failed to compile JSON schema {self._id}: {e}",
                        cause=e,
                    ) from e
                self._json_schema = validator_cls(document)
            return self._json_schema

    def file_descriptor(self) -> descriptor_pb2.FileDescriptorProto:
        """シリアライズ形式のスキーマ本文から FileDescriptorProto を返す。"""
        with self._lock:
            if self._file_descriptor is None:
                self._file_descriptor = parse_serialized_schema(str(self._id), self._schema)
            return self._file_descriptor

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return (
            self._id == other._id
            and self._schema == other._schema
            and self._schema_type == other._schema_type
            and self._version == other._version
            and self._references == other._references
        )

    def __hash__(self) -> int:
        return hash((self._id, self._schema, self._schema_type, self._version))

    def __repr__(self) -> str:
        return (
            f"Schema(id={self._id}, schema_type={self._schema_type.value}, "
            f"version={self._version}, references={list(self._references)!r})"
        )


def build_avro_codec(schema: str) -> AvroCodec:
    """スキーマ文字列から Avro コーデックを構築する。"""
    try:
        parsed = fastavro.parse_schema(json.loads(schema))
    except (KeyError, TypeError, ValueError, SchemaParseException) as e:
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.CODEC_ERROR,
            message=f"Failed to build Avro codec: {e}",
            cause=e,
        ) from e
    return AvroCodec(parsed)
