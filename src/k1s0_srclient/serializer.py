"""Protobuf メッセージのシリアライザ"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

import structlog
from google.protobuf import descriptor_pb2
from google.protobuf.descriptor import FileDescriptor
from google.protobuf.message import EncodeError, Message

from .client import SchemaRegistryClient
from .descriptors import ProtoSchemaLoader, qualified_name
from .exceptions import SerdeError, SerdeErrorCodes
from .header_cache import HeaderCache
from .models import SerializationType
from .schema import Schema
from .wire import compute_index_path, encode_header

logger = structlog.get_logger(__name__)

InitializeFunc = Callable[[Message], None]
MarshalFunc = Callable[[bytes, Message], bytes]


def marshal_message(header: bytes, message: Message) -> bytes:
    """ヘッダーの後ろにメッセージ本体を連結する。"""
    try:
        return header + message.SerializeToString()
    except EncodeError as e:
        raise SerdeError(
            code=SerdeErrorCodes.SERIALIZATION_ERROR,
            message=f"failed to encode {message.DESCRIPTOR.full_name}: {e}",
            cause=e,
        ) from e


class SchemaResolver(ABC):
    """トピックに対応するスキーマと、その Protobuf 記述子を解決する。"""

    @abstractmethod
    def resolve_schema(self, topic: str) -> Schema:
        """トピックで現在使うスキーマを返す。"""
        ...

    @abstractmethod
    def resolve_proto_schema(
        self, schema_id: int
    ) -> FileDescriptor | descriptor_pb2.FileDescriptorProto:
        """スキーマ ID に対応するレジストリ側のファイル記述子を返す。

        実行時の FileDescriptor と FileDescriptorProto のどちらでもよい。
        """
        ...


class TopicNameSchemaResolver(SchemaResolver):
    """トピック名をサブジェクトに使う (TopicNameStrategy)。

    シリアライズのたびに最新スキーマを引くため、クライアントのキャッシュを
    有効にして使う。
    """

    def __init__(
        self,
        client: SchemaRegistryClient,
        loader: ProtoSchemaLoader | None = None,
        serialization_type: SerializationType = SerializationType.VALUE,
    ) -> None:
        self._client = client
        self._loader = loader or ProtoSchemaLoader(client)
        self._serialization_type = serialization_type

    def subject(self, topic: str) -> str:
        return self._serialization_type.subject_for(topic)

    def resolve_schema(self, topic: str) -> Schema:
        return self._client.get_latest_schema(self.subject(topic))

    def resolve_proto_schema(self, schema_id: int) -> FileDescriptor:
        return self._loader.load(schema_id)


class ProtobufSerializer:
    """Schema Registry のワイヤーフォーマットで Protobuf をシリアライズする。"""

    def __init__(
        self,
        schema_resolver: SchemaResolver | None,
        initialize: InitializeFunc | None = None,
        marshal: MarshalFunc = marshal_message,
    ) -> None:
        self._schema_resolver = schema_resolver
        self._initialize = initialize
        self._marshal = marshal
        self._header_cache = HeaderCache()

    def serialize(self, topic: str, message: object) -> bytes | None:
        """message をトピック向けのバイト列にする。None は None を返す。"""
        if message is None:
            return None
        if not isinstance(message, Message):
            raise SerdeError(
                code=SerdeErrorCodes.NOT_A_MESSAGE,
                message=f"expected a protobuf message, got {type(message).__name__}",
            )
        if self._schema_resolver is None:
            raise SerdeError(
                code=SerdeErrorCodes.NOT_CONFIGURED,
                message="schema resolver is not configured",
            )

        schema = self._schema_resolver.resolve_schema(topic)
        if self._initialize is not None:
            self._initialize(message)
        header = self._header(schema.id, message)
        return self._marshal(header, message)

    def _header(self, schema_id: int, message: Message) -> bytes:
        name = message.DESCRIPTOR.full_name
        header = self._header_cache.get(schema_id, name)
        if header is not None:
            return header

        path = compute_index_path(message.DESCRIPTOR)
        # レジストリ側の定義でも同じ位置にメッセージがあることを確かめる
        file_descriptor = self._schema_resolver.resolve_proto_schema(schema_id)
        resolved_name = qualified_name(path, file_descriptor)
        if resolved_name != name:
            raise SerdeError(
                code=SerdeErrorCodes.TYPE_UNDEFINED,
                message=(
                    f"index path {path} addresses {resolved_name} "
                    f"in schema {schema_id}, not {name}"
                ),
            )

        header = encode_header(schema_id, path)
        self._header_cache.put(schema_id, name, header)
        logger.debug("header cached", schema_id=schema_id, message=name, path=path)
        return header
