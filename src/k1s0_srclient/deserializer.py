"""Protobuf メッセージのデシリアライザ"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence

from google.protobuf.message import DecodeError, Message

from .descriptors import ProtoSchemaLoader, resolve_descriptor
from .exceptions import SerdeError, SerdeErrorCodes
from .wire import decode_header

UnmarshalFunc = Callable[[bytes, Message], None]


def unmarshal_message(data: bytes, message: Message) -> None:
    """data を message に読み込む。"""
    try:
        message.ParseFromString(data)
    except DecodeError as e:
        raise SerdeError(
            code=SerdeErrorCodes.SERIALIZATION_ERROR,
            message=f"failed to decode {message.DESCRIPTOR.full_name}: {e}",
            cause=e,
        ) from e


class MessageTypeRegistry:
    """実行時に生成可能なメッセージクラスの登録簿。"""

    def __init__(self, *message_classes: type[Message]) -> None:
        self._by_full_name: dict[str, type[Message]] = {}
        for cls in message_classes:
            self.register(cls)

    def register(self, message_class: type[Message]) -> None:
        self._by_full_name[message_class.DESCRIPTOR.full_name] = message_class

    def find_by_name(self, full_name: str) -> type[Message] | None:
        return self._by_full_name.get(full_name)

    def __iter__(self) -> Iterator[type[Message]]:
        return iter(list(self._by_full_name.values()))

    def __len__(self) -> int:
        return len(self._by_full_name)


class ProtobufResolver(ABC):
    """スキーマ ID とインデックスパスから空のメッセージを生成する。"""

    @abstractmethod
    def resolve_protobuf(self, schema_id: int, path: Sequence[int]) -> Message:
        ...


class SchemaRegistryProtobufResolver(ProtobufResolver):
    """レジストリの記述子で型を特定し、登録簿からクラスを探す。

    完全名で見つからない場合は短い名前で探す。
    """

    def __init__(self, loader: ProtoSchemaLoader, type_registry: MessageTypeRegistry) -> None:
        self._loader = loader
        self._type_registry = type_registry

    def resolve_protobuf(self, schema_id: int, path: Sequence[int]) -> Message:
        file_descriptor = self._loader.load(schema_id)
        descriptor = resolve_descriptor(path, file_descriptor)
        message_class = self._type_registry.find_by_name(descriptor.full_name)
        if message_class is None:
            message_class = next(
                (c for c in self._type_registry if c.DESCRIPTOR.name == descriptor.name),
                None,
            )
        if message_class is None:
            raise SerdeError(
                code=SerdeErrorCodes.MESSAGE_TYPE_NOT_REGISTERED,
                message=f"no message type registered for {descriptor.full_name}",
            )
        return message_class()


class ProtobufDeserializer:
    """Schema Registry のワイヤーフォーマットから Protobuf を復元する。"""

    def __init__(
        self,
        protobuf_resolver: ProtobufResolver,
        unmarshal: UnmarshalFunc = unmarshal_message,
    ) -> None:
        self._protobuf_resolver = protobuf_resolver
        self._unmarshal = unmarshal

    def deserialize(self, data: bytes | None) -> Message:
        if data is None:
            raise SerdeError(
                code=SerdeErrorCodes.NOTHING_TO_DESERIALIZE,
                message="unable to deserialize None",
            )
        offset, schema_id, path = decode_header(data)
        message = self._protobuf_resolver.resolve_protobuf(schema_id, path)
        self._unmarshal(data[offset:], message)
        return message
