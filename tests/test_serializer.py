"""ProtobufSerializer のテスト"""

from collections.abc import Callable

import pytest
from google.protobuf import descriptor_pb2
from google.protobuf.descriptor import FileDescriptor
from google.protobuf.message import Message
from k1s0_srclient.descriptors import ProtoSchemaLoader
from k1s0_srclient.exceptions import SchemaRegistryError, SerdeError, SerdeErrorCodes
from k1s0_srclient.mock_client import InMemorySchemaRegistryClient
from k1s0_srclient.models import SchemaType, SerializationType
from k1s0_srclient.schema import Schema
from k1s0_srclient.serializer import (
    ProtobufSerializer,
    SchemaResolver,
    TopicNameSchemaResolver,
)

MESSAGE_G = "test.package.MessageA.MessageE.MessageG"
HEADER_42_0_2_1 = b"\x00\x00\x00\x00\x2a\x06\x00\x04\x02"


class CountingResolver(SchemaResolver):
    """委譲先の呼び出し回数を数える。"""

    def __init__(self, inner: SchemaResolver) -> None:
        self.inner = inner
        self.schema_calls = 0
        self.proto_calls = 0

    def resolve_schema(self, topic: str) -> Schema:
        self.schema_calls += 1
        return self.inner.resolve_schema(topic)

    def resolve_proto_schema(self, schema_id: int) -> FileDescriptor:
        self.proto_calls += 1
        return self.inner.resolve_proto_schema(schema_id)


def test_serialize_writes_header_and_body(
    registry: InMemorySchemaRegistryClient, message_classes: Callable[[str], type[Message]]
) -> None:
    """ヘッダーの後ろにメッセージ本体が続くこと。"""
    serializer = ProtobufSerializer(TopicNameSchemaResolver(registry))
    msg = message_classes(MESSAGE_G)(FieldAEG=7)

    data = serializer.serialize("events", msg)

    assert data == HEADER_42_0_2_1 + msg.SerializeToString()


def test_serialize_none_returns_none(registry: InMemorySchemaRegistryClient) -> None:
    """None はエラーにせず None を返すこと。"""
    serializer = ProtobufSerializer(TopicNameSchemaResolver(registry))
    assert serializer.serialize("events", None) is None


def test_serialize_rejects_non_message(registry: InMemorySchemaRegistryClient) -> None:
    """Protobuf メッセージ以外は NOT_A_MESSAGE になること。"""
    serializer = ProtobufSerializer(TopicNameSchemaResolver(registry))
    with pytest.raises(SerdeError) as exc_info:
        serializer.serialize("events", {"FieldAEG": 7})
    assert exc_info.value.code == SerdeErrorCodes.NOT_A_MESSAGE


def test_serialize_without_resolver(message_classes: Callable[[str], type[Message]]) -> None:
    """リゾルバ未設定なら NOT_CONFIGURED になること。"""
    serializer = ProtobufSerializer(None)
    with pytest.raises(SerdeError) as exc_info:
        serializer.serialize("events", message_classes(MESSAGE_G)())
    assert exc_info.value.code == SerdeErrorCodes.NOT_CONFIGURED


def test_header_computed_once_per_schema_and_type(
    registry: InMemorySchemaRegistryClient, message_classes: Callable[[str], type[Message]]
) -> None:
    """同じスキーマと型の 2 回目以降はキャッシュ済みヘッダーを使うこと。"""
    resolver = CountingResolver(TopicNameSchemaResolver(registry))
    serializer = ProtobufSerializer(resolver)
    msg_cls = message_classes(MESSAGE_G)

    first = serializer.serialize("events", msg_cls(FieldAEG=1))
    second = serializer.serialize("events", msg_cls(FieldAEG=2))

    assert first[: len(HEADER_42_0_2_1)] == second[: len(HEADER_42_0_2_1)] == HEADER_42_0_2_1
    assert resolver.schema_calls == 2
    assert resolver.proto_calls == 1


def test_different_types_get_different_headers(
    registry: InMemorySchemaRegistryClient, message_classes: Callable[[str], type[Message]]
) -> None:
    """型ごとに別のヘッダーを生成すること。"""
    serializer = ProtobufSerializer(TopicNameSchemaResolver(registry))
    msg = message_classes("test.package.MessageH.MessageI")(FieldHI=3)
    data = serializer.serialize("events", msg)
    assert data.startswith(b"\x00\x00\x00\x00\x2a\x04\x02\x00")


def test_initialize_hook_runs_before_marshal(
    registry: InMemorySchemaRegistryClient, message_classes: Callable[[str], type[Message]]
) -> None:
    """初期化フックがマーシャル前に適用されること。"""
    msg_cls = message_classes(MESSAGE_G)

    def stamp(msg: Message) -> None:
        msg.FieldAEG = 99

    serializer = ProtobufSerializer(TopicNameSchemaResolver(registry), initialize=stamp)
    data = serializer.serialize("events", msg_cls())

    decoded = msg_cls()
    decoded.ParseFromString(data[len(HEADER_42_0_2_1) :])
    assert decoded.FieldAEG == 99


def test_custom_marshal(
    registry: InMemorySchemaRegistryClient, message_classes: Callable[[str], type[Message]]
) -> None:
    """注入したマーシャル関数の結果をそのまま返すこと。"""
    calls: list[bytes] = []

    def marshal(header: bytes, msg: Message) -> bytes:
        calls.append(header)
        return header + b"custom"

    serializer = ProtobufSerializer(TopicNameSchemaResolver(registry), marshal=marshal)
    data = serializer.serialize("events", message_classes(MESSAGE_G)())
    assert data == HEADER_42_0_2_1 + b"custom"
    assert calls == [HEADER_42_0_2_1]


def test_key_subject(
    nested_file_proto: descriptor_pb2.FileDescriptorProto,
    serialized: Callable[[descriptor_pb2.FileDescriptorProto], str],
    message_classes: Callable[[str], type[Message]],
) -> None:
    """KEY 指定ではトピック名 + "-key" のサブジェクトを使うこと。"""
    client = InMemorySchemaRegistryClient()
    client.set_schema(8, "events-key", serialized(nested_file_proto), SchemaType.PROTOBUF)
    resolver = TopicNameSchemaResolver(client, serialization_type=SerializationType.KEY)
    assert resolver.subject("events") == "events-key"

    data = ProtobufSerializer(resolver).serialize("events", message_classes(MESSAGE_G)())
    assert data[:5] == b"\x00\x00\x00\x00\x08"


def test_schema_lookup_failure_propagates(message_classes: Callable[[str], type[Message]]) -> None:
    """スキーマ取得の失敗がそのまま伝わること。"""
    serializer = ProtobufSerializer(TopicNameSchemaResolver(InMemorySchemaRegistryClient()))
    with pytest.raises(SchemaRegistryError):
        serializer.serialize("missing", message_classes(MESSAGE_G)())


def test_registry_descriptor_skew_is_rejected(
    serialized: Callable[[descriptor_pb2.FileDescriptorProto], str],
    message_classes: Callable[[str], type[Message]],
) -> None:
    """レジストリ側の定義に同じ位置のメッセージがなければ失敗し、キャッシュしないこと。"""
    skewed = descriptor_pb2.FileDescriptorProto(name="skewed.proto", package="test.package")
    skewed.message_type.add(name="MessageA")
    client = InMemorySchemaRegistryClient()
    client.set_schema(9, "events-value", serialized(skewed), SchemaType.PROTOBUF)
    resolver = CountingResolver(TopicNameSchemaResolver(client, ProtoSchemaLoader(client)))
    serializer = ProtobufSerializer(resolver)

    for _ in range(2):
        with pytest.raises(SerdeError) as exc_info:
            serializer.serialize("events", message_classes(MESSAGE_G)())
        assert exc_info.value.code == SerdeErrorCodes.INDEX_OUT_OF_RANGE
    assert resolver.proto_calls == 2


def test_registry_type_mismatch_is_rejected(
    make_nested_file_proto: Callable[[str, str], descriptor_pb2.FileDescriptorProto],
    serialized: Callable[[descriptor_pb2.FileDescriptorProto], str],
    message_classes: Callable[[str], type[Message]],
) -> None:
    """パスは解決できても別の型を指す場合は TYPE_UNDEFINED になること。"""
    client = InMemorySchemaRegistryClient()
    other = make_nested_file_proto("other.proto", "other.package")
    client.set_schema(10, "events-value", serialized(other), SchemaType.PROTOBUF)
    serializer = ProtobufSerializer(TopicNameSchemaResolver(client))

    with pytest.raises(SerdeError) as exc_info:
        serializer.serialize("events", message_classes(MESSAGE_G)())
    assert exc_info.value.code == SerdeErrorCodes.TYPE_UNDEFINED


class ProtoTreeResolver(SchemaResolver):
    """実行時の記述子ではなく FileDescriptorProto を返す。"""

    def __init__(self, schema: Schema, file_proto: descriptor_pb2.FileDescriptorProto) -> None:
        self.schema = schema
        self.file_proto = file_proto

    def resolve_schema(self, topic: str) -> Schema:
        return self.schema

    def resolve_proto_schema(self, schema_id: int) -> descriptor_pb2.FileDescriptorProto:
        return self.file_proto


def test_serialize_with_file_descriptor_proto(
    nested_file_proto: descriptor_pb2.FileDescriptorProto,
    serialized: Callable[[descriptor_pb2.FileDescriptorProto], str],
    message_classes: Callable[[str], type[Message]],
) -> None:
    """リゾルバーが FileDescriptorProto を返しても完全名で照合できること。"""
    schema = Schema(id=42, schema=serialized(nested_file_proto), schema_type=SchemaType.PROTOBUF)
    serializer = ProtobufSerializer(ProtoTreeResolver(schema, nested_file_proto))

    data = serializer.serialize("events", message_classes(MESSAGE_G)(FieldAEG=1))

    assert data.startswith(HEADER_42_0_2_1)


def test_serialize_with_file_descriptor_proto_other_package(
    make_nested_file_proto: Callable[[str, str], descriptor_pb2.FileDescriptorProto],
    serialized: Callable[[descriptor_pb2.FileDescriptorProto], str],
    message_classes: Callable[[str], type[Message]],
) -> None:
    """同じ位置でもパッケージが違えば TYPE_UNDEFINED になること。"""
    other = make_nested_file_proto("other.proto", "other.package")
    schema = Schema(id=42, schema=serialized(other), schema_type=SchemaType.PROTOBUF)
    serializer = ProtobufSerializer(ProtoTreeResolver(schema, other))

    with pytest.raises(SerdeError) as exc_info:
        serializer.serialize("events", message_classes(MESSAGE_G)(FieldAEG=1))
    assert exc_info.value.code == SerdeErrorCodes.TYPE_UNDEFINED
