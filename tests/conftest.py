"""テスト共通フィクスチャ（Protobuf 記述子とインメモリレジストリ）"""

import base64
from collections.abc import Callable

import pytest
from google.protobuf import descriptor_pb2, message_factory
from google.protobuf.descriptor import FileDescriptor
from google.protobuf.descriptor_pool import DescriptorPool
from google.protobuf.message import Message
from k1s0_srclient.mock_client import InMemorySchemaRegistryClient
from k1s0_srclient.models import SchemaType

EVENTS_SCHEMA_ID = 42
EVENTS_SUBJECT = "events-value"

_INT32 = descriptor_pb2.FieldDescriptorProto.TYPE_INT32
_OPTIONAL = descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL


def _message(
    name: str, *fields: str, nested: tuple[descriptor_pb2.DescriptorProto, ...] = ()
) -> descriptor_pb2.DescriptorProto:
    msg = descriptor_pb2.DescriptorProto(name=name)
    for number, field_name in enumerate(fields, start=1):
        msg.field.add(name=field_name, number=number, type=_INT32, label=_OPTIONAL)
    msg.nested_type.extend(nested)
    return msg


def _nested_file(name: str, package: str) -> descriptor_pb2.FileDescriptorProto:
    # MessageA { B { C }, D, E { F, G } }, MessageH { I }
    fdp = descriptor_pb2.FileDescriptorProto(name=name, package=package, syntax="proto3")
    fdp.message_type.extend(
        [
            _message(
                "MessageA",
                "FieldA",
                "FieldA2",
                nested=(
                    _message("MessageB", nested=(_message("MessageC", "FieldABC"),)),
                    _message("MessageD", "FieldAD"),
                    _message(
                        "MessageE",
                        "FieldAE",
                        nested=(
                            _message("MessageF", "FieldAEF"),
                            _message("MessageG", "FieldAEG"),
                        ),
                    ),
                ),
            ),
            _message("MessageH", nested=(_message("MessageI", "FieldHI"),)),
        ]
    )
    return fdp


def _serialized(fdp: descriptor_pb2.FileDescriptorProto) -> str:
    return base64.b64encode(fdp.SerializeToString()).decode("ascii")


@pytest.fixture
def nested_file_proto() -> descriptor_pb2.FileDescriptorProto:
    return _nested_file("test/nested.proto", "test.package")


@pytest.fixture
def make_nested_file_proto() -> Callable[[str, str], descriptor_pb2.FileDescriptorProto]:
    return _nested_file


@pytest.fixture
def serialized() -> Callable[[descriptor_pb2.FileDescriptorProto], str]:
    return _serialized


@pytest.fixture
def nested_pool(nested_file_proto: descriptor_pb2.FileDescriptorProto) -> DescriptorPool:
    pool = DescriptorPool()
    pool.AddSerializedFile(nested_file_proto.SerializeToString())
    return pool


@pytest.fixture
def nested_file(
    nested_pool: DescriptorPool, nested_file_proto: descriptor_pb2.FileDescriptorProto
) -> FileDescriptor:
    return nested_pool.FindFileByName(nested_file_proto.name)


@pytest.fixture
def message_classes(nested_pool: DescriptorPool) -> Callable[[str], type[Message]]:
    """完全名からメッセージクラスを返す関数。"""

    def find(full_name: str) -> type[Message]:
        return message_factory.GetMessageClass(nested_pool.FindMessageTypeByName(full_name))

    return find


@pytest.fixture
def registry(
    nested_file_proto: descriptor_pb2.FileDescriptorProto,
) -> InMemorySchemaRegistryClient:
    client = InMemorySchemaRegistryClient()
    client.set_schema(
        EVENTS_SCHEMA_ID,
        EVENTS_SUBJECT,
        _serialized(nested_file_proto),
        SchemaType.PROTOBUF,
    )
    return client
