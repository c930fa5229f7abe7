"""Protobuf 記述子の解決とレジストリからのスキーマ読み込み"""

from __future__ import annotations

import base64
import binascii
import threading
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Union

import structlog
from google.protobuf import (
    any_pb2,
    api_pb2,
    descriptor_pb2,
    duration_pb2,
    empty_pb2,
    field_mask_pb2,
    source_context_pb2,
    struct_pb2,
    timestamp_pb2,
    type_pb2,
    wrappers_pb2,
)
from google.protobuf.descriptor import Descriptor, FileDescriptor
from google.protobuf.descriptor_pool import DescriptorPool
from google.protobuf.message import DecodeError

from .exceptions import SerdeError, SerdeErrorCodes
from .models import Reference, SchemaType

if TYPE_CHECKING:
    from .client import SchemaRegistryClient
    from .schema import Schema

logger = structlog.get_logger(__name__)

DescriptorNode = Union[
    FileDescriptor,
    Descriptor,
    descriptor_pb2.FileDescriptorProto,
    descriptor_pb2.DescriptorProto,
]
SchemaParser = Callable[[str, str], descriptor_pb2.FileDescriptorProto]
SchemaImporter = Callable[[Reference], "Schema"]

WELL_KNOWN_PREFIX = "google/protobuf/"
SERIALIZED_FORMAT = "serialized"

# api は source_context と type に依存するため後に置く
_WELL_KNOWN_FILES = (
    any_pb2,
    source_context_pb2,
    type_pb2,
    api_pb2,
    descriptor_pb2,
    duration_pb2,
    empty_pb2,
    field_mask_pb2,
    struct_pb2,
    timestamp_pb2,
    wrappers_pb2,
)


def parse_serialized_schema(name: str, text: str) -> descriptor_pb2.FileDescriptorProto:
    """レジストリのシリアライズ形式 (base64 の FileDescriptorProto) を解析する。

    解析結果のファイル名は name で上書きする。
    """
    try:
        raw = base64.b64decode(text.encode("ascii"), validate=True)
        fdp = descriptor_pb2.FileDescriptorProto()
        fdp.ParseFromString(raw)
    except (binascii.Error, UnicodeEncodeError, DecodeError) as e:
        raise SerdeError(
            code=SerdeErrorCodes.INVALID_SCHEMA,
            message=f"schema {name} is not a serialized FileDescriptorProto: {e}",
            cause=e,
        ) from e
    fdp.name = name
    return fdp


def resolve_descriptor(path: Sequence[int], node: DescriptorNode) -> DescriptorNode:
    """インデックスパスが指すメッセージ記述子を返す。

    ファイル階層ではトップレベルのメッセージ、メッセージ階層では入れ子の
    メッセージを 1 要素ずつたどる。パスが尽きた時点のノードが答え。
    """
    if not path:
        if isinstance(node, (Descriptor, descriptor_pb2.DescriptorProto)):
            return node
        raise SerdeError(
            code=SerdeErrorCodes.TYPE_UNDEFINED,
            message=f"index path ends at a non-message node {type(node).__name__}",
        )
    children = _children(node)
    index = path[0]
    if index < 0 or index >= len(children):
        raise SerdeError(
            code=SerdeErrorCodes.INDEX_OUT_OF_RANGE,
            message=f"message index {index} is out of range (siblings: {len(children)})",
        )
    return resolve_descriptor(path[1:], children[index])


def qualified_name(path: Sequence[int], node: DescriptorNode) -> str:
    """インデックスパスが指すメッセージの完全名を返す。

    DescriptorProto はパッケージや親の名前を持たないため、たどった経路から組み立てる。
    """
    resolved = resolve_descriptor(path, node)
    if isinstance(resolved, Descriptor):
        return resolved.full_name
    names: list[str] = []
    current = node
    for index in path:
        current = _children(current)[index]
        names.append(current.name)
    if isinstance(node, descriptor_pb2.FileDescriptorProto) and node.package:
        names.insert(0, node.package)
    return ".".join(names)


def _children(node: DescriptorNode) -> Sequence[DescriptorNode]:
    if isinstance(node, FileDescriptor):
        return list(node.message_types_by_name.values())
    if isinstance(node, Descriptor):
        return node.nested_types
    if isinstance(node, descriptor_pb2.FileDescriptorProto):
        return node.message_type
    if isinstance(node, descriptor_pb2.DescriptorProto):
        return node.nested_type
    raise SerdeError(
        code=SerdeErrorCodes.TYPE_UNDEFINED,
        message=f"cannot descend into {type(node).__name__}",
    )


def _is_well_known(name: str) -> bool:
    return name.startswith(WELL_KNOWN_PREFIX)


def _new_pool() -> DescriptorPool:
    pool = DescriptorPool()
    for module in _WELL_KNOWN_FILES:
        pool.AddSerializedFile(module.DESCRIPTOR.serialized_pb)
    return pool


class ProtoSchemaLoader:
    """スキーマ ID から解析済みの FileDescriptor を返す。

    スキーマ本文は fmt (既定は "serialized") を指定してクライアントから取得し、
    parser で解析する。参照先スキーマは importer 経由で再帰的に取得する。ID ごとに独立した
    DescriptorPool を使うため、同名のメッセージを持つ別バージョンも共存できる。
    結果は ID ごとに無期限でキャッシュする。
    """

    def __init__(
        self,
        client: SchemaRegistryClient,
        parser: SchemaParser = parse_serialized_schema,
        importer: SchemaImporter | None = None,
        fmt: str | None = SERIALIZED_FORMAT,
    ) -> None:
        self._client = client
        self._parser = parser
        self._fmt = fmt
        self._importer = importer or self._import_from_registry
        self._lock = threading.Lock()
        self._cache: dict[int, FileDescriptor] = {}

    def load(self, schema_id: int) -> FileDescriptor:
        with self._lock:
            cached = self._cache.get(schema_id)
        if cached is not None:
            return cached
        if schema_id == 0:
            raise SerdeError(
                code=SerdeErrorCodes.NON_PROTOBUF_SCHEMA,
                message="schema id 0 does not identify a registered schema",
            )
        schema = self._client.get_schema(schema_id, fmt=self._fmt)
        _require_protobuf(schema, str(schema_id))

        pool = _new_pool()
        main = self._parser(str(schema_id), schema.schema)
        self._add_dependencies(pool, main, schema.references, set())
        fd = _add_file(pool, main)
        logger.debug("protobuf schema loaded", schema_id=schema_id, package=fd.package)

        with self._lock:
            self._cache[schema_id] = fd
        return fd

    def _add_dependencies(
        self,
        pool: DescriptorPool,
        fdp: descriptor_pb2.FileDescriptorProto,
        references: Sequence[Reference],
        visited: set[str],
    ) -> None:
        by_name = {ref.name: ref for ref in references}
        for dependency in fdp.dependency:
            if _is_well_known(dependency) or dependency in visited:
                continue
            visited.add(dependency)
            # 参照情報のない import はファイル名をサブジェクトとして最新版を使う
            ref = by_name.get(dependency) or Reference(
                name=dependency, subject=dependency, version=-1
            )
            imported = self._importer(ref)
            _require_protobuf(imported, dependency)
            dep_fdp = self._parser(dependency, imported.schema)
            self._add_dependencies(pool, dep_fdp, imported.references, visited)
            _add_file(pool, dep_fdp)

    def _import_from_registry(self, ref: Reference) -> Schema:
        if ref.version > 0:
            return self._client.get_schema_by_version(ref.subject, ref.version, fmt=self._fmt)
        return self._client.get_latest_schema(ref.subject, fmt=self._fmt)


def _require_protobuf(schema: Schema, name: str) -> None:
    if schema.schema_type is not SchemaType.PROTOBUF:
        raise SerdeError(
            code=SerdeErrorCodes.NON_PROTOBUF_SCHEMA,
            message=f"schema {name} is {schema.schema_type.value}, not PROTOBUF",
        )


def _add_file(pool: DescriptorPool, fdp: descriptor_pb2.FileDescriptorProto) -> FileDescriptor:
    try:
        pool.AddSerializedFile(fdp.SerializeToString())
        return pool.FindFileByName(fdp.name)
    except (TypeError, KeyError) as e:
        raise SerdeError(
            code=SerdeErrorCodes.INVALID_SCHEMA,
            message=f"failed to build descriptor for {fdp.name}: {e}",
            cause=e,
        ) from e
