"""Protobuf ワイヤーヘッダーのエンコード・デコード

ヘッダーは次の順で並ぶ:

- マジックバイト 0x00
- スキーマ ID (4 バイト big endian)
- メッセージインデックス配列の要素数 (zigzag varint)
- 各インデックス (zigzag varint)
"""

from __future__ import annotations

import struct
from collections import deque
from collections.abc import Iterable, Sequence

from google.protobuf.descriptor import Descriptor

from .exceptions import SerdeError, SerdeErrorCodes

MAGIC_BYTE = 0
PREFIX_SIZE = 5
MAX_VARINT_LEN = 10
MAX_SCHEMA_ID = 0xFFFFFFFF

_SCHEMA_ID = struct.Struct(">I")


def zigzag_encode(value: int) -> int:
    return (value << 1) ^ (value >> 63)


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def write_varint(buf: bytearray, value: int) -> None:
    """value を zigzag 変換して buf に追記する。"""
    value = zigzag_encode(value) & 0xFFFFFFFFFFFFFFFF
    while value & ~0x7F:
        buf.append((value & 0x7F) | 0x80)
        value >>= 7
    buf.append(value)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """offset から zigzag varint を 1 つ読み、(値, 読んだバイト数) を返す。

    途中で入力が尽きた場合や 64 ビットを超える場合は ValueError。
    """
    result = 0
    shift = 0
    for i in range(MAX_VARINT_LEN):
        pos = offset + i
        if pos >= len(data):
            raise ValueError("varint is truncated")
        b = data[pos]
        if i == MAX_VARINT_LEN - 1 and b > 1:
            raise ValueError("varint overflows a 64-bit integer")
        result |= (b & 0x7F) << shift
        if b < 0x80:
            return zigzag_decode(result), i + 1
        shift += 7
    raise ValueError("varint overflows a 64-bit integer")


def compute_index_path(descriptor: Descriptor) -> list[int]:
    """メッセージ記述子のファイル内での位置をインデックスパスとして返す。

    先頭要素がトップレベルメッセージの位置になる。
    """
    path: deque[int] = deque()
    current = descriptor
    while current.containing_type is not None:
        parent = current.containing_type
        path.appendleft(_position(parent.nested_types, current))
        current = parent
    path.appendleft(_position(current.file.message_types_by_name.values(), current))
    return list(path)


def _position(siblings: Iterable[Descriptor], target: Descriptor) -> int:
    for index, node in enumerate(siblings):
        if node.full_name == target.full_name:
            return index
    raise ValueError(f"message {target.full_name} not found among its siblings")


def encode_header(schema_id: int, path: Sequence[int]) -> bytes:
    """スキーマ ID とインデックスパスからヘッダーを生成する。"""
    if schema_id < 0 or schema_id > MAX_SCHEMA_ID:
        raise ValueError(f"schema id {schema_id} does not fit in 32 bits")
    if any(index < 0 for index in path):
        raise ValueError(f"message index path {list(path)} contains a negative index")
    buf = bytearray()
    buf.append(MAGIC_BYTE)
    buf += _SCHEMA_ID.pack(schema_id)
    write_varint(buf, len(path))
    for index in path:
        write_varint(buf, index)
    return bytes(buf)


def decode_header(data: bytes) -> tuple[int, int, list[int]]:
    """ヘッダーを解析し、(読んだバイト数, スキーマ ID, インデックスパス) を返す。

    要素数 0 の配列はトップレベル先頭メッセージの省略形として [0] を返す。
    """
    if len(data) < PREFIX_SIZE:
        raise SerdeError(
            code=SerdeErrorCodes.MALFORMED_HEADER,
            message=f"header needs at least {PREFIX_SIZE} bytes, got {len(data)}",
        )
    if data[0] != MAGIC_BYTE:
        raise SerdeError(
            code=SerdeErrorCodes.INVALID_PROTOCOL_VERSION,
            message=f"unknown wire protocol version {data[0]}",
        )
    (schema_id,) = _SCHEMA_ID.unpack_from(data, 1)

    try:
        count, read = read_varint(data, PREFIX_SIZE)
    except ValueError as e:
        raise SerdeError(
            code=SerdeErrorCodes.MALFORMED_INDEX_ARRAY,
            message=f"unable to decode message index array length: {e}",
            cause=e,
        ) from e
    if count < 0:
        raise SerdeError(
            code=SerdeErrorCodes.MALFORMED_INDEX_ARRAY,
            message=f"negative message index array length {count}",
        )
    offset = PREFIX_SIZE + read
    if count == 0:
        return offset, schema_id, [0]

    path: list[int] = []
    for _ in range(count):
        try:
            index, read = read_varint(data, offset)
        except ValueError as e:
            raise SerdeError(
                code=SerdeErrorCodes.MALFORMED_INDEX_VALUE,
                message=f"unable to decode message index {len(path)}: {e}",
                cause=e,
            ) from e
        offset += read
        path.append(index)
    return offset, schema_id, path
