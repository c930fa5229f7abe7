"""InMemorySchemaRegistryClient のテスト"""

import pytest
from k1s0_srclient.exceptions import SchemaRegistryError, SchemaRegistryErrorCodes
from k1s0_srclient.mock_client import InMemorySchemaRegistryClient
from k1s0_srclient.models import CompatibilityLevel, SchemaType, SubjectVersion

SCHEMA_V1 = '{"type":"record","name":"E","fields":[{"name":"a","type":"int"}]}'
SCHEMA_V2 = '{"type":"record","name":"E","fields":[{"name":"b","type":"int"}]}'


def test_create_assigns_ids_and_versions() -> None:
    """登録ごとに ID と版番号を振ること。"""
    client = InMemorySchemaRegistryClient()
    first = client.create_schema("test-value", SCHEMA_V1)
    second = client.create_schema("test-value", SCHEMA_V2)
    other = client.create_schema("other-value", SCHEMA_V1)

    assert (first.id, first.version) == (1, 1)
    assert (second.id, second.version) == (2, 2)
    assert (other.id, other.version) == (3, 1)
    assert client.get_schema_versions("test-value") == [1, 2]


def test_duplicate_schema_is_rejected() -> None:
    """同じサブジェクトに同じ本文は登録できないこと。"""
    client = InMemorySchemaRegistryClient()
    client.create_schema("test-value", SCHEMA_V1)
    with pytest.raises(SchemaRegistryError) as exc_info:
        client.create_schema("test-value", SCHEMA_V1)
    assert exc_info.value.code == SchemaRegistryErrorCodes.SCHEMA_ALREADY_REGISTERED


def test_line_breaks_normalized_for_json() -> None:
    """JSON/Avro の改行は空白に置き換えること。"""
    client = InMemorySchemaRegistryClient()
    schema = client.create_schema("test-value", '{\n"type":\r\n"object"}', SchemaType.JSON)
    assert schema.schema == '{ "type": "object"}'


def test_set_schema_with_explicit_id_and_version() -> None:
    """ID と版番号を指定して登録でき、以後の採番は続きから行うこと。"""
    client = InMemorySchemaRegistryClient()
    fixed = client.set_schema(40, "test-value", SCHEMA_V1, SchemaType.AVRO, version=5)
    assert (fixed.id, fixed.version) == (40, 5)

    following = client.create_schema("test-value", SCHEMA_V2)
    assert (following.id, following.version) == (41, 6)


def test_get_latest_and_by_version() -> None:
    client = InMemorySchemaRegistryClient()
    client.create_schema("test-value", SCHEMA_V1)
    v2 = client.create_schema("test-value", SCHEMA_V2)

    assert client.get_latest_schema("test-value") is v2
    assert client.get_schema_by_version("test-value", 2) is v2
    assert client.get_schema(v2.id) is v2


def test_missing_lookups() -> None:
    """存在しない ID・サブジェクト・版のエラーコード。"""
    client = InMemorySchemaRegistryClient()
    client.create_schema("test-value", SCHEMA_V1)

    cases = [
        (lambda: client.get_schema(99), SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND),
        (lambda: client.get_latest_schema("nope"), SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND),
        (
            lambda: client.get_schema_by_version("nope", 1),
            SchemaRegistryErrorCodes.SUBJECT_NOT_FOUND,
        ),
        (
            lambda: client.get_schema_by_version("test-value", 9),
            SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND,
        ),
    ]
    for call, code in cases:
        with pytest.raises(SchemaRegistryError) as exc_info:
            call()
        assert exc_info.value.code == code


def test_delete_subject_and_version() -> None:
    client = InMemorySchemaRegistryClient()
    client.create_schema("test-value", SCHEMA_V1)
    client.create_schema("test-value", SCHEMA_V2)
    client.create_schema("other-value", SCHEMA_V1)

    client.delete_subject_by_version("test-value", 2)
    assert client.get_schema_versions("test-value") == [1]

    with pytest.raises(SchemaRegistryError) as exc_info:
        client.delete_subject_by_version("test-value", 2)
    assert exc_info.value.code == SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND

    client.delete_subject("other-value")
    assert client.get_subjects() == ["test-value"]


def test_get_subject_versions_by_id() -> None:
    client = InMemorySchemaRegistryClient()
    created = client.create_schema("test-value", SCHEMA_V1)
    assert client.get_subject_versions_by_id(created.id) == [SubjectVersion("test-value", 1)]


def test_unsupported_operations() -> None:
    """互換性と lookup は NOT_IMPLEMENTED になること。"""
    client = InMemorySchemaRegistryClient()
    calls = [
        lambda: client.lookup_schema("s", SCHEMA_V1),
        lambda: client.is_schema_compatible("s", SCHEMA_V1),
        lambda: client.get_global_compatibility_level(),
        lambda: client.get_compatibility_level("s"),
        lambda: client.change_subject_compatibility_level("s", CompatibilityLevel.FULL),
        lambda: client.delete_subject_compatibility_level("s"),
        lambda: client.get_subjects(include_deleted=True),
    ]
    for call in calls:
        with pytest.raises(SchemaRegistryError) as exc_info:
            call()
        assert exc_info.value.code == SchemaRegistryErrorCodes.NOT_IMPLEMENTED


def test_reset_cache_keeps_schemas() -> None:
    client = InMemorySchemaRegistryClient()
    created = client.create_schema("test-value", SCHEMA_V1)
    client.reset_cache()
    assert client.get_schema(created.id) is created


async def test_async_variants() -> None:
    client = InMemorySchemaRegistryClient()
    created = await client.create_schema_async("test-value", SCHEMA_V1)
    assert await client.get_schema_async(created.id) is created
    assert await client.get_latest_schema_async("test-value") is created
    assert await client.get_schema_by_version_async("test-value", 1) is created
