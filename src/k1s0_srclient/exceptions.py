"""srclient ライブラリの例外型定義"""

from __future__ import annotations


class SchemaRegistryError(Exception):
    """Schema Registry 操作のエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
        status_code: int | None = None,
        error_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.error_code = error_code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class SchemaRegistryErrorCodes:
    """SchemaRegistryError のエラーコード定数。"""

    SCHEMA_NOT_FOUND: str = "SCHEMA_NOT_FOUND"
    SUBJECT_NOT_FOUND: str = "SUBJECT_NOT_FOUND"
    HTTP_ERROR: str = "HTTP_ERROR"
    TIMEOUT: str = "TIMEOUT_ERROR"
    INVALID_RESPONSE: str = "INVALID_RESPONSE"
    INVALID_SCHEMA_TYPE: str = "INVALID_SCHEMA_TYPE"
    SCHEMA_ALREADY_REGISTERED: str = "SCHEMA_ALREADY_REGISTERED"
    NOT_IMPLEMENTED: str = "NOT_IMPLEMENTED"
    CODEC_ERROR: str = "CODEC_ERROR"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
    PRE_REQUEST: str = "PRE_REQUEST_ERROR"


class SerdeError(Exception):
    """Protobuf ワイヤーフォーマット処理のエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class SerdeErrorCodes:
    """SerdeError のエラーコード定数。"""

    INVALID_PROTOCOL_VERSION: str = "INVALID_PROTOCOL_VERSION"
    MALFORMED_HEADER: str = "MALFORMED_HEADER"
    MALFORMED_INDEX_ARRAY: str = "MALFORMED_INDEX_ARRAY"
    MALFORMED_INDEX_VALUE: str = "MALFORMED_INDEX_VALUE"
    INDEX_OUT_OF_RANGE: str = "INDEX_OUT_OF_RANGE"
    TYPE_UNDEFINED: str = "TYPE_UNDEFINED"
    MESSAGE_TYPE_NOT_REGISTERED: str = "MESSAGE_TYPE_NOT_REGISTERED"
    NOT_A_MESSAGE: str = "NOT_A_MESSAGE"
    NOTHING_TO_DESERIALIZE: str = "NOTHING_TO_DESERIALIZE"
    NON_PROTOBUF_SCHEMA: str = "NON_PROTOBUF_SCHEMA"
    INVALID_SCHEMA: str = "INVALID_SCHEMA"
    NOT_CONFIGURED: str = "NOT_CONFIGURED"
    SERIALIZATION_ERROR: str = "SERIALIZATION_ERROR"
