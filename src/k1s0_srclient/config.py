"""Schema Registry 接続設定と設定ファイル読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import SchemaRegistryError, SchemaRegistryErrorCodes

CONFIG_SECTION = "schema_registry"


class SchemaRegistryConfig(BaseModel):
    """Schema Registry 接続設定。"""

    url: str
    username: str = ""
    password: str = ""
    bearer_token: str = ""
    timeout_seconds: float = Field(default=5.0, gt=0)
    max_concurrent_requests: int = Field(default=16, ge=1)
    caching_enabled: bool = True
    codec_creation_enabled: bool = False
    schema_format: str | None = None

    @model_validator(mode="after")
    def _check_credentials(self) -> SchemaRegistryConfig:
        if self.bearer_token and (self.username or self.password):
            raise ValueError("basic credentials and bearer_token are mutually exclusive")
        return self

    @property
    def basic_auth(self) -> tuple[str, str] | None:
        """username と password が両方ある場合のみ Basic 認証を返す。"""
        if self.username and self.password:
            return (self.username, self.password)
        return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data: Any = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.PARSE_YAML,
            message=f"Config file must contain a mapping: {path}",
        )
    return data


def _section(path: Path) -> dict[str, Any]:
    data = _read_yaml(path)
    section = data.get(CONFIG_SECTION, data)
    if not isinstance(section, dict):
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.PARSE_YAML,
            message=f"'{CONFIG_SECTION}' must be a mapping: {path}",
        )
    return section


def load_config(base_path: Path, env_path: Path | None = None) -> SchemaRegistryConfig:
    """設定ファイルを読み込んで SchemaRegistryConfig を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合は項目単位で上書き。

    各ファイルとも `schema_registry` セクションがあればそれを、なければ文書全体を
    設定とみなす。セクション外の項目は読まない。
    """
    values = _section(base_path)
    if env_path is not None and env_path.exists():
        values = {**values, **_section(env_path)}
    try:
        return SchemaRegistryConfig.model_validate(values)
    except ValidationError as e:
        raise SchemaRegistryError(
            code=SchemaRegistryErrorCodes.VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
