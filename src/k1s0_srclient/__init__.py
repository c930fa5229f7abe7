"""k1s0 srclient library."""

from .cache import SchemaCache
from .client import SchemaRegistryClient
from .config import SchemaRegistryConfig, load_config
from .descriptors import (
    SERIALIZED_FORMAT,
    ProtoSchemaLoader,
    parse_serialized_schema,
    qualified_name,
    resolve_descriptor,
)
from .deserializer import (
    MessageTypeRegistry,
    ProtobufDeserializer,
    ProtobufResolver,
    SchemaRegistryProtobufResolver,
    unmarshal_message,
)
from .exceptions import (
    SchemaRegistryError,
    SchemaRegistryErrorCodes,
    SerdeError,
    SerdeErrorCodes,
)
from .header_cache import HeaderCache
from .http_client import HttpSchemaRegistryClient
from .logger import new_logger
from .mock_client import InMemorySchemaRegistryClient
from .models import (
    CompatibilityLevel,
    Reference,
    SchemaType,
    SerializationType,
    SubjectVersion,
)
from .schema import AvroCodec, Schema
from .serializer import (
    ProtobufSerializer,
    SchemaResolver,
    TopicNameSchemaResolver,
    marshal_message,
)
from .transport import PreRequestHook, RegistryTransport, RequestLimiter
from .wire import compute_index_path, decode_header, encode_header

__all__ = [
    "SchemaRegistryClient",
    "HttpSchemaRegistryClient",
    "InMemorySchemaRegistryClient",
    "RegistryTransport",
    "RequestLimiter",
    "PreRequestHook",
    "SchemaCache",
    "SchemaRegistryConfig",
    "load_config",
    "new_logger",
    "Schema",
    "AvroCodec",
    "SchemaType",
    "CompatibilityLevel",
    "SerializationType",
    "Reference",
    "SubjectVersion",
    "SchemaRegistryError",
    "SchemaRegistryErrorCodes",
    "SerdeError",
    "SerdeErrorCodes",
    "compute_index_path",
    "encode_header",
    "decode_header",
    "resolve_descriptor",
    "qualified_name",
    "parse_serialized_schema",
    "ProtoSchemaLoader",
    "SERIALIZED_FORMAT",
    "HeaderCache",
    "SchemaResolver",
    "TopicNameSchemaResolver",
    "ProtobufSerializer",
    "marshal_message",
    "ProtobufResolver",
    "MessageTypeRegistry",
    "SchemaRegistryProtobufResolver",
    "ProtobufDeserializer",
    "unmarshal_message",
]
