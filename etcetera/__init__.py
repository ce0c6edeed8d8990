"""
etcetera 공통 라이브러리

dataclass 설정 객체와 etcd 계층형 키-값 저장소 간 동기화 (Save / Load / Watch).
"""

from .binding import ConfigBinding
from .client import EtcdClient
from .config import ConfigurationError, EtcdSettings
from .errors import (
    ErrorCategory,
    ErrorClassifier,
    ErrorCode,
    EtcdError,
    EtceteraError,
    FieldNotRegisteredError,
    NilDestinationError,
    StoreOperationError,
    StructuralError,
    TypeMismatchError,
)
from .marshaler import Marshaler
from .resolver import PathRegistry, PathResolver, etcd_field, join_path
from .store import StoreClient
from .types import (
    FieldDescriptor,
    FieldKind,
    FieldRef,
    FieldType,
    Int32,
    Int64,
    StoreNode,
    StoreResponse,
)
from .unmarshaler import Unmarshaler
from .watcher import Watcher, WatchHandle

__all__ = [
    # Binding
    "ConfigBinding",
    # Client
    "EtcdClient",
    "StoreClient",
    # Config
    "ConfigurationError",
    "EtcdSettings",
    # Errors
    "ErrorCategory",
    "ErrorClassifier",
    "ErrorCode",
    "EtcdError",
    "EtceteraError",
    "FieldNotRegisteredError",
    "NilDestinationError",
    "StoreOperationError",
    "StructuralError",
    "TypeMismatchError",
    # Traversal
    "Marshaler",
    "PathRegistry",
    "PathResolver",
    "Unmarshaler",
    "Watcher",
    "WatchHandle",
    "etcd_field",
    "join_path",
    # Types
    "FieldDescriptor",
    "FieldKind",
    "FieldRef",
    "FieldType",
    "Int32",
    "Int64",
    "StoreNode",
    "StoreResponse",
]
