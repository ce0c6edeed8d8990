"""
경로 해석기 (Path Resolver)

dataclass 필드의 etcd 경로 어노테이션을 읽어 절대 경로 → 필드 디스크립터
목록을 만듭니다. 중첩 구조체, 리스트 요소, 맵 항목까지 재귀합니다.

사용법:
    ```python
    @dataclass
    class Database:
        host: str = etcd_field("/host", default="localhost")
        port: Int32 = etcd_field("/port", default=5432)

    @dataclass
    class AppConfig:
        name: str = etcd_field("/name", default="")
        database: Database = etcd_field("/database", default_factory=Database)
        tags: list[str] = etcd_field("/tags", default_factory=list)
        debug: bool = False  # 어노테이션 없음 → 무시

    resolver = PathResolver()
    for descriptor in resolver.resolve(AppConfig(), base="/app"):
        print(descriptor.path)  # /app/name, /app/database, /app/database/host ...
    ```
"""

import logging
from dataclasses import field, fields, is_dataclass
from types import UnionType
from typing import (
    Annotated,
    Any,
    Iterator,
    NamedTuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .errors import FieldNotRegisteredError, StructuralError
from .types import SCALAR_KINDS, FieldDescriptor, FieldKind, FieldRef, FieldType

logger = logging.getLogger(__name__)

# 필드 metadata에서 경로 세그먼트를 담는 키
ETCD_TAG = "etcd"


def etcd_field(path: str, **kwargs: Any) -> Any:
    """경로 어노테이션이 붙은 dataclass 필드 생성

    Args:
        path: 필드 경로 세그먼트 (예: "/field1")
        **kwargs: dataclasses.field 인자 (default, default_factory ...)
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[ETCD_TAG] = path
    return field(metadata=metadata, **kwargs)


def join_path(base: str, segment: Any) -> str:
    """부모 경로 + "/" + 세그먼트 (세그먼트 앞뒤 슬래시 정규화)"""
    segment = str(segment).strip("/")
    if not segment:
        return base or "/"
    return f"{base.rstrip('/')}/{segment}"


class TaggedField(NamedTuple):
    """경로 어노테이션이 있는 필드"""

    name: str
    segment: str
    field_type: FieldType


def _is_struct_type(tp: Any) -> bool:
    return isinstance(tp, type) and is_dataclass(tp)


def _scalar_kind(tp: Any) -> FieldKind | None:
    if get_origin(tp) is Annotated:
        base, *extras = get_args(tp)
        for extra in extras:
            if isinstance(extra, FieldKind) and extra in SCALAR_KINDS:
                return extra
        tp = base

    # bool은 int보다 먼저 검사
    if tp is bool:
        return FieldKind.BOOL
    if tp is int:
        return FieldKind.INT64
    if tp is str:
        return FieldKind.STRING
    return None


def _strip_optional(tp: Any) -> Any:
    # X | None, Optional[X] → X
    if get_origin(tp) in (Union, UnionType):
        args = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def analyze_type(tp: Any) -> FieldType | None:
    """타입 힌트 → FieldType (지원하지 않는 타입이면 None)"""
    tp = _strip_optional(tp)
    scalar = _scalar_kind(tp)
    if scalar is not None:
        return FieldType(scalar)

    if _is_struct_type(tp):
        return FieldType(FieldKind.STRUCT, struct_type=tp)

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is list and len(args) == 1:
        elem_kind = _scalar_kind(args[0])
        if elem_kind is not None:
            return FieldType(FieldKind.SLICE_OF_SCALAR, elem_kind=elem_kind)
        if _is_struct_type(args[0]):
            return FieldType(FieldKind.SLICE_OF_STRUCT, struct_type=args[0])

    if origin is dict and len(args) == 2:
        if _scalar_kind(args[0]) == FieldKind.STRING == _scalar_kind(args[1]):
            return FieldType(FieldKind.STRING_MAP)

    return None


class PathResolver:
    """dataclass 경로 어노테이션 해석기

    클래스별 어노테이션 분석 결과는 캐시됩니다.
    """

    def __init__(self) -> None:
        self._cache: dict[type, list[TaggedField]] = {}

    def check_structure(self, obj: Any) -> None:
        """바인딩 가능한 구조체인지 검사

        Raises:
            StructuralError: dataclass 인스턴스가 아니거나 frozen dataclass
        """
        if isinstance(obj, type) or not is_dataclass(obj):
            raise StructuralError(f"구조체가 아닌 값: {type(obj).__name__}")
        self._check_writable(type(obj))

    def _check_writable(self, cls: type) -> None:
        if cls.__dataclass_params__.frozen:
            raise StructuralError(f"frozen 구조체는 바인딩할 수 없음: {cls.__name__}")

    def tagged_fields(self, cls: type) -> list[TaggedField]:
        """클래스의 경로 어노테이션 필드 목록 (선언 순서)

        Raises:
            StructuralError: 어노테이션 필드의 타입을 지원하지 않음
        """
        if cls in self._cache:
            return self._cache[cls]

        hints = get_type_hints(cls, include_extras=True)
        tagged: list[TaggedField] = []

        for f in fields(cls):
            segment = f.metadata.get(ETCD_TAG)
            if segment is None:
                continue

            field_type = analyze_type(hints.get(f.name, f.type))
            if field_type is None:
                raise StructuralError(
                    f"지원하지 않는 필드 타입: {cls.__name__}.{f.name} ({hints.get(f.name, f.type)!r})"
                )
            if field_type.struct_type is not None:
                self._check_writable(field_type.struct_type)

            tagged.append(TaggedField(f.name, segment, field_type))

        logger.debug(f"[PathResolver] {cls.__name__}: {len(tagged)}개 필드")
        self._cache[cls] = tagged
        return tagged

    def struct_fields(self, obj: Any, base: str = "") -> list[FieldDescriptor]:
        """구조체의 직속 어노테이션 필드 디스크립터"""
        return [
            FieldDescriptor(
                path=join_path(base, tagged.segment),
                ref=FieldRef(obj, tagged.name),
                field_type=tagged.field_type,
            )
            for tagged in self.tagged_fields(type(obj))
        ]

    def resolve(self, obj: Any, base: str = "") -> list[FieldDescriptor]:
        """구조체에서 도달 가능한 모든 (경로, 디스크립터)

        리스트 요소는 순회 위치를 인덱스로, 맵 항목은 맵 키를 경로 접미사로 사용합니다.

        Raises:
            StructuralError: 구조체가 아님
        """
        self.check_structure(obj)
        return list(self._walk_struct(obj, base))

    def _walk_struct(self, obj: Any, base: str) -> Iterator[FieldDescriptor]:
        for descriptor in self.struct_fields(obj, base):
            yield descriptor
            yield from self._walk_children(descriptor)

    def _walk_children(self, descriptor: FieldDescriptor) -> Iterator[FieldDescriptor]:
        value = descriptor.ref.get()
        if value is None:
            return

        kind = descriptor.kind
        if kind == FieldKind.STRUCT:
            yield from self._walk_struct(value, descriptor.path)

        elif kind in (FieldKind.SLICE_OF_SCALAR, FieldKind.SLICE_OF_STRUCT):
            for index in range(len(value)):
                child = child_descriptor(descriptor, value, index)
                yield child
                if kind == FieldKind.SLICE_OF_STRUCT and value[index] is not None:
                    yield from self._walk_struct(value[index], child.path)

        elif kind == FieldKind.STRING_MAP:
            for key in value:
                yield child_descriptor(descriptor, value, key)


def child_descriptor(parent: FieldDescriptor, container: Any, key: Any) -> FieldDescriptor:
    """리스트 요소 / 맵 항목 디스크립터"""
    return FieldDescriptor(
        path=join_path(parent.path, key),
        ref=FieldRef(container, key),
        field_type=parent.field_type.element(),
    )


class PathRegistry:
    """절대 경로 → 필드 디스크립터 매핑

    세션(ConfigBinding) 단위로 유지되며 항목은 추가만 됩니다.
    같은 경로가 다시 등록되면 최신 참조로 갱신합니다.
    """

    def __init__(self) -> None:
        self._entries: dict[str, FieldDescriptor] = {}

    def add(self, descriptor: FieldDescriptor) -> None:
        self._entries[descriptor.path] = descriptor

    def get(self, path: str) -> FieldDescriptor | None:
        return self._entries.get(path)

    def find(self, owner: Any, key: Any) -> FieldDescriptor | None:
        """필드 참조(owner, key)로 디스크립터 조회"""
        for descriptor in self._entries.values():
            if descriptor.ref.refers_to(owner, key):
                return descriptor
        return None

    def require(self, owner: Any, key: Any) -> FieldDescriptor:
        """필드 참조로 디스크립터 조회 (없으면 예외)

        Raises:
            FieldNotRegisteredError: 등록되지 않은 필드
        """
        descriptor = self.find(owner, key)
        if descriptor is None:
            raise FieldNotRegisteredError(
                f"등록되지 않은 필드: {type(owner).__name__}[{key!r}]"
            )
        return descriptor

    def paths(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
