"""
공용 타입 정의

필드 종류 Enum, 필드 참조/디스크립터 Dataclass, etcd 노드 Pydantic 모델.
"""

from dataclasses import dataclass, is_dataclass
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class FieldKind(str, Enum):
    """바인딩 필드 종류"""

    STRING = "string"
    INT32 = "int32"
    INT64 = "int64"
    BOOL = "bool"
    STRUCT = "struct"
    SLICE_OF_SCALAR = "slice_of_scalar"
    SLICE_OF_STRUCT = "slice_of_struct"
    STRING_MAP = "string_map"


SCALAR_KINDS = frozenset(
    {FieldKind.STRING, FieldKind.INT32, FieldKind.INT64, FieldKind.BOOL}
)

# 정수 필드 폭 지정용 어노테이션 (일반 int는 Int64로 취급)
Int32 = Annotated[int, FieldKind.INT32]
Int64 = Annotated[int, FieldKind.INT64]


@dataclass(frozen=True)
class FieldType:
    """필드 타입 정보

    Attributes:
        kind: 필드 종류
        elem_kind: SLICE_OF_SCALAR 요소의 스칼라 종류
        struct_type: STRUCT / SLICE_OF_STRUCT의 dataclass 타입
    """

    kind: FieldKind
    elem_kind: FieldKind | None = None
    struct_type: type | None = None

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    def element(self) -> "FieldType":
        """슬라이스/맵 요소의 타입"""
        if self.kind == FieldKind.SLICE_OF_SCALAR:
            return FieldType(self.elem_kind)
        if self.kind == FieldKind.SLICE_OF_STRUCT:
            return FieldType(FieldKind.STRUCT, struct_type=self.struct_type)
        if self.kind == FieldKind.STRING_MAP:
            return FieldType(FieldKind.STRING)
        raise ValueError(f"요소 타입이 없는 필드 종류: {self.kind.value}")


@dataclass(frozen=True, eq=False)
class FieldRef:
    """필드 저장 위치 참조

    container의 key 위치를 가리킵니다.
    - dataclass 인스턴스: 속성 이름
    - list: 인덱스
    - dict: 맵 키
    """

    container: Any
    key: Any

    @property
    def is_attribute(self) -> bool:
        return is_dataclass(self.container) and not isinstance(self.container, type)

    def get(self) -> Any:
        if self.is_attribute:
            return getattr(self.container, self.key)
        return self.container[self.key]

    def set(self, value: Any) -> None:
        if self.is_attribute:
            setattr(self.container, self.key, value)
        else:
            self.container[self.key] = value

    def refers_to(self, owner: Any, key: Any) -> bool:
        return self.container is owner and self.key == key


@dataclass
class FieldDescriptor:
    """절대 경로, 필드 참조, 필드 타입"""

    path: str
    ref: FieldRef
    field_type: FieldType

    @property
    def kind(self) -> FieldKind:
        return self.field_type.kind


class StoreNode(BaseModel):
    """etcd 노드 (리프 또는 디렉토리)

    etcd v2 JSON 필드명(dir, nodes, modifiedIndex ...)을 alias로 매핑합니다.
    """

    model_config = ConfigDict(populate_by_name=True)

    key: str = ""
    value: str = ""
    is_dir: bool = Field(default=False, alias="dir")
    ttl: int = 0
    nodes: list["StoreNode"] = Field(default_factory=list)
    modified_index: int = Field(default=0, alias="modifiedIndex")
    created_index: int = Field(default=0, alias="createdIndex")

    @property
    def name(self) -> str:
        """키의 마지막 경로 세그먼트"""
        return self.key.rstrip("/").rsplit("/", 1)[-1]


class StoreResponse(BaseModel):
    """etcd 응답

    etcd_index는 본문이 아닌 X-Etcd-Index 헤더에서 채워집니다.
    """

    model_config = ConfigDict(populate_by_name=True)

    action: str = ""
    node: StoreNode | None = None
    prev_node: StoreNode | None = Field(default=None, alias="prevNode")
    etcd_index: int = 0
