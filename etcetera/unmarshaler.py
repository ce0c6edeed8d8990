"""
언마샬러 (Load)

마샬러와 같은 순서로 순회하며 etcd 값을 구조체 필드에 채웁니다.

- 스칼라: get 후 필드 타입으로 파싱 (실패 시 TypeMismatchError)
- 리스트: 디렉토리 재귀 조회, 자식 수만큼 내용 교체 (숫자 접미사 순서)
- 문자열 맵: 미리 할당된 dict에만 채움 (None이면 NilDestinationError)

첫 에러에서 즉시 중단하며 이미 기록된 필드는 되돌리지 않습니다.
"""

import logging
from typing import Any

from .errors import NilDestinationError, StoreOperationError, StructuralError, TypeMismatchError
from .resolver import PathResolver
from .scalars import parse_decimal, parse_scalar
from .store import StoreClient
from .types import FieldDescriptor, FieldKind, StoreNode

logger = logging.getLogger(__name__)


def ordered_children(node: StoreNode, path: str) -> list[StoreNode]:
    """디렉토리 자식을 키의 숫자 접미사 순으로 정렬

    Raises:
        TypeMismatchError: 숫자가 아닌 접미사
    """

    def position(child: StoreNode) -> int:
        try:
            return parse_decimal(child.name)
        except ValueError as e:
            raise TypeMismatchError(f"리스트 요소 키가 숫자가 아님: {child.key}", path) from e

    return sorted(node.nodes, key=position)


class Unmarshaler:
    """etcd → 구조체 로더"""

    def __init__(self, store: StoreClient, resolver: PathResolver):
        self.store = store
        self.resolver = resolver

    async def load(self, obj: Any, base: str = "") -> None:
        """구조체 전체 로드

        Raises:
            StructuralError: 구조체가 아님
            TypeMismatchError: 파싱 실패 또는 리프/디렉토리 불일치
            NilDestinationError: 맵/중첩 구조체 대상이 None
            StoreOperationError: 저장소 호출 실패 (키 없음 포함)
        """
        self.resolver.check_structure(obj)
        await self._load_struct(obj, base)

    async def _load_struct(self, obj: Any, base: str) -> None:
        for descriptor in self.resolver.struct_fields(obj, base):
            await self.load_field(descriptor)

    async def load_field(self, descriptor: FieldDescriptor) -> None:
        """필드 하나 로드 (컨테이너면 하위까지)"""
        path = descriptor.path
        kind = descriptor.kind
        field_type = descriptor.field_type

        if field_type.is_scalar:
            node = await self._get(path)
            if node.is_dir:
                raise TypeMismatchError("디렉토리를 스칼라로 읽을 수 없음", path)
            descriptor.ref.set(parse_scalar(kind, node.value, path))

        elif kind == FieldKind.STRUCT:
            value = descriptor.ref.get()
            if value is None:
                raise NilDestinationError("구조체 대상이 None", path)
            await self._load_struct(value, path)

        elif kind == FieldKind.SLICE_OF_SCALAR:
            node = await self._get_dir(path)
            items = []
            for child in ordered_children(node, path):
                if child.is_dir:
                    raise TypeMismatchError("리스트 요소가 디렉토리", child.key)
                items.append(parse_scalar(field_type.elem_kind, child.value, child.key))
            self._replace_items(descriptor, items)

        elif kind == FieldKind.SLICE_OF_STRUCT:
            node = await self._get_dir(path)
            items = []
            for child in ordered_children(node, path):
                item = self._new_struct(field_type.struct_type, child.key)
                await self._load_struct(item, child.key)
                items.append(item)
            self._replace_items(descriptor, items)

        elif kind == FieldKind.STRING_MAP:
            value = descriptor.ref.get()
            if value is None:
                raise NilDestinationError("맵 대상이 None", path)
            node = await self._get_dir(path)
            for child in node.nodes:
                if child.is_dir:
                    continue
                value[child.name] = child.value

        else:
            raise StructuralError(f"지원하지 않는 필드 종류: {kind}", path)

    def _replace_items(self, descriptor: FieldDescriptor, items: list[Any]) -> None:
        # 기존 리스트 객체를 유지해야 등록된 요소 참조가 유효함
        current = descriptor.ref.get()
        if isinstance(current, list):
            current[:] = items
        else:
            descriptor.ref.set(items)

    def _new_struct(self, struct_type: type, path: str) -> Any:
        try:
            return struct_type()
        except TypeError as e:
            raise StructuralError(
                f"기본값 없이 생성할 수 없는 구조체: {struct_type.__name__}", path
            ) from e

    async def _get(self, path: str, recursive: bool = False) -> StoreNode:
        try:
            response = await self.store.get(path, sorted=recursive, recursive=recursive)
        except Exception as e:
            raise StoreOperationError(path, e) from e
        if response.node is None:
            raise StoreOperationError(path, ValueError("응답에 노드 없음"))
        logger.debug(f"[Unmarshaler] get {path}")
        return response.node

    async def _get_dir(self, path: str) -> StoreNode:
        node = await self._get(path, recursive=True)
        if not node.is_dir:
            raise TypeMismatchError("리프를 디렉토리로 읽을 수 없음", path)
        return node
