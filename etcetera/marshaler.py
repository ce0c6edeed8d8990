"""
마샬러 (Save)

구조체의 어노테이션 필드를 깊이 우선으로 순회하며 etcd에 기록합니다.

- 스칼라: set 1회 (디렉토리 경로에 쓰면 TypeMismatchError)
- 중첩 구조체: 경로를 base로 재귀 (디렉토리 생성 호출 없음)
- 스칼라 리스트: 디렉토리 생성 후 요소마다 create_in_order
- 구조체 리스트: 디렉토리 생성 후 요소마다 인덱스 디렉토리 생성 + 재귀
- 문자열 맵: 디렉토리 생성 후 항목마다 set(path/key)

디렉토리 생성의 "이미 존재" 에러만 허용하며, 그 외 에러는 즉시 중단합니다.
트랜잭션이 아니므로 중단 전 성공한 쓰기는 남습니다.
"""

import logging
from typing import Any

from .errors import ErrorCode, StoreOperationError, StructuralError, TypeMismatchError, has_error_code
from .resolver import PathRegistry, PathResolver, child_descriptor
from .scalars import format_scalar
from .store import StoreClient
from .types import FieldDescriptor, FieldKind

logger = logging.getLogger(__name__)


class Marshaler:
    """구조체 → etcd 기록기"""

    def __init__(
        self,
        store: StoreClient,
        resolver: PathResolver,
        registry: PathRegistry,
        ttl: int = 0,
    ):
        """
        Args:
            store: 저장소 클라이언트
            resolver: 경로 해석기
            registry: 방문한 필드를 등록할 레지스트리
            ttl: 쓰기마다 적용할 TTL (초, 0이면 만료 없음)
        """
        self.store = store
        self.resolver = resolver
        self.registry = registry
        self.ttl = ttl

    async def save(self, obj: Any, base: str = "") -> None:
        """구조체 전체 저장

        Raises:
            StructuralError: 구조체가 아님
            TypeMismatchError: 값 타입 불일치 또는 디렉토리 경로에 리프 쓰기
            StoreOperationError: 저장소 호출 실패
        """
        self.resolver.check_structure(obj)
        await self._save_struct(obj, base)

    async def _save_struct(self, obj: Any, base: str) -> None:
        for descriptor in self.resolver.struct_fields(obj, base):
            await self.save_field(descriptor)

    async def save_field(self, descriptor: FieldDescriptor) -> None:
        """필드 하나 저장 (컨테이너면 하위까지)"""
        self.registry.add(descriptor)

        path = descriptor.path
        kind = descriptor.kind
        value = descriptor.ref.get()

        if descriptor.field_type.is_scalar:
            await self._set(path, format_scalar(kind, value, path))

        elif kind == FieldKind.STRUCT:
            if value is None:
                raise StructuralError("None 구조체는 저장할 수 없음", path)
            await self._save_struct(value, path)

        elif kind == FieldKind.SLICE_OF_SCALAR:
            await self._create_dir(path)
            items = value if value is not None else []
            for index, item in enumerate(items):
                child = child_descriptor(descriptor, items, index)
                self.registry.add(child)
                await self._create_in_order(
                    path, format_scalar(child.kind, item, child.path)
                )

        elif kind == FieldKind.SLICE_OF_STRUCT:
            await self._create_dir(path)
            items = value if value is not None else []
            for index, item in enumerate(items):
                child = child_descriptor(descriptor, items, index)
                if item is None:
                    raise StructuralError("None 구조체는 저장할 수 없음", child.path)
                self.registry.add(child)
                await self._create_dir(child.path)
                await self._save_struct(item, child.path)

        elif kind == FieldKind.STRING_MAP:
            await self._create_dir(path)
            entries = value if value is not None else {}
            for key, item in entries.items():
                # 빈 키는 맵 디렉토리 자신, "/" 포함 키는 하위 디렉토리가 됨
                if not isinstance(key, str) or not key or "/" in key:
                    raise TypeMismatchError(f"맵 키로 쓸 수 없는 값: {key!r}", path)
                child = child_descriptor(descriptor, entries, key)
                self.registry.add(child)
                await self._set(child.path, format_scalar(child.kind, item, child.path))

        else:
            raise StructuralError(f"지원하지 않는 필드 종류: {kind}", path)

    async def _set(self, path: str, value: str) -> None:
        try:
            await self.store.set(path, value, self.ttl)
        except Exception as e:
            if has_error_code(e, ErrorCode.NOT_FILE):
                raise TypeMismatchError("디렉토리 경로에 값을 쓸 수 없음", path) from e
            raise StoreOperationError(path, e) from e
        logger.debug(f"[Marshaler] set {path}")

    async def _create_in_order(self, path: str, value: str) -> None:
        try:
            response = await self.store.create_in_order(path, value, self.ttl)
        except Exception as e:
            raise StoreOperationError(path, e) from e
        if response.node is not None:
            logger.debug(f"[Marshaler] create_in_order {response.node.key}")

    async def _create_dir(self, path: str) -> None:
        try:
            await self.store.create_dir(path, self.ttl)
        except Exception as e:
            # 재저장 시 디렉토리가 이미 있는 것은 정상
            if has_error_code(e, ErrorCode.NODE_EXIST):
                logger.debug(f"[Marshaler] 디렉토리 이미 존재: {path}")
                return
            raise StoreOperationError(path, e) from e
        logger.debug(f"[Marshaler] create_dir {path}")
