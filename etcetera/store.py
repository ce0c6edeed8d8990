"""
저장소 인터페이스

바인딩이 사용하는 계층형 키-값 저장소 기능. EtcdClient가 HTTP로 구현하며
테스트에서는 메모리 저장소로 대체합니다.

실패는 EtcdError(error_code 포함)로 발생해야 합니다.
- create_dir: 이미 존재하면 NODE_EXIST (105)
- set: 경로가 디렉토리면 NOT_FILE (102)
- get / watch: 경로가 없으면 KEY_NOT_FOUND (100)
"""

import asyncio
from typing import Protocol, runtime_checkable

from .types import StoreResponse


@runtime_checkable
class StoreClient(Protocol):
    async def create_dir(self, path: str, ttl: int = 0) -> StoreResponse:
        """디렉토리 생성"""
        ...

    async def create_in_order(self, path: str, value: str, ttl: int = 0) -> StoreResponse:
        """디렉토리 아래 순서 있는 자식 추가 (위치 접미사는 저장소가 할당)"""
        ...

    async def set(self, path: str, value: str, ttl: int = 0) -> StoreResponse:
        """리프 쓰기/덮어쓰기"""
        ...

    async def get(
        self, path: str, sorted: bool = False, recursive: bool = False
    ) -> StoreResponse:
        """리프 또는 (recursive) 서브트리 조회"""
        ...

    async def watch(
        self,
        path: str,
        wait_index: int = 0,
        recursive: bool = False,
        stop: asyncio.Event | None = None,
    ) -> StoreResponse | None:
        """변경 1건까지 대기 (stop 이벤트로 해제되면 None)"""
        ...
