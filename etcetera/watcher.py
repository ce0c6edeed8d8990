"""
필드 변경 감시 (Watch)

등록된 필드 하나의 경로에 long-poll watch를 걸고, 첫 변경을 필드에 반영한 뒤
콜백을 정확히 한 번 호출합니다. 계속 감시하려면 호출자가 다시 watch 해야 합니다.

사용법:
    ```python
    handle = await watcher.watch(config, "field1", on_change)

    # 변경 없이 종료
    handle.stop()
    changed = await handle.wait()  # False
    ```
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from .errors import StoreOperationError
from .resolver import PathRegistry
from .scalars import parse_scalar
from .store import StoreClient
from .types import FieldDescriptor, StoreResponse
from .unmarshaler import Unmarshaler

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None] | Callable[[], Awaitable[None]]


class WatchHandle:
    """진행 중인 watch의 취소 핸들"""

    def __init__(self, path: str, task: asyncio.Task, stop_event: asyncio.Event):
        self.path = path
        self._task = task
        self._stop_event = stop_event

    def stop(self) -> None:
        """watch 해제 (콜백은 호출되지 않음)"""
        self._stop_event.set()

    async def wait(self) -> bool:
        """watch 종료 대기

        Returns:
            bool: 변경이 반영되었으면 True, stop으로 해제되었으면 False

        Raises:
            watch 태스크에서 발생한 예외
        """
        return await self._task

    @property
    def done(self) -> bool:
        return self._task.done()


class Watcher:
    """등록된 필드 감시기"""

    def __init__(
        self,
        store: StoreClient,
        registry: PathRegistry,
        unmarshaler: Unmarshaler,
    ):
        self.store = store
        self.registry = registry
        self.unmarshaler = unmarshaler

    async def watch(self, owner: Any, key: Any, callback: ChangeCallback) -> WatchHandle:
        """필드 감시 시작

        Args:
            owner: 필드를 가진 객체 (dataclass 인스턴스, list, dict)
            key: 속성 이름 / 인덱스 / 맵 키
            callback: 변경 반영 후 호출할 인자 없는 함수 (코루틴 함수 가능)

        Returns:
            WatchHandle: 취소 핸들

        Raises:
            FieldNotRegisteredError: 레지스트리에 없는 필드
            StoreOperationError: 감시할 노드가 없음
        """
        descriptor = self.registry.require(owner, key)

        # 노드 존재 확인 + 이후 변경부터 받기 위한 인덱스
        try:
            current = await self.store.get(descriptor.path)
        except Exception as e:
            raise StoreOperationError(descriptor.path, e) from e

        stop_event = asyncio.Event()
        task = asyncio.create_task(
            self._run(descriptor, callback, current.etcd_index + 1, stop_event)
        )
        task.add_done_callback(self._log_failure)
        logger.info(f"[Watcher] 감시 시작: {descriptor.path}")
        return WatchHandle(descriptor.path, task, stop_event)

    async def _run(
        self,
        descriptor: FieldDescriptor,
        callback: ChangeCallback,
        wait_index: int,
        stop_event: asyncio.Event,
    ) -> bool:
        path = descriptor.path
        try:
            response = await self.store.watch(
                path,
                wait_index=wait_index,
                recursive=not descriptor.field_type.is_scalar,
                stop=stop_event,
            )
        except Exception as e:
            raise StoreOperationError(path, e) from e

        if response is None:
            logger.info(f"[Watcher] 감시 해제: {path}")
            return False

        await self._apply(descriptor, response)
        logger.info(f"[Watcher] 변경 반영: {path}")

        result = callback()
        if inspect.isawaitable(result):
            await result
        return True

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        """감시 태스크 실패 로그 (wait()를 호출하지 않아도 에러가 남음)"""
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[Watcher] 감시 종료 (에러): {error}")

    async def _apply(self, descriptor: FieldDescriptor, response: StoreResponse) -> None:
        if descriptor.field_type.is_scalar and response.node is not None:
            descriptor.ref.set(
                parse_scalar(descriptor.kind, response.node.value, descriptor.path)
            )
        else:
            # 컨테이너는 변경된 자식 하나만 통지되므로 필드 전체를 다시 로드
            await self.unmarshaler.load_field(descriptor)
