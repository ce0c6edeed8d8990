"""
설정 구조체 ↔ etcd 바인딩

dataclass 설정 객체 하나를 etcd 트리에 연결하고 Save / Load / Watch를 제공합니다.

사용법:
    ```python
    @dataclass
    class AppConfig:
        name: str = etcd_field("/name", default="")
        workers: Int32 = etcd_field("/workers", default=4)
        hosts: dict[str, str] = etcd_field("/hosts", default_factory=dict)

    config = AppConfig()
    binding = ConfigBinding.from_settings(EtcdSettings.from_env(), config)

    await binding.load()
    config.workers = 8
    await binding.save_field(config, "workers")

    handle = await binding.watch(config, "name", lambda: print(config.name))
    ```

같은 설정 객체에 대한 save/load 동시 호출은 호출자가 직렬화해야 합니다.
"""

import logging
from typing import Any

from .client import EtcdClient
from .config import EtcdSettings
from .errors import StoreOperationError
from .marshaler import Marshaler
from .resolver import PathRegistry, PathResolver
from .store import StoreClient
from .unmarshaler import Unmarshaler
from .watcher import ChangeCallback, Watcher, WatchHandle

logger = logging.getLogger(__name__)


class ConfigBinding:
    """설정 객체 하나와 저장소 하나를 묶는 세션

    생성 시 설정 객체의 필드를 PathRegistry에 등록합니다.
    """

    def __init__(
        self,
        store: StoreClient,
        config: Any,
        ttl: int = 0,
        base: str = "",
    ):
        """
        Args:
            store: 저장소 클라이언트 (EtcdClient 등)
            config: 바인딩할 dataclass 인스턴스
            ttl: 쓰기 TTL (초, 0이면 만료 없음)
            base: 설정 트리의 루트 경로 (기본: etcd 루트)

        Raises:
            StructuralError: config가 구조체가 아님
        """
        self.resolver = PathResolver()
        self.resolver.check_structure(config)

        self.store = store
        self.config = config
        self.base = base
        self.registry = PathRegistry()
        self.marshaler = Marshaler(store, self.resolver, self.registry, ttl=ttl)
        self.unmarshaler = Unmarshaler(store, self.resolver)
        self.watcher = Watcher(store, self.registry, self.unmarshaler)

        self.register()

    @classmethod
    def from_settings(cls, settings: EtcdSettings, config: Any, base: str = "") -> "ConfigBinding":
        """EtcdSettings로 EtcdClient를 만들어 바인딩"""
        client = EtcdClient(settings.machines, timeout=settings.timeout)
        return cls(client, config, ttl=settings.ttl, base=base)

    def register(self) -> int:
        """설정 객체의 현재 필드를 레지스트리에 등록

        Returns:
            int: 등록된 전체 경로 수
        """
        for descriptor in self.resolver.resolve(self.config, self.base):
            self.registry.add(descriptor)
        logger.info(f"[ConfigBinding] 필드 등록: {len(self.registry)}개 경로")
        return len(self.registry)

    async def save(self) -> None:
        """설정 객체 전체를 etcd에 저장"""
        await self.marshaler.save(self.config, self.base)
        logger.info(f"[ConfigBinding] 저장 완료: {type(self.config).__name__}")

    async def load(self) -> None:
        """etcd 값을 설정 객체 전체에 로드"""
        await self.unmarshaler.load(self.config, self.base)
        logger.info(f"[ConfigBinding] 로드 완료: {type(self.config).__name__}")

    async def save_field(self, owner: Any, key: Any) -> None:
        """등록된 필드 하나 저장

        Raises:
            FieldNotRegisteredError: 등록되지 않은 필드
        """
        await self.marshaler.save_field(self.registry.require(owner, key))

    async def load_field(self, owner: Any, key: Any) -> None:
        """등록된 필드 하나 로드

        Raises:
            FieldNotRegisteredError: 등록되지 않은 필드
        """
        await self.unmarshaler.load_field(self.registry.require(owner, key))

    async def watch(self, owner: Any, key: Any, callback: ChangeCallback) -> WatchHandle:
        """등록된 필드의 다음 변경 1건 감시"""
        return await self.watcher.watch(owner, key, callback)

    async def version(self, owner: Any, key: Any) -> int:
        """필드 노드의 마지막 수정 인덱스 (modifiedIndex)

        Raises:
            FieldNotRegisteredError: 등록되지 않은 필드
            StoreOperationError: 노드 조회 실패
        """
        descriptor = self.registry.require(owner, key)
        try:
            response = await self.store.get(descriptor.path)
        except Exception as e:
            raise StoreOperationError(descriptor.path, e) from e
        if response.node is None:
            raise StoreOperationError(descriptor.path, ValueError("응답에 노드 없음"))
        return response.node.modified_index
