"""
Pytest 설정 및 공통 Fixture
"""

import pytest

from etcetera import EtcdSettings
from tests.sample_data import FULL_CONFIG_LEAVES, FullConfig, full_config
from tests.store_mock import MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    """빈 메모리 저장소"""
    return MemoryStore()


@pytest.fixture
def populated_store() -> MemoryStore:
    """FullConfig 값이 저장된 메모리 저장소"""
    return MemoryStore.from_leaves(FULL_CONFIG_LEAVES)


@pytest.fixture
def sample_config() -> FullConfig:
    """값이 채워진 FullConfig"""
    return full_config()


@pytest.fixture
def etcd_settings() -> EtcdSettings:
    """테스트용 EtcdSettings

    환경변수 대신 하드코딩된 값 사용.
    """
    return EtcdSettings(
        machines=["http://etcd-1:4001", "http://etcd-2:4001"],
        ttl=0,
        timeout=5.0,
    )
