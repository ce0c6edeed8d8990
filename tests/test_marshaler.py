"""
마샬러 (Save) 테스트

MemoryStore로 etcd 트리 결과와 저장소 호출을 검증합니다.
"""

import pytest

from etcetera.errors import (
    ErrorCode,
    EtcdError,
    StoreOperationError,
    StructuralError,
    TypeMismatchError,
)
from etcetera.marshaler import Marshaler
from etcetera.resolver import PathRegistry, PathResolver
from tests.sample_data import (
    FULL_CONFIG_LEAVES,
    FlatConfig,
    IntConfig,
    MapConfig,
    NestedConfig,
    NumbersConfig,
    ScalarConfig,
    ScalarListConfig,
    StringListConfig,
    StructListConfig,
    full_config,
)
from tests.store_mock import MemoryStore


def make_marshaler(store: MemoryStore, ttl: int = 0) -> tuple[Marshaler, PathRegistry]:
    registry = PathRegistry()
    return Marshaler(store, PathResolver(), registry, ttl=ttl), registry


class TestMarshalerSave:
    """Marshaler.save 테스트"""

    @pytest.mark.asyncio
    async def test_save_full_config(self, store: MemoryStore, sample_config):
        """모든 필드 종류 저장"""
        marshaler, _ = make_marshaler(store)

        await marshaler.save(sample_config)

        assert store.leaves() == FULL_CONFIG_LEAVES
        assert store.directories() == {"/field5", "/field6", "/field7"}

    @pytest.mark.asyncio
    async def test_save_ignores_untagged(self, store: MemoryStore):
        """어노테이션 없는 필드는 저장하지 않음"""
        marshaler, _ = make_marshaler(store)
        config = FlatConfig(field1="value1", field2=10, field3=20, field4=True, extra="skip")

        await marshaler.save(config)

        assert store.leaves() == {
            "/field1": "value1",
            "/field2": "10",
            "/field3": "20",
            "/field4": "true",
        }

    @pytest.mark.asyncio
    async def test_save_nested_struct_without_create_dir(self, store: MemoryStore):
        """중첩 구조체는 디렉토리 생성 호출 없이 재귀"""
        marshaler, _ = make_marshaler(store)
        config = NestedConfig(field=NumbersConfig(subfield1=10, subfield2=20, subfield3=True))

        await marshaler.save(config)

        assert store.leaves() == {
            "/field/subfield1": "10",
            "/field/subfield2": "20",
            "/field/subfield3": "true",
        }
        assert store.methods_called("create_dir") == []

    @pytest.mark.asyncio
    async def test_save_string_list_order(self, store: MemoryStore):
        """리스트 요소는 순회 순서대로 /0, /1, /2"""
        marshaler, _ = make_marshaler(store)

        await marshaler.save(StringListConfig(field=["value1", "value2", "value3"]))

        assert store.leaves() == {
            "/field/0": "value1",
            "/field/1": "value2",
            "/field/2": "value3",
        }
        assert store.methods_called("create_dir") == ["/field"]
        assert store.methods_called("create_in_order") == ["/field"] * 3

    @pytest.mark.asyncio
    async def test_save_scalar_lists(self, store: MemoryStore):
        """int / Int32 / bool 리스트"""
        marshaler, _ = make_marshaler(store)
        config = ScalarListConfig(ints=[1, -2], small=[3], flags=[True, False])

        await marshaler.save(config)

        assert store.leaves() == {
            "/ints/0": "1",
            "/ints/1": "-2",
            "/small/0": "3",
            "/flags/0": "true",
            "/flags/1": "false",
        }

    @pytest.mark.asyncio
    async def test_save_struct_list(self, store: MemoryStore):
        """구조체 리스트는 요소마다 인덱스 디렉토리"""
        marshaler, _ = make_marshaler(store)
        config = StructListConfig(
            field=[
                NumbersConfig(subfield1=10, subfield2=20, subfield3=True),
                NumbersConfig(subfield1=30, subfield2=40, subfield3=False),
            ]
        )

        await marshaler.save(config)

        assert store.methods_called("create_dir") == ["/field", "/field/0", "/field/1"]
        assert store.leaves() == {
            "/field/0/subfield1": "10",
            "/field/0/subfield2": "20",
            "/field/0/subfield3": "true",
            "/field/1/subfield1": "30",
            "/field/1/subfield2": "40",
            "/field/1/subfield3": "false",
        }

    @pytest.mark.asyncio
    async def test_save_map(self, store: MemoryStore):
        marshaler, _ = make_marshaler(store)

        await marshaler.save(MapConfig(field={"key1": "value1", "key2": "value2"}))

        assert store.leaves() == {"/field/key1": "value1", "/field/key2": "value2"}
        assert store.directories() == {"/field"}

    @pytest.mark.asyncio
    async def test_save_empty_containers(self, store: MemoryStore):
        """빈 리스트/맵은 빈 디렉토리"""
        marshaler, _ = make_marshaler(store)

        await marshaler.save(StringListConfig())
        await marshaler.save(MapConfig(field=None))

        assert store.leaves() == {}
        assert store.directories() == {"/field"}

    @pytest.mark.asyncio
    async def test_save_registers_paths(self, store: MemoryStore, sample_config):
        """방문한 모든 경로 등록"""
        marshaler, registry = make_marshaler(store)

        await marshaler.save(sample_config)

        assert registry.require(sample_config.field7, 1).path == "/field7/1"
        assert registry.require(sample_config.field6, "key1").path == "/field6/key1"
        assert len(registry) == 12

    @pytest.mark.asyncio
    async def test_save_with_base_and_ttl(self, store: MemoryStore):
        marshaler, _ = make_marshaler(store, ttl=60)

        await marshaler.save(ScalarConfig(field="value"), base="/app")

        assert store.leaves() == {"/app/field": "value"}
        assert store._find("/app/field").ttl == 60


class TestMarshalerIdempotence:
    """재저장 테스트"""

    @pytest.mark.asyncio
    async def test_resave_scalars_and_map(self, store: MemoryStore):
        """디렉토리 이미 존재 에러는 무시, 결과 동일"""
        marshaler, _ = make_marshaler(store)
        config = MapConfig(field={"key1": "value1"})

        await marshaler.save(config)
        first = store.leaves()
        await marshaler.save(config)

        assert store.leaves() == first

    @pytest.mark.asyncio
    async def test_same_result_from_same_start(self, sample_config):
        """같은 시작 상태에서 두 번 저장하면 같은 트리"""
        first, second = MemoryStore(), MemoryStore()

        await make_marshaler(first)[0].save(sample_config)
        await make_marshaler(second)[0].save(sample_config)

        assert first.leaves() == second.leaves()


class TestMarshalerErrors:
    """Marshaler 에러 테스트"""

    @pytest.mark.asyncio
    async def test_not_a_struct(self, store: MemoryStore):
        marshaler, _ = make_marshaler(store)

        with pytest.raises(StructuralError):
            await marshaler.save(["not", "a", "struct"])

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_node_exist_tolerated(self, store: MemoryStore):
        """create_dir의 NODE_EXIST는 허용"""
        store.create_dir_errors["/field"] = EtcdError(
            "Key already exists", ErrorCode.NODE_EXIST
        )
        marshaler, _ = make_marshaler(store)

        await marshaler.save(StringListConfig(field=["value1"]))

        assert store.leaves() == {"/field/0": "value1"}

    @pytest.mark.asyncio
    async def test_struct_index_dir_exists(self, store: MemoryStore):
        """구조체 리스트 인덱스 디렉토리의 NODE_EXIST도 허용"""
        store.create_dir_errors["/field/0"] = EtcdError(
            "Key already exists", ErrorCode.NODE_EXIST
        )
        marshaler, _ = make_marshaler(store)
        config = StructListConfig(field=[NumbersConfig(subfield1=10, subfield2=20, subfield3=True)])
        expected = {
            "/field/0/subfield1": "10",
            "/field/0/subfield2": "20",
            "/field/0/subfield3": "true",
        }

        await marshaler.save(config)
        assert store.leaves() == expected

        await marshaler.save(config)
        assert store.leaves() == expected
        assert store.methods_called("create_dir") == ["/field", "/field/0"] * 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "a/b", "/key1"])
    async def test_invalid_map_key(self, store: MemoryStore, key: str):
        """경로로 쓸 수 없는 맵 키는 저장 전에 거부"""
        marshaler, _ = make_marshaler(store)

        with pytest.raises(TypeMismatchError) as exc_info:
            await marshaler.save(MapConfig(field={key: "value"}))

        assert exc_info.value.path == "/field"
        assert repr(key) in str(exc_info.value)
        assert store.methods_called("set") == []

    @pytest.mark.asyncio
    async def test_create_dir_other_etcd_error(self, store: MemoryStore):
        store.create_dir_errors["/field"] = EtcdError("Raft Internal Error", ErrorCode.RAFT_INTERNAL)
        marshaler, _ = make_marshaler(store)

        with pytest.raises(StoreOperationError) as exc_info:
            await marshaler.save(StringListConfig(field=["value1"]))

        assert exc_info.value.path == "/field"
        assert exc_info.value.error_code == ErrorCode.RAFT_INTERNAL
        assert store.methods_called("create_in_order") == []

    @pytest.mark.asyncio
    async def test_create_dir_generic_error(self, store: MemoryStore):
        """etcd 에러가 아닌 실패는 디렉토리가 생겨도 중단"""
        store.create_dir_errors["/field"] = RuntimeError("I'm a generic error")
        marshaler, _ = make_marshaler(store)

        with pytest.raises(StoreOperationError) as exc_info:
            await marshaler.save(MapConfig(field={"key1": "value1"}))

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert store.leaves() == {}

    @pytest.mark.asyncio
    async def test_set_error_aborts(self, store: MemoryStore):
        """첫 실패에서 중단, 이전 쓰기는 남음"""
        store.set_errors["/field2"] = EtcdError("Raft Internal Error", ErrorCode.RAFT_INTERNAL)
        marshaler, _ = make_marshaler(store)

        with pytest.raises(StoreOperationError) as exc_info:
            await marshaler.save(FlatConfig(field1="value1"))

        assert exc_info.value.path == "/field2"
        assert store.leaves() == {"/field1": "value1"}
        assert "/field3" not in store.methods_called("set")

    @pytest.mark.asyncio
    async def test_set_on_directory(self):
        """디렉토리 경로에 스칼라 쓰기"""
        store = MemoryStore.from_leaves({"/field/child": "value"})
        marshaler, _ = make_marshaler(store)

        with pytest.raises(TypeMismatchError) as exc_info:
            await marshaler.save(ScalarConfig(field="value"))

        assert exc_info.value.path == "/field"

    @pytest.mark.asyncio
    async def test_create_in_order_error(self, store: MemoryStore):
        store.create_in_order_errors["/field"] = EtcdError("Raft Internal Error", ErrorCode.RAFT_INTERNAL)
        marshaler, _ = make_marshaler(store)

        with pytest.raises(StoreOperationError) as exc_info:
            await marshaler.save(StringListConfig(field=["value1"]))

        assert exc_info.value.path == "/field"

    @pytest.mark.asyncio
    async def test_int32_overflow(self, store: MemoryStore):
        marshaler, _ = make_marshaler(store)

        with pytest.raises(TypeMismatchError):
            await marshaler.save(IntConfig(field=2**31))

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_none_struct_element(self, store: MemoryStore):
        marshaler, _ = make_marshaler(store)

        with pytest.raises(StructuralError) as exc_info:
            await marshaler.save(StructListConfig(field=[NumbersConfig(), None]))

        assert exc_info.value.path == "/field/1"

    @pytest.mark.asyncio
    async def test_save_field_single(self, store: MemoryStore):
        """save_field는 해당 필드만 기록"""
        marshaler, registry = make_marshaler(store)
        config = full_config()
        await marshaler.save(config)

        config.field7.append("value7")
        store.calls.clear()
        await marshaler.save_field(registry.require(config, "field1"))

        assert store.calls == [("set", "/field1")]
