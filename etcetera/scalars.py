"""
스칼라 값 ↔ etcd 텍스트 변환

- bool: "true" / "false" (로드 시 1, t, T, TRUE, True 등도 허용)
- 정수: 10진수, Int32 / Int64 범위 검사
"""

import re
from typing import Any

from .errors import TypeMismatchError
from .types import FieldKind

INT_RANGES = {
    FieldKind.INT32: (-(2**31), 2**31 - 1),
    FieldKind.INT64: (-(2**63), 2**63 - 1),
}

TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})

# 10진수 ASCII 숫자만 (공백, "_" 구분자, 유니코드 숫자 불허)
DECIMAL_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_decimal(text: str) -> int:
    """엄격한 10진 정수 파싱

    Raises:
        ValueError: 부호와 ASCII 숫자 외의 문자가 있음
    """
    if DECIMAL_PATTERN.fullmatch(text) is None:
        raise ValueError(f"10진 정수가 아님: {text!r}")
    return int(text, 10)


def _check_range(kind: FieldKind, value: int, path: str) -> int:
    low, high = INT_RANGES[kind]
    if not low <= value <= high:
        raise TypeMismatchError(f"{kind.value} 범위 초과: {value}", path)
    return value


def format_scalar(kind: FieldKind, value: Any, path: str) -> str:
    """스칼라 필드 값을 etcd 저장용 텍스트로 변환

    Raises:
        TypeMismatchError: 값 타입이 필드 종류와 다르거나 정수 범위 초과
    """
    if kind == FieldKind.STRING:
        if not isinstance(value, str):
            raise TypeMismatchError(f"문자열이 아닌 값: {value!r}", path)
        return value

    if kind == FieldKind.BOOL:
        if not isinstance(value, bool):
            raise TypeMismatchError(f"bool이 아닌 값: {value!r}", path)
        return "true" if value else "false"

    if kind in INT_RANGES:
        # bool은 int의 하위 타입이므로 명시적으로 제외
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeMismatchError(f"정수가 아닌 값: {value!r}", path)
        return str(_check_range(kind, value, path))

    raise TypeMismatchError(f"스칼라가 아닌 필드 종류: {kind.value}", path)


def parse_scalar(kind: FieldKind, text: str, path: str) -> Any:
    """etcd 텍스트를 스칼라 필드 값으로 변환

    Raises:
        TypeMismatchError: 파싱 실패
    """
    if kind == FieldKind.STRING:
        return text

    if kind == FieldKind.BOOL:
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        raise TypeMismatchError(f"잘못된 bool 값: {text!r}", path)

    if kind in INT_RANGES:
        try:
            value = parse_decimal(text)
        except ValueError as e:
            raise TypeMismatchError(f"잘못된 정수 값: {text!r}", path) from e
        return _check_range(kind, value, path)

    raise TypeMismatchError(f"스칼라가 아닌 필드 종류: {kind.value}", path)
