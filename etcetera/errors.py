"""
에러 분류 시스템

etcd 에러 코드와 바인딩 에러(구조/타입/저장소/nil 대상)를 정의합니다.
저장소 에러는 재시도 가능 여부를 분류하여 호출자가 판단할 수 있도록 합니다.
"""

from enum import Enum, IntEnum


class ErrorCode(IntEnum):
    """etcd v2 에러 코드"""

    KEY_NOT_FOUND = 100
    TEST_FAILED = 101
    NOT_FILE = 102
    NOT_DIR = 104
    NODE_EXIST = 105
    ROOT_READ_ONLY = 107
    DIR_NOT_EMPTY = 108
    RAFT_INTERNAL = 300
    LEADER_ELECT = 301
    WATCHER_CLEARED = 400
    EVENT_INDEX_CLEARED = 401


class ErrorCategory(str, Enum):
    """에러 카테고리"""

    RETRYABLE = "retryable"  # 리더 선출, 네트워크 오류
    NON_RETRYABLE = "non_retryable"  # 키 없음, 타입 불일치
    UNKNOWN = "unknown"


RETRYABLE_CODES = frozenset(
    {
        ErrorCode.RAFT_INTERNAL,
        ErrorCode.LEADER_ELECT,
        ErrorCode.WATCHER_CLEARED,
        ErrorCode.EVENT_INDEX_CLEARED,
    }
)

NON_RETRYABLE_CODES = frozenset(
    {
        ErrorCode.KEY_NOT_FOUND,
        ErrorCode.TEST_FAILED,
        ErrorCode.NOT_FILE,
        ErrorCode.NOT_DIR,
        ErrorCode.NODE_EXIST,
        ErrorCode.ROOT_READ_ONLY,
        ErrorCode.DIR_NOT_EMPTY,
    }
)

# 재시도 가능 에러 패턴
RETRYABLE_PATTERNS = [
    "connection",
    "timeout",
    "network",
    "unavailable",
    "temporary",
    "503",
    "502",
    "504",
    "ECONNREFUSED",
    "ETIMEDOUT",
]

# 재시도 불가 에러 패턴
NON_RETRYABLE_PATTERNS = [
    "not found",
    "404",
    "invalid",
    "permission",
    "unauthorized",
    "forbidden",
    "not a file",
    "not a directory",
]


class EtcdError(Exception):
    """etcd 저장소 에러

    etcd가 반환한 에러 본문(errorCode, message, cause, index)을 그대로 담습니다.
    전송 계층 실패는 error_code가 None입니다.
    """

    def __init__(
        self,
        message: str,
        error_code: int | None = None,
        cause: str = "",
        index: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.cause = cause
        self.index = index

    def __str__(self) -> str:
        if self.error_code is None:
            return self.message
        text = f"{self.error_code}: {self.message}"
        if self.cause:
            text += f" ({self.cause})"
        return text

    def is_code(self, code: ErrorCode) -> bool:
        return self.error_code == code


def has_error_code(error: BaseException, code: ErrorCode) -> bool:
    """예외가 특정 etcd 에러 코드인지 확인"""
    return isinstance(error, EtcdError) and error.is_code(code)


class EtceteraError(Exception):
    """바인딩 기본 에러

    에러를 발생시킨 절대 경로를 path 속성과 메시지 앞부분에 담습니다.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class StructuralError(EtceteraError):
    """바인딩 대상이 구조체(dataclass 인스턴스)가 아니거나 지원하지 않는 필드 타입"""


class TypeMismatchError(EtceteraError):
    """리프/디렉토리 종류 불일치 또는 값 파싱 실패"""


class NilDestinationError(EtceteraError):
    """Load 대상 컨테이너(맵, 중첩 구조체)가 None"""


class FieldNotRegisteredError(EtceteraError):
    """PathRegistry에 등록되지 않은 필드 참조"""


class StoreOperationError(EtceteraError):
    """허용되지 않은 저장소 호출 실패"""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"저장소 호출 실패: {cause}", path)
        self.cause = cause
        self.error_code: int | None = getattr(cause, "error_code", None)

    @property
    def category(self) -> ErrorCategory:
        return ErrorClassifier.classify(self.cause)


class ErrorClassifier:
    """에러 분류기"""

    @classmethod
    def classify(cls, error: Exception) -> ErrorCategory:
        """에러를 분류하여 카테고리 반환

        Args:
            error: 분류할 예외 객체

        Returns:
            ErrorCategory: 재시도 가능 여부에 따른 카테고리
        """
        if isinstance(error, StoreOperationError):
            error = error.cause

        # etcd 에러 코드 우선
        code = getattr(error, "error_code", None)
        if code in RETRYABLE_CODES:
            return ErrorCategory.RETRYABLE
        if code in NON_RETRYABLE_CODES:
            return ErrorCategory.NON_RETRYABLE

        if isinstance(error, (TypeMismatchError, StructuralError, NilDestinationError)):
            return ErrorCategory.NON_RETRYABLE

        error_str = str(error).lower()

        # 패턴 매칭 (우선순위: NON_RETRYABLE > RETRYABLE)
        for pattern in NON_RETRYABLE_PATTERNS:
            if pattern.lower() in error_str:
                return ErrorCategory.NON_RETRYABLE

        for pattern in RETRYABLE_PATTERNS:
            if pattern.lower() in error_str:
                return ErrorCategory.RETRYABLE

        # 예외 타입 기반 분류
        if isinstance(error, (TimeoutError, ConnectionError)):
            return ErrorCategory.RETRYABLE

        if isinstance(error, (ValueError, KeyError)):
            return ErrorCategory.NON_RETRYABLE

        return ErrorCategory.UNKNOWN
