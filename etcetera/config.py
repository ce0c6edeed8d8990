"""
etcd 연결 설정

환경변수 또는 YAML 파일 기반 설정 관리.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MACHINES = ["http://127.0.0.1:4001"]


class ConfigurationError(Exception):
    """설정 오류 예외"""

    pass


@dataclass
class EtcdSettings:
    """etcd 연결 설정"""

    machines: list[str] = field(default_factory=lambda: list(DEFAULT_MACHINES))
    ttl: int = 0  # 쓰기 TTL (초, 0이면 만료 없음)
    timeout: float = 30.0  # 일반 요청 타임아웃 (watch 제외)

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "EtcdSettings":
        """환경변수에서 설정 로드

        Args:
            env_file: 먼저 로드할 .env 파일 경로 (선택)
        """
        if env_file and Path(env_file).exists():
            load_dotenv(env_file)

        # 형식: "http://10.0.0.1:4001,http://10.0.0.2:4001"
        machines_str = os.getenv("ETCD_MACHINES", "")
        machines = [m.strip() for m in machines_str.split(",") if m.strip()]

        return cls(
            machines=machines or list(DEFAULT_MACHINES),
            ttl=int(os.getenv("ETCD_TTL", "0")),
            timeout=float(os.getenv("ETCD_TIMEOUT", "30")),
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "EtcdSettings":
        """YAML 설정 파일 로드

        ${VAR_NAME} / $VAR_NAME 형식은 환경변수 값으로 치환합니다.

        Example:
            ```yaml
            machines:
              - http://${ETCD_HOST}:4001
            ttl: 0
            timeout: 10
            ```

        Raises:
            ConfigurationError: 파일이 없거나 형식 오류
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"설정 파일 없음: {config_path}")

        try:
            with open(path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"설정 파일 파싱 실패: {config_path} - {e}") from e

        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"설정 파일 최상위는 매핑이어야 함: {config_path}")

        config = _substitute_env_vars(raw_config)

        machines = config.get("machines") or list(DEFAULT_MACHINES)
        if isinstance(machines, str):
            machines = [m.strip() for m in machines.split(",") if m.strip()]

        logger.info(f"[Config] 설정 로드: {config_path}")
        return cls(
            machines=list(machines),
            ttl=int(config.get("ttl", 0)),
            timeout=float(config.get("timeout", 30.0)),
        )

    def validate(self, strict: bool = True) -> list[str]:
        """설정값 검증

        Args:
            strict: True면 오류 시 예외 발생, False면 경고만

        Returns:
            list[str]: 검증 경고/오류 메시지 목록

        Raises:
            ConfigurationError: strict=True이고 오류가 있을 때
        """
        errors = []
        warnings = []

        if not self.machines:
            errors.append("etcd 머신 목록이 비어 있음")

        for machine in self.machines:
            if not machine.startswith(("http://", "https://")):
                errors.append(f"잘못된 머신 URL 형식: {machine}")

        if self.ttl < 0:
            errors.append(f"잘못된 ttl 값: {self.ttl}")

        if self.timeout <= 0:
            errors.append(f"잘못된 timeout 값: {self.timeout}")
        elif self.timeout > 300:
            warnings.append(f"요청 타임아웃이 너무 김: {self.timeout}초")

        for warning in warnings:
            logger.warning(f"[Config] {warning}")

        if errors:
            for error in errors:
                logger.error(f"[Config] {error}")
            if strict:
                raise ConfigurationError(
                    f"설정 검증 실패: {len(errors)}개 오류\n" + "\n".join(errors)
                )

        return errors + warnings

    @classmethod
    def from_env_validated(cls, strict: bool = True) -> "EtcdSettings":
        """환경변수에서 설정 로드 및 검증

        Raises:
            ConfigurationError: strict=True이고 오류가 있을 때
        """
        settings = cls.from_env()
        settings.validate(strict=strict)
        return settings


def _substitute_env_vars(config: Any) -> Any:
    """설정 값에서 환경변수 치환"""
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    elif isinstance(config, str):
        # ${VAR_NAME} 패턴 치환
        pattern = r"\$\{([^}]+)\}"

        def replace(match: re.Match) -> str:
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))

        result = re.sub(pattern, replace, config)

        # $VAR_NAME 패턴 치환 (단어 경계)
        pattern2 = r"\$([A-Z_][A-Z0-9_]*)"

        def replace2(match: re.Match) -> str:
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))

        return re.sub(pattern2, replace2, result)
    return config
