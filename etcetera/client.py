"""
etcd v2 키 API 클라이언트 (비동기)

StoreClient 인터페이스의 HTTP 구현:
- 머신 목록 순서대로 연결 시도 (연결 실패 시 다음 머신)
- etcd 에러 본문 → EtcdError
- watch long-poll은 타임아웃 없이 stop 이벤트와 경쟁
"""

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .errors import EtcdError
from .types import StoreResponse

logger = logging.getLogger(__name__)


class EtcdClient:
    """비동기 etcd v2 클라이언트

    Note: 이벤트 루프마다 안전하도록 httpx.AsyncClient를 캐싱하지 않음
    (요청마다 새로운 클라이언트 생성)
    """

    KEYS_PREFIX = "/v2/keys"

    def __init__(self, machines: list[str], timeout: float = 30.0):
        """
        Args:
            machines: etcd 머신 URL 목록 (예: ["http://127.0.0.1:4001"])
            timeout: 일반 요청 타임아웃 (초). watch에는 적용하지 않음
        """
        if not machines:
            raise ValueError("etcd 머신 목록이 비어 있음")
        self.machines = [machine.rstrip("/") for machine in machines]
        self.timeout = timeout

    def _create_client(self, machine: str, timeout: float | None) -> httpx.AsyncClient:
        """새로운 HTTP 클라이언트 생성 (매 요청마다, 리더로의 307 리다이렉트 추적)"""
        return httpx.AsyncClient(base_url=machine, timeout=timeout, follow_redirects=True)

    def _key_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return self.KEYS_PREFIX + quote(path, safe="/")

    async def health_check(self) -> bool:
        """etcd 헬스 체크

        Returns:
            bool: 응답하는 머신이 있는지 여부
        """
        for machine in self.machines:
            try:
                async with self._create_client(machine, self.timeout) as client:
                    response = await client.get("/version")
                    if response.status_code == 200:
                        return True
            except httpx.HTTPError as e:
                logger.warning(f"[EtcdClient] 헬스 체크 실패: {machine} - {e}")
        return False

    async def create_dir(self, path: str, ttl: int = 0) -> StoreResponse:
        """디렉토리 생성 (이미 있으면 EtcdError 105)"""
        data = {"dir": "true", "prevExist": "false"}
        return await self._request("PUT", path, data=self._with_ttl(data, ttl))

    async def create_in_order(self, path: str, value: str, ttl: int = 0) -> StoreResponse:
        """순서 있는 자식 추가 (키는 etcd가 할당)"""
        return await self._request(
            "POST", path, data=self._with_ttl({"value": value}, ttl)
        )

    async def set(self, path: str, value: str, ttl: int = 0) -> StoreResponse:
        """리프 쓰기 (디렉토리면 EtcdError 102)"""
        return await self._request(
            "PUT", path, data=self._with_ttl({"value": value}, ttl)
        )

    async def get(
        self, path: str, sorted: bool = False, recursive: bool = False
    ) -> StoreResponse:
        """리프/디렉토리 조회 (없으면 EtcdError 100)"""
        params = {}
        if sorted:
            params["sorted"] = "true"
        if recursive:
            params["recursive"] = "true"
        return await self._request("GET", path, params=params)

    async def watch(
        self,
        path: str,
        wait_index: int = 0,
        recursive: bool = False,
        stop: asyncio.Event | None = None,
    ) -> StoreResponse | None:
        """변경 1건 대기

        Args:
            path: 감시 경로
            wait_index: 이 인덱스 이후의 변경부터 수신 (0이면 다음 변경)
            recursive: 하위 경로 변경 포함
            stop: 설정되면 대기를 해제하고 None 반환

        Returns:
            StoreResponse | None: 변경 응답 또는 None (stop)
        """
        params = {"wait": "true"}
        if wait_index:
            params["waitIndex"] = str(wait_index)
        if recursive:
            params["recursive"] = "true"

        if stop is None:
            return await self._request("GET", path, params=params, long_poll=True)

        request = asyncio.ensure_future(
            self._request("GET", path, params=params, long_poll=True)
        )
        stopped = asyncio.ensure_future(stop.wait())
        try:
            await asyncio.wait({request, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not request.done():
                request.cancel()
                await asyncio.gather(request, return_exceptions=True)

        if request.cancelled():
            logger.debug(f"[EtcdClient] watch 해제: {path}")
            return None
        return request.result()

    def _with_ttl(self, data: dict[str, str], ttl: int) -> dict[str, str]:
        if ttl > 0:
            data["ttl"] = str(ttl)
        return data

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        long_poll: bool = False,
    ) -> StoreResponse:
        """머신 목록을 순회하며 요청

        Raises:
            EtcdError: etcd 에러 응답 또는 모든 머신 연결 실패
        """
        # long-poll (watch)은 타임아웃 없음
        timeout = None if long_poll else self.timeout
        url = self._key_url(path)
        last_error: Exception | None = None

        for machine in self.machines:
            try:
                async with self._create_client(machine, timeout) as client:
                    response = await client.request(method, url, params=params, data=data)
            except httpx.TransportError as e:
                logger.warning(f"[EtcdClient] 연결 실패, 다음 머신 시도: {machine} - {e}")
                last_error = e
                continue

            return self._parse_response(method, path, response)

        logger.error(f"[EtcdClient] etcd 클러스터 연결 실패: {method} {path} - {last_error}")
        raise EtcdError(f"etcd 서버 연결 실패: {last_error}") from last_error

    def _parse_response(self, method: str, path: str, response: httpx.Response) -> StoreResponse:
        etcd_index = int(response.headers.get("X-Etcd-Index", "0") or 0)

        if response.status_code >= 400:
            body = self._json_body(response)
            if "errorCode" in body:
                error = EtcdError(
                    body.get("message", ""),
                    error_code=body["errorCode"],
                    cause=body.get("cause", ""),
                    index=body.get("index", etcd_index),
                )
            else:
                error = EtcdError(f"HTTP {response.status_code}: {response.text}")
            logger.debug(f"[EtcdClient] {method} {path} 실패: {error}")
            raise error

        body = self._json_body(response)
        if not body:
            raise EtcdError(f"빈 응답: {method} {path}")

        result = StoreResponse.model_validate(body)
        result.etcd_index = etcd_index
        return result

    def _json_body(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
