"""Schema Registry への HTTP ゲートウェイ"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

import httpx
import structlog

from .config import SchemaRegistryConfig
from .exceptions import SchemaRegistryError, SchemaRegistryErrorCodes

logger = structlog.get_logger(__name__)

CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"

PreRequestHook = Callable[[httpx.Request], None]


class RequestLimiter:
    """同期・非同期の呼び出し元で共有する同時リクエスト数の上限。

    1 つの threading.BoundedSemaphore を両方の経路で使う。非同期側は空きが
    なければワーカースレッドで待つため、イベントループを塞がず、特定の
    ループにも結び付かない。
    """

    def __init__(self, limit: int) -> None:
        self._semaphore = threading.BoundedSemaphore(limit)

    @contextmanager
    def slot(self) -> Iterator[None]:
        with self._semaphore:
            yield

    @asynccontextmanager
    async def slot_async(self) -> AsyncIterator[None]:
        if not self._semaphore.acquire(blocking=False):
            waiter = asyncio.ensure_future(asyncio.to_thread(self._semaphore.acquire))
            try:
                await asyncio.shield(waiter)
            except asyncio.CancelledError:
                # キャンセル後に取得できた枠は取得完了時に返す
                waiter.add_done_callback(self._release_abandoned)
                raise
        try:
            yield
        finally:
            self._semaphore.release()

    def _release_abandoned(self, waiter: asyncio.Future[bool]) -> None:
        if not waiter.cancelled() and waiter.exception() is None:
            self._semaphore.release()


class RegistryTransport:
    """認証付きの単発 HTTP 呼び出しを行う。リトライはしない。

    同時に発行するリクエスト数は max_concurrent_requests で上限を設け、
    同期・非同期の呼び出しで同じ枠を共有する。

    http_client / async_http_client を渡すとそのクライアントで送信し、閉じない。
    渡さなければ呼び出しごとにクライアントを作る。pre_request は送信前に
    組み立て済みのリクエストを受け取る (Basic 認証ヘッダーは送信時に付く)。
    例外を送出すると送信せずに PRE_REQUEST_ERROR になる。
    """

    def __init__(
        self,
        config: SchemaRegistryConfig,
        http_client: httpx.Client | None = None,
        async_http_client: httpx.AsyncClient | None = None,
        pre_request: PreRequestHook | None = None,
    ) -> None:
        self._url = config.url.rstrip("/")
        self._http_client = http_client
        self._async_http_client = async_http_client
        self._pre_request = pre_request
        self._settings_lock = threading.Lock()
        self._basic_auth: tuple[str, str] | None = config.basic_auth
        self._bearer_token = config.bearer_token
        self._timeout = config.timeout_seconds
        self._limiter = RequestLimiter(config.max_concurrent_requests)

    @property
    def url(self) -> str:
        return self._url

    @property
    def timeout(self) -> float:
        with self._settings_lock:
            return self._timeout

    def set_credentials(self, username: str, password: str) -> None:
        """Basic 認証に切り替える。どちらかが空なら何もしない。"""
        if not username or not password:
            return
        with self._settings_lock:
            self._basic_auth = (username, password)
            self._bearer_token = ""

    def set_bearer_token(self, token: str) -> None:
        """Bearer 認証に切り替える。空なら何もしない。"""
        if not token:
            return
        with self._settings_lock:
            self._basic_auth = None
            self._bearer_token = token

    def set_timeout(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError(f"timeout must be positive, got {seconds}")
        with self._settings_lock:
            self._timeout = seconds

    def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:  # noqa: ANN401
        """リクエストを送信し、デコード済みの JSON を返す。"""
        context = f"{method} {path}"
        request, auth = self._build_request(method, path, json, params)
        try:
            with self._limiter.slot():
                if self._http_client is not None:
                    resp = self._http_client.send(request, **auth)
                else:
                    with httpx.Client() as client:
                        resp = client.send(request, **auth)
        except httpx.TimeoutException as e:
            raise _timeout_error(context, e) from e
        except httpx.HTTPError as e:
            raise _transport_error(context, e) from e
        return self._handle_response(resp, context)

    async def request_async(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:  # noqa: ANN401
        """非同期でリクエストを送信し、デコード済みの JSON を返す。"""
        context = f"{method} {path}"
        request, auth = self._build_request(method, path, json, params)
        try:
            async with self._limiter.slot_async():
                if self._async_http_client is not None:
                    resp = await self._async_http_client.send(request, **auth)
                else:
                    async with httpx.AsyncClient() as client:
                        resp = await client.send(request, **auth)
        except httpx.TimeoutException as e:
            raise _timeout_error(context, e) from e
        except httpx.HTTPError as e:
            raise _transport_error(context, e) from e
        return self._handle_response(resp, context)

    def _build_request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None,
        params: dict[str, str] | None,
    ) -> tuple[httpx.Request, dict[str, Any]]:
        """認証とタイムアウトを反映したリクエストと send() の auth 引数を返す。"""
        with self._settings_lock:
            basic_auth = self._basic_auth
            bearer_token = self._bearer_token
            timeout = self._timeout
        headers = {"Content-Type": CONTENT_TYPE}
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"
        request = httpx.Request(
            method,
            self._url + path,
            json=json,
            params=params,
            headers=headers,
            extensions={"timeout": httpx.Timeout(timeout).as_dict()},
        )
        if self._pre_request is not None:
            try:
                self._pre_request(request)
            except Exception as e:
                raise SchemaRegistryError(
                    code=SchemaRegistryErrorCodes.PRE_REQUEST,
                    message=f"{method} {path}: pre-request hook failed: {e}",
                    cause=e,
                ) from e
        # 注入されたクライアント自身の認証設定は Basic 認証がない場合に使われる
        auth: dict[str, Any] = {"auth": basic_auth} if basic_auth is not None else {}
        return request, auth

    def _handle_response(self, resp: httpx.Response, context: str) -> Any:  # noqa: ANN401
        logger.debug("registry response", request=context, status=resp.status_code)
        if resp.status_code < 200 or resp.status_code > 299:
            raise _status_error(resp, context)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise SchemaRegistryError(
                code=SchemaRegistryErrorCodes.INVALID_RESPONSE,
                message=f"{context}: response is not valid JSON",
                cause=e,
                status_code=resp.status_code,
            ) from e


def _status_error(resp: httpx.Response, context: str) -> SchemaRegistryError:
    code = (
        SchemaRegistryErrorCodes.SCHEMA_NOT_FOUND
        if resp.status_code == 404
        else SchemaRegistryErrorCodes.HTTP_ERROR
    )
    error_code: int | None = None
    message = resp.text
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_code = body.get("error_code")
        message = body.get("message", message)
    return SchemaRegistryError(
        code=code,
        message=f"{context}: HTTP {resp.status_code}: {message}",
        status_code=resp.status_code,
        error_code=error_code,
    )


def _timeout_error(context: str, e: Exception) -> SchemaRegistryError:
    return SchemaRegistryError(
        code=SchemaRegistryErrorCodes.TIMEOUT,
        message=f"{context}: request timed out: {e}",
        cause=e,
    )


def _transport_error(context: str, e: Exception) -> SchemaRegistryError:
    return SchemaRegistryError(
        code=SchemaRegistryErrorCodes.HTTP_ERROR,
        message=f"{context}: {e}",
        cause=e,
    )
