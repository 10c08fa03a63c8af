"""
同步模块 (Sync Pipeline Module)
==============================

把本地存储中未同步、非重复的会话逐个推送到远端收集器。

- 每个会话一次 POST；收到成功响应后立即把该会话标记为已同步，再处理下一个
- 任何非 2xx 响应或网络异常都会中止整次运行，后续会话保持原样，等待下次调用
- POST 不自动重试；只有幂等的批量拉取（GET <path>/all）使用 tenacity 重试
- 同一个存储上不允许并发运行两次同步（SyncInProgressError）
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from formharvest.config import get_settings
from formharvest.dedup import key_fields
from formharvest.ir import RemoteRecord, Session, SyncOutcome, SyncPayload
from formharvest.logger import get_logger
from formharvest.store import SessionStore, StoreError

logger = get_logger(__name__)

MSG_NOTHING_TO_SYNC = "No data to sync"
MSG_SYNC_OK = "All data synced successfully to API"
MSG_SYNC_FAILED = "Error syncing data to API"
MSG_SYNC_PROCESS_FAILED = "Error during sync process"


class SyncInProgressError(RuntimeError):
    """A sync run is already active for this store."""


@dataclass(frozen=True)
class RetryConfig:
    """
    批量拉取的重试配置，不可变。
    属性: max_attempts, min_wait_seconds, max_wait_seconds
    """
    max_attempts: int
    min_wait_seconds: float
    max_wait_seconds: float


def _run_sync(coro: Any) -> Any:
    """
    Run a coroutine from sync context.

    - Preferred path: `asyncio.run` (script/CLI context).
    - Fallback: if already inside a running loop, execute in a helper thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    holder: Dict[str, Any] = {}

    def _runner() -> None:
        try:
            holder["result"] = asyncio.run(coro)
        except Exception as thread_exc:  # noqa: BLE001
            holder["error"] = thread_exc

    thread = threading.Thread(target=_runner, daemon=True)
    thread.start()
    thread.join()
    if "error" in holder:
        raise holder["error"]
    return holder.get("result")


def build_payload(session: Session, title: str = "") -> SyncPayload:
    """
    根据会话构造 POST 请求体。

    身份字段取自会话的关键字段（缺失时为空字符串），title 由调用方提供
    （当前页面标题，不属于会话数据），raw_data 附带完整字段列表。
    """
    keys = key_fields(session.fields)
    return SyncPayload(
        url=session.url,
        title=title or "",
        aadhar=keys.get("aadhar", ""),
        pan=keys.get("pan", ""),
        name=keys.get("name", ""),
        email=keys.get("email", ""),
        phone=keys.get("phone", ""),
        raw_data=[field.to_wire() for field in session.fields],
    )


class CollectorClient:
    """
    远端收集器的 HTTP 客户端（httpx）。

    作为异步上下文管理器使用，一次同步运行共用一个连接池:

        async with CollectorClient() as collector:
            await collector.post_session(payload)
    """

    def __init__(
        self,
        form_data_url: Optional[str] = None,
        fetch_all_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.form_data_url = form_data_url or settings.form_data_url
        self.fetch_all_url = fetch_all_url or settings.fetch_all_url
        self.timeout = timeout if timeout is not None else settings.SYNC_TIMEOUT
        self.retry_config = retry_config or RetryConfig(
            max_attempts=int(settings.FETCH_RETRY_MAX_ATTEMPTS),
            min_wait_seconds=float(settings.FETCH_RETRY_MIN_WAIT_SECONDS),
            max_wait_seconds=float(settings.FETCH_RETRY_MAX_WAIT_SECONDS),
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "CollectorClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(10.0, self.timeout)),
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("CollectorClient must be used inside 'async with'")
        return self._client

    async def post_session(self, payload: SyncPayload) -> Dict[str, Any]:
        """
        发送一个会话。非 2xx 响应抛出 httpx.HTTPStatusError。
        """
        client = self._require_client()
        response = await client.post(self.form_data_url, json=payload.model_dump())
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError:
            body = {}
        return body if isinstance(body, dict) else {"data": body}

    async def get_all(self) -> List[RemoteRecord]:
        """单次批量拉取，不重试。"""
        client = self._require_client()
        response = await client.get(self.fetch_all_url)
        response.raise_for_status()
        body = response.json()
        records = (body.get("data") or []) if isinstance(body, dict) else []
        return [RemoteRecord.model_validate(item) for item in records if isinstance(item, dict)]

    async def _fetch_all_once(self) -> List[RemoteRecord]:
        async with self:
            return await self.get_all()

    def fetch_all(self) -> List[RemoteRecord]:
        """
        拉取远端全部记录，失败时按 retry_config 指数退避重试。
        所有尝试都失败后记录错误并返回空列表。
        """
        cfg = self.retry_config
        retrying = Retrying(
            stop=stop_after_attempt(cfg.max_attempts),
            wait=wait_exponential(multiplier=1, min=cfg.min_wait_seconds, max=cfg.max_wait_seconds),
            retry=retry_if_exception_type(httpx.HTTPError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            records = retrying(lambda: _run_sync(self._fetch_all_once()))
        except (httpx.HTTPError, RetryError, ValueError) as exc:
            logger.error("Error fetching all data from API: %s", exc)
            return []
        logger.info("Fetched %d record(s) from %s", len(records), self.fetch_all_url)
        return records

    def _log_retry(self, retry_state: Any) -> None:
        logger.warning(
            "Bulk fetch retrying (attempt %d/%d) | url=%s | error=%s",
            retry_state.attempt_number,
            self.retry_config.max_attempts,
            self.fetch_all_url,
            str(retry_state.outcome.exception()) if retry_state.outcome else "unknown",
        )


class SyncPipeline:
    """
    顺序同步：一次只有一个请求在途，前一个请求完成后才发出下一个。
    """

    def __init__(self, store: SessionStore, client: Optional[CollectorClient] = None):
        self.store = store
        self.client = client or CollectorClient()

    async def run_async(self, title: str = "") -> SyncOutcome:
        guard = self.store.sync_guard
        if not guard.acquire(blocking=False):
            raise SyncInProgressError("A sync run is already in progress for this store")
        try:
            return await self._run(title)
        finally:
            guard.release()

    def run(self, title: str = "") -> SyncOutcome:
        return _run_sync(self.run_async(title))

    async def _run(self, title: str) -> SyncOutcome:
        try:
            sessions = self.store.pending_sessions()
        except StoreError as exc:
            logger.error("Error in sync process: %s", exc)
            return SyncOutcome(ok=False, message=MSG_SYNC_PROCESS_FAILED, error=str(exc))

        if not sessions:
            logger.info("No pending sessions to sync")
            return SyncOutcome(ok=True, message=MSG_NOTHING_TO_SYNC)

        logger.info("Syncing %d session(s) to %s", len(sessions), self.client.form_data_url)
        synced_ids: List[int] = []
        attempted = 0

        async with self.client as collector:
            for session in sessions:
                payload = build_payload(session, title)
                attempted += 1
                try:
                    await collector.post_session(payload)
                except httpx.HTTPError as exc:
                    logger.error("Error syncing session id=%s: %s", session.id, exc)
                    return SyncOutcome(
                        ok=False,
                        message=MSG_SYNC_FAILED,
                        attempted=attempted,
                        synced_ids=synced_ids,
                        failed_id=session.id,
                        error=str(exc),
                    )

                try:
                    marked = self.store.mark_synced(session.id)
                except StoreError as exc:
                    logger.error("Error in sync process: %s", exc)
                    return SyncOutcome(
                        ok=False,
                        message=MSG_SYNC_PROCESS_FAILED,
                        attempted=attempted,
                        synced_ids=synced_ids,
                        failed_id=session.id,
                        error=str(exc),
                    )
                if not marked:
                    logger.warning("Session id=%s vanished from the store before it could be marked", session.id)
                    continue
                synced_ids.append(session.id)
                logger.debug("Session id=%s synced", session.id)

        logger.info("Sync complete: %d session(s) synced", len(synced_ids))
        return SyncOutcome(ok=True, message=MSG_SYNC_OK, attempted=attempted, synced_ids=synced_ids)


def sync(store: SessionStore, client: Optional[CollectorClient] = None, title: str = "") -> SyncOutcome:
    """便捷入口：对 store 运行一次同步。"""
    return SyncPipeline(store, client).run(title)
