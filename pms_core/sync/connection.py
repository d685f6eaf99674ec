"""
pms_core/sync/connection.py - 自动重连的实时连接（客户端）

状态机：CONNECTING -> OPEN -> (收发消息)* -> CLOSED
CLOSED 之后在固定延迟后重连，直到所有者调用 close()。
可选有界指数退避；没有最大重试次数，断线最终会自愈。
"""
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
import asyncio
import json
import logging

import websockets

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], None]
AuthPayload = Union[Dict[str, Any], Callable[[], Optional[Dict[str, Any]]]]


class ConnectionState(str, Enum):
    """连接状态"""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class RealtimeConnection:
    """
    实时推送连接

    Args:
        url: WebSocket 地址
        on_message: 收到 JSON 消息时的回调
        auth: 连接打开后发送的 auth 消息（或返回它的函数）
        connect: 传输层工厂，url -> 异步上下文管理器；默认 websockets.connect
        reconnect_delay: 连接关闭后的重连延迟（秒）
        error_retry_delay: 建立连接失败后的重试延迟（秒）
        max_reconnect_delay: 设置后启用指数退避，延迟上限为该值
        on_state_change: 状态变化回调
    """

    def __init__(
        self,
        url: str,
        on_message: MessageHandler,
        auth: Optional[AuthPayload] = None,
        connect: Optional[Callable[[str], Any]] = None,
        reconnect_delay: float = 3.0,
        error_retry_delay: float = 5.0,
        max_reconnect_delay: Optional[float] = None,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
    ):
        self.url = url
        self._on_message = on_message
        self._auth = auth
        self._connect = connect or websockets.connect
        self.reconnect_delay = reconnect_delay
        self.error_retry_delay = error_retry_delay
        self.max_reconnect_delay = max_reconnect_delay
        self._on_state_change = on_state_change

        self.state = ConnectionState.IDLE
        self.connect_attempts = 0
        self._socket = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    @property
    def is_closed_by_owner(self) -> bool:
        return self._closed

    def start(self) -> None:
        """在当前事件循环中启动连接（必须在运行中的事件循环里调用）"""
        if self._task is not None and not self._task.done():
            return
        self._closed = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        """所有者关闭：同步取消重连计时与连接任务，不再重连"""
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._set_state(ConnectionState.CLOSED)

    async def wait_closed(self) -> None:
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _set_state(self, state: ConnectionState) -> None:
        if self.state == state:
            return
        self.state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception as e:
                logger.error(f"Connection state callback failed: {e}", exc_info=True)

    def _next_delay(self, base: float, failures: int) -> float:
        if self.max_reconnect_delay is None:
            return base
        return min(base * (2 ** failures), self.max_reconnect_delay)

    def _auth_message(self) -> Optional[Dict[str, Any]]:
        auth = self._auth() if callable(self._auth) else self._auth
        if not auth:
            return None
        return {"type": "auth", **auth}

    async def _run(self) -> None:
        failures = 0
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            self.connect_attempts += 1
            opened = False
            try:
                async with self._connect(self.url) as socket:
                    self._socket = socket
                    opened = True
                    failures = 0
                    self._set_state(ConnectionState.OPEN)
                    logger.info(f"Realtime connection open: {self.url}")

                    auth = self._auth_message()
                    if auth is not None:
                        await socket.send(json.dumps(auth))

                    async for raw in socket:
                        self._dispatch(raw)
                logger.info("Realtime connection closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if opened:
                    logger.info(f"Realtime connection lost: {e}")
                else:
                    logger.warning(f"Realtime connection setup failed: {e}")
            finally:
                self._socket = None
                self._set_state(ConnectionState.CLOSED)

            if self._closed:
                break

            base = self.reconnect_delay if opened else self.error_retry_delay
            delay = self._next_delay(base, failures)
            failures += 1
            logger.debug(f"Reconnecting in {delay:.2f}s")
            await asyncio.sleep(delay)

    def _dispatch(self, raw: Any) -> None:
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8")
            message = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Realtime message parse error: {e}")
            return
        if not isinstance(message, dict):
            return
        try:
            self._on_message(message)
        except Exception as e:
            logger.error(f"Realtime message handler failed: {e}", exc_info=True)
