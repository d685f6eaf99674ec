"""
PMS API 客户端

登录后持有当前用户视图（含自定义角色聚合权限），
写操作发出前先用与服务端相同的评估器检查权限，无权限时不发送请求。
"""
from typing import Any, Callable, Dict, Optional
import logging
from urllib.parse import urlsplit, urlunsplit

import httpx

from pms_core.sync import QueryCache, RealtimeConnection, SyncController
from pms.config import settings
from pms.security.permissions import (
    evaluator, RESERVATIONS, ROOMS, GUESTS, USERS,
)
from pms.client.invalidation import AUTH_USER, CATEGORY_QUERY_KEYS, INITIAL_SYNC_KEYS

logger = logging.getLogger(__name__)


class AuthorizationDenied(Exception):
    """本地权限检查未通过，请求未发送"""

    def __init__(self, module: str, action: str):
        self.module = module
        self.action = action
        super().__init__(f"Missing permission: {module}:{action}")


def realtime_url(base_url: str, path: str = None) -> str:
    """http(s)://host -> ws(s)://host + WS_PATH"""
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, path or settings.WS_PATH, "", ""))


class PMSClient:
    """
    PMS 客户端

    Args:
        base_url: 服务地址，如 http://localhost:8000
        http: 可注入的 httpx.AsyncClient（测试时使用 MockTransport）
        cache: 查询缓存；默认新建

    Example:
        >>> client = PMSClient("http://localhost:8000")
        >>> await client.login("admin@hotel.local", "admin123")
        >>> client.permissions.can_write("rooms")
        True
    """

    def __init__(self, base_url: str, http: Optional[httpx.AsyncClient] = None,
                 cache: Optional[QueryCache] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self.cache = cache or QueryCache()
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self.permissions = evaluator.bind(lambda: self.user)
        self._sync_controller: Optional[SyncController] = None
        self.cache.register(AUTH_USER, self._fetch_user)

    # ---- 认证 ----

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        resp = await self._http.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        resp.raise_for_status()
        data = resp.json()
        self.token = data["access_token"]
        self.user = data["user"]
        self.cache.set(AUTH_USER, self.user)
        logger.info(f"Logged in as {self.user.get('email')} ({self.user.get('role')})")
        return self.user

    async def _fetch_user(self) -> Dict[str, Any]:
        resp = await self._http.get(AUTH_USER, headers=self._headers())
        resp.raise_for_status()
        self.user = resp.json()
        return self.user

    async def refresh_user(self) -> Dict[str, Any]:
        """重新获取当前用户（权限变更后）"""
        return await self.cache.fetch(AUTH_USER)

    def logout(self) -> None:
        """退出：停止同步（轮询计时与推送连接）并清除凭据"""
        self.stop_sync()
        self.token = None
        self.user = None

    # ---- 读取 ----

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = await self._http.get(path, params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    def watch(self, key: str) -> None:
        """登记活跃查询：失效时自动重新获取"""
        async def fetcher():
            return await self.get(key)
        self.cache.register(key, fetcher)

    async def query(self, key: str) -> Any:
        """读取并登记为活跃查询"""
        if not self.cache.is_registered(key):
            self.watch(key)
        return await self.cache.fetch(key)

    # ---- 写入 ----

    def ensure_permission(self, module: str, action: str) -> None:
        if not self.permissions.has_permission(module, action):
            raise AuthorizationDenied(module, action)

    async def write(self, method: str, path: str, module: str, action: str = "write",
                    json: Any = None) -> Any:
        """权限检查通过后发送写请求"""
        self.ensure_permission(module, action)
        resp = await self._http.request(method, path, json=json, headers=self._headers())
        resp.raise_for_status()
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def create_room(self, data: Dict[str, Any]) -> Any:
        return await self.write("POST", "/api/rooms", ROOMS, json=data)

    async def update_room_status(self, room_id: int, status: str) -> Any:
        return await self.write("PATCH", f"/api/rooms/{room_id}/status", ROOMS, json={"status": status})

    async def create_guest(self, data: Dict[str, Any]) -> Any:
        return await self.write("POST", "/api/guests", GUESTS, json=data)

    async def create_reservation(self, data: Dict[str, Any]) -> Any:
        return await self.write("POST", "/api/reservations", RESERVATIONS, json=data)

    async def update_reservation_status(self, reservation_id: int, status: str) -> Any:
        return await self.write(
            "PATCH", f"/api/reservations/{reservation_id}/status", RESERVATIONS, json={"status": status}
        )

    async def create_role(self, data: Dict[str, Any]) -> Any:
        return await self.write("POST", "/api/roles", USERS, json=data)

    async def delete_role(self, role_id: int) -> Any:
        return await self.write("DELETE", f"/api/roles/{role_id}", USERS, action="delete")

    # ---- 实时同步 ----

    def _auth_payload(self) -> Optional[Dict[str, Any]]:
        if not self.user:
            return None
        return {"userId": self.user.get("id"), "branchId": self.user.get("branch_id")}

    def create_sync_controller(
        self,
        poll_interval: Optional[float] = None,
        connect: Optional[Callable[[str], Any]] = None,
        on_synced: Optional[Callable[[str, str], None]] = None,
        realtime: bool = True,
    ) -> SyncController:
        """为当前用户创建同步控制器（推送 + 轮询）"""
        url = realtime_url(self.base_url)

        def connection_factory(on_message):
            return RealtimeConnection(
                url,
                on_message,
                auth=self._auth_payload,
                connect=connect,
                reconnect_delay=settings.WS_RECONNECT_DELAY,
                error_retry_delay=settings.WS_ERROR_RETRY_DELAY,
            )

        self.stop_sync()
        self._sync_controller = SyncController(
            self.cache,
            CATEGORY_QUERY_KEYS,
            INITIAL_SYNC_KEYS,
            connection_factory=connection_factory if realtime else None,
            poll_interval=poll_interval or settings.SYNC_POLL_INTERVAL,
            sync_interval=settings.SYNC_DEV_POLL_INTERVAL if settings.DEBUG else None,
            on_synced=on_synced,
        )
        return self._sync_controller

    @property
    def sync_controller(self) -> Optional[SyncController]:
        return self._sync_controller

    def stop_sync(self) -> None:
        if self._sync_controller is not None:
            self._sync_controller.stop()
            self._sync_controller = None

    async def close(self) -> None:
        self.stop_sync()
        self.cache.cancel_all()
        if self._owns_http:
            await self._http.aclose()
