"""
pms_core/realtime/registry.py - 服务端连接注册表

注册表由服务端实例显式持有（见 pms.main 的 lifespan），
同一进程内可以存在多个互不干扰的注册表（测试、多实例）。
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


def normalize_branch_id(branch_id: Any) -> Optional[str]:
    """分店标识统一按字符串比较（客户端可能发送数字或字符串）"""
    if branch_id is None or branch_id == "":
        return None
    return str(branch_id)


@dataclass(eq=False)
class ClientConnection:
    """
    一个已连接的客户端

    Attributes:
        send: 投递序列化后消息的回调；抛异常表示连接已失效
        user_id: 最近一次 auth 消息声明的用户
        branch_id: 最近一次 auth 消息声明的分店（用于分店范围广播）
    """

    send: Callable[[str], None]
    user_id: Optional[str] = None
    branch_id: Optional[str] = None
    connection_id: int = field(default_factory=lambda: next(_connection_ids))
    is_open: bool = True

    def announce(self, user_id: Any = None, branch_id: Any = None) -> None:
        """处理 auth 消息：以最近一次声明为准"""
        self.user_id = None if user_id is None else str(user_id)
        self.branch_id = normalize_branch_id(branch_id)

    def receives(self, branch_id: Optional[str]) -> bool:
        """是否应收到指定分店范围的广播（None 表示全局广播）"""
        if branch_id is None:
            return True
        return self.branch_id == branch_id

    def deliver(self, message: str) -> bool:
        """投递消息，失败返回 False 并标记连接关闭"""
        if not self.is_open:
            return False
        try:
            self.send(message)
            return True
        except Exception as e:
            logger.warning(f"Delivery to connection {self.connection_id} failed: {e}")
            self.is_open = False
            return False

    def close(self) -> None:
        self.is_open = False


class ConnectionRegistry:
    """
    已打开连接的集合

    连接的增删来自 WebSocket 端点所在的事件循环，
    广播可能来自线程池中的同步路由，因此用锁保护。
    """

    def __init__(self):
        self._connections: Dict[int, ClientConnection] = {}
        self._lock = threading.Lock()

    def register(self, connection: ClientConnection) -> ClientConnection:
        with self._lock:
            self._connections[connection.connection_id] = connection
        logger.info(f"Realtime connection {connection.connection_id} registered ({len(self)} open)")
        return connection

    def unregister(self, connection: ClientConnection) -> None:
        connection.close()
        with self._lock:
            removed = self._connections.pop(connection.connection_id, None)
        if removed is not None:
            logger.info(f"Realtime connection {connection.connection_id} unregistered ({len(self)} open)")

    def snapshot(self) -> List[ClientConnection]:
        """当前连接的快照，遍历期间注册表可被修改"""
        with self._lock:
            return list(self._connections.values())

    def close_all(self) -> None:
        """关闭并清空所有连接（服务关闭时调用）"""
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            connection.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: ClientConnection) -> bool:
        with self._lock:
            return connection.connection_id in self._connections
