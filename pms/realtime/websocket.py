"""
WebSocket 端点 - 实时数据变更推送

入站：{"type": "auth", "userId": ..., "branchId": ...}，以最近一次为准
出站：{"event": "data_update", "data": {"type": <category>}, "timestamp": ...}

广播可能来自线程池中的同步路由，投递通过 call_soon_threadsafe
放入本连接的发送队列，由本端点自己的任务写出。
"""
import asyncio
import json
import logging
from datetime import datetime, UTC
from fastapi import WebSocket, WebSocketDisconnect
from pms_core.realtime import ClientConnection, ConnectionRegistry

logger = logging.getLogger(__name__)

AUTH_MESSAGE = "auth"
AUTH_ACK_EVENT = "auth_ack"


def _field(message: dict, camel: str, snake: str):
    return message[camel] if camel in message else message.get(snake)


def handle_inbound(connection: ClientConnection, raw: str) -> bool:
    """处理一条入站消息；格式错误记录日志后忽略，返回是否为有效 auth 消息"""
    try:
        message = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Connection {connection.connection_id}: malformed message ignored: {e}")
        return False
    if not isinstance(message, dict):
        logger.warning(f"Connection {connection.connection_id}: non-object message ignored")
        return False

    if message.get("type") == AUTH_MESSAGE:
        connection.announce(
            _field(message, "userId", "user_id"),
            _field(message, "branchId", "branch_id"),
        )
        logger.info(
            f"Connection {connection.connection_id} announced user={connection.user_id} "
            f"branch={connection.branch_id}"
        )
        return True

    logger.debug(f"Connection {connection.connection_id}: unhandled message type {message.get('type')!r}")
    return False


async def _pump(websocket: WebSocket, queue: asyncio.Queue, connection: ClientConnection) -> None:
    try:
        while True:
            message = await queue.get()
            await websocket.send_text(message)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.info(f"Connection {connection.connection_id} send failed: {e}")
        connection.close()


async def realtime_endpoint(websocket: WebSocket) -> None:
    """实时推送连接处理"""
    registry: ConnectionRegistry = websocket.app.state.connection_registry
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def send(message: str) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, message)

    connection = registry.register(ClientConnection(send=send))
    sender = loop.create_task(_pump(websocket, queue, connection))
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                raw = (frame.get("bytes") or b"").decode("utf-8", errors="replace")
            if handle_inbound(connection, raw):
                connection.deliver(json.dumps({
                    "event": AUTH_ACK_EVENT,
                    "data": {"userId": connection.user_id, "branchId": connection.branch_id},
                    "timestamp": datetime.now(UTC).isoformat(),
                }))
    except WebSocketDisconnect:
        logger.info(f"Connection {connection.connection_id} disconnected")
    finally:
        registry.unregister(connection)
        sender.cancel()
