"""
路由公共依赖
"""
from typing import Any, Callable
from fastapi import Request
from pms_core.engine import Event


def get_event_publisher(request: Request) -> Callable[[Event], Any]:
    """应用持有的事件总线的发布方法"""
    return request.app.state.event_bus.publish
