"""
Branch PMS 主应用入口
多分店酒店/餐厅管理：自定义角色权限 + 实时数据变更推送
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pms_core.engine import EventBus
from pms_core.realtime import BroadcastChannel, ConnectionRegistry
from pms.config import settings
from pms.database import SessionLocal, init_db
from pms.realtime import register_realtime_handlers, realtime_endpoint
from pms.routers import auth, roles, users, rooms, guests, reservations, branches

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理

    事件总线、连接注册表、广播通道由应用实例持有，关闭时释放。
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()

    from pms.services.seed import seed_initial_data
    seed_db = SessionLocal()
    try:
        seed_initial_data(seed_db)
    finally:
        seed_db.close()

    app.state.event_bus = EventBus()
    app.state.connection_registry = ConnectionRegistry()
    app.state.broadcaster = BroadcastChannel(app.state.connection_registry)
    register_realtime_handlers(app.state.event_bus, app.state.broadcaster)
    logger.info(f"{settings.APP_NAME} started, realtime endpoint at {settings.WS_PATH}")

    yield

    app.state.connection_registry.close_all()
    app.state.event_bus.clear()
    logger.info(f"{settings.APP_NAME} stopped")


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="多分店酒店/餐厅管理系统：自定义角色权限与实时数据同步",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(auth.router, prefix="/api")
app.include_router(roles.role_router, prefix="/api")
app.include_router(roles.user_role_router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(rooms.router, prefix="/api")
app.include_router(guests.router, prefix="/api")
app.include_router(reservations.router, prefix="/api")
app.include_router(branches.router, prefix="/api")

# 实时推送（与 HTTP 共用端口）
app.add_api_websocket_route(settings.WS_PATH, realtime_endpoint)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "realtime": settings.WS_PATH,
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
