"""
HotelOps 主应用入口
酒店运营状态服务：房态、预订、任务与服务请求、操作日志
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from hotelops import __version__
from hotelops.config import settings
from hotelops.database import init_db
from hotelops.errors import HotelOpsError, WrongState, TransientStoreFailure
from hotelops.routers import (
    auth, hotels, rooms, bookings, guests, tasks, service_requests,
    activity_log, portal, reports, realtime
)

logger = logging.getLogger(__name__)

# 存储暂时不可用时建议客户端的重试间隔（秒）
RETRY_AFTER_SECONDS = 1


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    # 初始化数据库
    init_db()
    logger.info(f"{settings.APP_NAME} {__version__} started")

    yield


# 创建应用
app = FastAPI(
    title="HotelOps - 酒店运营状态服务",
    description="房态登记、预订生命周期、任务与服务请求队列、操作日志",
    version=__version__,
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


@app.exception_handler(HotelOpsError)
async def hotelops_error_handler(request: Request, exc: HotelOpsError):
    """业务错误统一映射为 HTTP 响应"""
    body = {"detail": exc.message}
    headers = None

    if isinstance(exc, WrongState) and exc.expected is not None:
        body["expected"] = exc.expected
    if isinstance(exc, TransientStoreFailure):
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


# 注册路由
app.include_router(auth.router)
app.include_router(hotels.router)
app.include_router(rooms.router)
app.include_router(bookings.router)
app.include_router(guests.router)
app.include_router(tasks.router)
app.include_router(service_requests.router)
app.include_router(activity_log.router)
app.include_router(portal.router)
app.include_router(reports.router)
app.include_router(realtime.router)


@app.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
