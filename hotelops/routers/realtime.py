"""
实时变更推送路由
WebSocket /realtime/{table}?token=<员工 token>，推送本酒店该表的行级变更
"""
import asyncio
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from sqlalchemy.orm import Session
from hotelops.database import get_db
from hotelops.models.events import SUBSCRIBABLE_TABLES
from hotelops.services.realtime import change_feed
from hotelops.security.auth import user_from_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["实时推送"])


@router.websocket("/{table}")
async def stream_changes(
    websocket: WebSocket,
    table: str,
    token: str = Query(...),
    db: Session = Depends(get_db)
):
    """订阅某张表的变更，直到客户端断开"""
    try:
        user = user_from_token(token, db)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if table not in SUBSCRIBABLE_TABLES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hotel_id = user.hotel_id
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # 发布方可能在其他线程，回调通过事件循环转交
    subscription = change_feed.subscribe(
        table, hotel_id, lambda change: loop.call_soon_threadsafe(queue.put_nowait, change)
    )
    await websocket.accept()

    receive = asyncio.ensure_future(websocket.receive())
    try:
        while True:
            forward = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({receive, forward}, return_when=asyncio.FIRST_COMPLETED)

            if receive in done:
                if receive.result()["type"] == "websocket.disconnect":
                    forward.cancel()
                    break
                receive = asyncio.ensure_future(websocket.receive())

            if forward in done:
                await websocket.send_json(forward.result())
            else:
                forward.cancel()
    finally:
        subscription.unsubscribe()
        receive.cancel()
        logger.info(f"Realtime subscription closed: {table} (hotel {hotel_id})")
