"""
事件总线 - 内存级发布/订阅
服务层在事务提交后发布行级变更，实时订阅（ChangeFeed）建立在它之上
"""
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
from enum import Enum
import logging
import threading

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """事件"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str  # 触发来源（服务名）
    event_id: str = field(default_factory=lambda: datetime.now().strftime("%Y%m%d%H%M%S%f"))


def _topic(event_type) -> str:
    return event_type.value if isinstance(event_type, Enum) else str(event_type)


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventBus:
    """
    内存级事件总线（线程安全单例）

    使用方式：
    1. 订阅：event_bus.subscribe("rooms.changed", handler)
    2. 发布：event_bus.publish(Event(...))
    3. 取消：event_bus.unsubscribe("rooms.changed", handler)
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._subscribers: Dict[str, List[Callable]] = {}
        self._event_history: deque = deque(maxlen=100)
        self._subscriber_lock = threading.Lock()
        self._initialized = True
        logger.info("EventBus initialized")

    def subscribe(self, event_type: str, handler: Callable) -> None:
        """订阅事件，同一处理器重复订阅只生效一次"""
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(_topic(event_type), [])
            if handler not in handlers:
                handlers.append(handler)
                logger.debug(f"Handler {_handler_name(handler)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable) -> None:
        """取消订阅"""
        with self._subscriber_lock:
            handlers = self._subscribers.get(_topic(event_type), [])
            if handler in handlers:
                handlers.remove(handler)
                logger.debug(f"Handler {_handler_name(handler)} unsubscribed from {event_type}")

    def publish(self, event: Event) -> None:
        """
        发布事件（同步执行所有处理器）

        处理器异常只记录日志，不影响其他处理器，也不影响发布方
        """
        self._event_history.append(event)

        with self._subscriber_lock:
            handlers = list(self._subscribers.get(_topic(event.event_type), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {_handler_name(handler)} error for {event.event_type}: {e}",
                    exc_info=True
                )

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """获取事件历史（最新的在前）"""
        history = list(self._event_history)
        if event_type:
            history = [e for e in history if _topic(e.event_type) == _topic(event_type)]
        return list(reversed(history))[:limit]

    def subscriber_count(self, event_type: str) -> int:
        with self._subscriber_lock:
            return len(self._subscribers.get(_topic(event_type), []))

    def clear_subscribers(self) -> None:
        """清空所有订阅（用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()

    def clear_history(self) -> None:
        """清空事件历史"""
        self._event_history.clear()


# 全局事件总线实例
event_bus = EventBus()
