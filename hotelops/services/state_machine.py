"""
状态机定义 - 房间 / 预订 / 任务 / 服务请求的合法状态转换

服务层在修改状态前调用 validate，非法转换抛出 WrongState（带期望状态）
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Type
import logging

from hotelops.errors import WrongState
from hotelops.models.ontology import (
    RoomStatus, BookingStatus, TaskStatus, ServiceRequestStatus
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作
    """

    from_state: str
    to_state: str
    trigger: str


class StateMachine:
    """
    状态机

    Example:
        >>> BOOKING_MACHINE.can_transition("confirmed", "checked_in")
        True
        >>> BOOKING_MACHINE.validate("checked_out", "checked_in")
        Traceback (most recent call last):
        ...
        hotelops.errors.WrongState: ...
    """

    def __init__(self, name: str, states: Iterable[str], transitions: List[StateTransition],
                 terminal_states: Iterable[str] = ()):
        self.name = name
        self.states: FrozenSet[str] = frozenset(states)
        self.terminal_states: FrozenSet[str] = frozenset(terminal_states)
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}

        # (from_state, to_state) -> transition
        for t in transitions:
            self._transition_map.setdefault(t.from_state, {})[t.to_state] = t

    def get_transition(self, from_state: str, to_state: str) -> Optional[StateTransition]:
        return self._transition_map.get(_value(from_state), {}).get(_value(to_state))

    def can_transition(self, from_state: str, to_state: str, trigger: Optional[str] = None) -> bool:
        transition = self.get_transition(from_state, to_state)
        if transition is None:
            return False
        return trigger is None or transition.trigger == trigger

    def allowed_targets(self, from_state: str) -> List[str]:
        return sorted(self._transition_map.get(_value(from_state), {}))

    def sources_for(self, to_state: str) -> List[str]:
        """能转换到 to_state 的所有源状态"""
        target = _value(to_state)
        return sorted(s for s, targets in self._transition_map.items() if target in targets)

    def validate(self, from_state: str, to_state: str, trigger: Optional[str] = None,
                 error_class: Type[WrongState] = WrongState) -> StateTransition:
        """校验转换，非法时抛出 error_class，expected 为可到达目标状态的源状态"""
        if self.can_transition(from_state, to_state, trigger):
            return self.get_transition(from_state, to_state)

        expected = " | ".join(self.sources_for(to_state)) or None
        logger.warning(
            f"Rejected {self.name} transition '{_value(from_state)}' -> '{_value(to_state)}'"
            + (f" (trigger {trigger})" if trigger else "")
        )
        raise error_class(
            f"{self.name} 状态为 {_value(from_state)}，无法变更为 {_value(to_state)}",
            expected=expected,
        )


def _value(state) -> str:
    return getattr(state, "value", state)


# ============== 房间 ==============
# 手动操作可以在 available / cleaning / maintenance 之间自由切换；
# occupied 只能由入住产生，退房后必须进入 cleaning

_MANUAL_TARGETS = (RoomStatus.AVAILABLE, RoomStatus.CLEANING, RoomStatus.MAINTENANCE)

ROOM_MACHINE = StateMachine(
    name="Room",
    states=[s.value for s in RoomStatus],
    transitions=[
        StateTransition(src.value, dst.value, "manual")
        for src in RoomStatus for dst in _MANUAL_TARGETS if src != dst
    ] + [
        StateTransition(RoomStatus.AVAILABLE.value, RoomStatus.OCCUPIED.value, "check_in"),
        StateTransition(RoomStatus.OCCUPIED.value, RoomStatus.CLEANING.value, "check_out"),
    ],
)

# ============== 预订 ==============

BOOKING_MACHINE = StateMachine(
    name="Booking",
    states=[s.value for s in BookingStatus],
    transitions=[
        StateTransition(BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value, "check_in"),
        StateTransition(BookingStatus.CHECKED_IN.value, BookingStatus.CHECKED_OUT.value, "check_out"),
        StateTransition(BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value, "cancel"),
    ],
    terminal_states=[BookingStatus.CHECKED_OUT.value, BookingStatus.CANCELLED.value],
)

# ============== 任务 ==============

TASK_MACHINE = StateMachine(
    name="Task",
    states=[s.value for s in TaskStatus],
    transitions=[
        StateTransition(TaskStatus.PENDING.value, TaskStatus.COMPLETED.value, "complete"),
    ],
    terminal_states=[TaskStatus.COMPLETED.value],
)

# ============== 服务请求 ==============

SERVICE_REQUEST_MACHINE = StateMachine(
    name="ServiceRequest",
    states=[s.value for s in ServiceRequestStatus],
    transitions=[
        StateTransition(ServiceRequestStatus.PENDING.value, ServiceRequestStatus.IN_PROGRESS.value, "start"),
        StateTransition(ServiceRequestStatus.IN_PROGRESS.value, ServiceRequestStatus.COMPLETED.value, "complete"),
        StateTransition(ServiceRequestStatus.PENDING.value, ServiceRequestStatus.COMPLETED.value, "complete"),
        StateTransition(ServiceRequestStatus.PENDING.value, ServiceRequestStatus.CANCELLED.value, "cancel"),
    ],
    terminal_states=[ServiceRequestStatus.COMPLETED.value, ServiceRequestStatus.CANCELLED.value],
)
