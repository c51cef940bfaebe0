from contextvars import ContextVar
from typing import Dict, List, Optional, Tuple
import asyncio
import logging

from elevator_interface import CarState, DoorState
from elevator_requests import CarStatus

logger = logging.getLogger("ElevatorSystem")

# Chain of task ids from the outermost task that awaited the clock down to the current one
_task_lineage: ContextVar[Tuple[int, ...]] = ContextVar("simulated_task_lineage", default=())


class SimulatedClock:
    """
    Virtual-time elapse function for tests and fast simulations.

    Awaiting the clock advances the simulated time of the calling task instead
    of sleeping. Each task keeps its own timeline: a task started by another
    one (for example by asyncio.gather) begins at its parent's time, and the
    parent catches up to the latest of its finished children. Cars stepped in
    the same round therefore overlap, and a round costs as long as its slowest
    car rather than the sum of all cars.

    The clock still yields to the event loop on every call, so concurrent cars
    interleave the way they would in real time. Each call is recorded in
    `calls` as (task name, seconds).
    """

    def __init__(self, start: float = 0.0) -> None:
        """
        Initialize the clock.

        Args:
            start: Initial simulated time in seconds
        """
        self.start = start
        self.durations: List[float] = []
        self.calls: List[Tuple[str, float]] = []
        self._times: Dict[Tuple[int, ...], float] = {}
        self._tasks: Dict[Tuple[int, ...], asyncio.Task] = {}

    async def __call__(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"Cannot elapse a negative duration: {seconds}")

        task = asyncio.current_task()
        lineage = _task_lineage.get()
        if not lineage or lineage[-1] != id(task):
            lineage = lineage + (id(task),)
            _task_lineage.set(lineage)
        if lineage not in self._times:
            self._times[lineage] = self._catch_up(lineage[:-1])
            self._tasks[lineage] = task

        self._times[lineage] = self._catch_up(lineage) + seconds
        self.durations.append(seconds)
        self.calls.append((task.get_name(), seconds))
        await asyncio.sleep(0)

    def _catch_up(self, lineage: Tuple[int, ...]) -> float:
        # A task resumes no earlier than the end of its finished children
        current = self._times.get(lineage, self.start)
        for other, other_time in self._times.items():
            if (len(other) > len(lineage) and other[:len(lineage)] == lineage
                    and self._tasks[other].done()):
                current = max(current, other_time)
        return current

    @property
    def now(self) -> float:
        """Latest simulated time reached by any task."""
        return max(self._times.values(), default=self.start)

    @property
    def total_elapsed(self) -> float:
        """Sum of every awaited duration, regardless of overlap."""
        return sum(self.durations)

    def task_names(self) -> List[str]:
        return [name for name, _ in self.calls]


class StopRecorder:
    """
    Status listener that records where each car stopped and the states it went through.

    A stop is recorded each time a car's doors finish opening, mirroring the
    moment passengers could board or alight.
    """

    def __init__(self) -> None:
        self.stops: Dict[int, List[int]] = {}
        self.states: Dict[int, List[CarState]] = {}
        self.last_status: Dict[int, CarStatus] = {}

    def __call__(self, status: CarStatus) -> None:
        previous: Optional[CarStatus] = self.last_status.get(status.car_id)
        self.last_status[status.car_id] = status

        state = _state_of(status)
        history = self.states.setdefault(status.car_id, [])
        if not history or history[-1] is not state:
            history.append(state)

        opened = status.door_state is DoorState.Open and (
            previous is None or previous.door_state is not DoorState.Open)
        if opened:
            self.stops.setdefault(status.car_id, []).append(status.current_floor)
            logger.debug(f"Recorded stop for car {status.car_id} at floor {status.current_floor}")

    def stops_for(self, car_id: int) -> List[int]:
        return list(self.stops.get(car_id, []))


def _state_of(status: CarStatus) -> CarState:
    if status.is_moving:
        return CarState.Moving
    return {
        DoorState.Closed: CarState.Idle,
        DoorState.Opening: CarState.Opening,
        DoorState.Open: CarState.Open,
        DoorState.Closing: CarState.Closing,
    }[status.door_state]
