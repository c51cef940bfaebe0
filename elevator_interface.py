from enum import Enum
from typing import Protocol, Callable, Awaitable, TYPE_CHECKING
import asyncio

if TYPE_CHECKING:
    from elevator_requests import CarStatus


class Direction(Enum):
    """
    Represents the travel direction of a car, or of a hall call.

    Attributes:
        Up: The car is travelling (or the passenger wants to travel) upward
        Down: The car is travelling (or the passenger wants to travel) downward
        Idle: The car is at rest; matches any hall call direction
    """
    Up = 1
    Down = -1
    Idle = 0


def format_direction(direction: Direction) -> str:
    """
    Get the display label for a direction.

    Args:
        direction: The direction to format

    Returns:
        Upper-case label such as "UP", "DOWN" or "IDLE"
    """
    return direction.name.upper()


class DoorState(Enum):
    """
    Represents the state of a car's doors.

    Attributes:
        Closed: Doors fully closed, car may move
        Opening: Doors in the process of opening
        Open: Doors fully open, passengers may board or alight
        Closing: Doors in the process of closing
    """
    Closed = 'CLOSED'
    Opening = 'OPENING'
    Open = 'OPEN'
    Closing = 'CLOSING'


class CarState(Enum):
    """
    Combined door/motion state of a car, projected onto (is_moving, door_state).
    """
    Idle = 'Idle'
    Moving = 'Moving'
    Opening = 'Opening'
    Open = 'Open'
    Closing = 'Closing'


# Allowed door/motion transitions within a single cycle
LEGAL_TRANSITIONS = {
    CarState.Idle: {CarState.Moving, CarState.Opening},
    CarState.Moving: {CarState.Opening},
    CarState.Opening: {CarState.Open},
    CarState.Open: {CarState.Closing},
    CarState.Closing: {CarState.Idle},
}


class IllegalStateTransition(RuntimeError):
    """Raised when a car attempts a door/motion transition outside the cycle sequence."""


class RequestResult(Enum):
    """
    Outcome of submitting a cabin or hall request.

    Only ACCEPTED is truthy, so callers may treat the result as a boolean.

    Attributes:
        ACCEPTED: The request was queued, or was already satisfied/pending
        INVALID_FLOOR: The floor lies outside the car or building range
        INVALID_DIRECTION: Up from the top floor or Down from the bottom floor
        NO_ELIGIBLE_CAR: No car is available to take the request
    """
    ACCEPTED = 'accepted'
    INVALID_FLOOR = 'invalid_floor'
    INVALID_DIRECTION = 'invalid_direction'
    NO_ELIGIBLE_CAR = 'no_eligible_car'

    def __bool__(self) -> bool:
        return self is RequestResult.ACCEPTED


# Timing collaborator: awaited wherever a car spends (simulated) time
ElapseFn = Callable[[float], Awaitable[None]]


class StatusListener(Protocol):
    """
    Protocol for consumers of car status snapshots, such as renderers.
    """
    def __call__(self, status: "CarStatus") -> None: ...


async def sleep_elapse(seconds: float) -> None:
    """
    Elapse real time for the given duration.

    Args:
        seconds: Duration to wait
    """
    await asyncio.sleep(seconds)


async def instant_elapse(seconds: float) -> None:
    """Elapse no time at all; only yields control to other cars."""
    await asyncio.sleep(0)


def scaled_elapse(scale: float) -> ElapseFn:
    """
    Build an elapse function that sleeps for a fraction of each duration.

    Args:
        scale: Multiplier applied to every duration (0.01 runs 100x faster)

    Returns:
        An awaitable elapse function
    """
    if scale < 0:
        raise ValueError("Time scale must not be negative")

    async def _elapse(seconds: float) -> None:
        await asyncio.sleep(seconds * scale)

    return _elapse
