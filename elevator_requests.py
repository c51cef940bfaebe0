import time
from typing import Any, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from elevator_interface import Direction, DoorState


def _validate_floor(v: Any) -> int:
    # bool is an int subclass but never a meaningful floor
    if not isinstance(v, int) or isinstance(v, bool):
        raise ValueError("Floor must be an integer")
    return v


class CabinRequest(BaseModel):
    """
    Request made from inside a car for a specific floor.

    Attributes:
        floor: The destination floor
    """
    model_config = ConfigDict(frozen=True)

    floor: int

    @field_validator('floor', mode='before')
    @classmethod
    def validate_floor(cls, v: Any) -> int:
        return _validate_floor(v)


class HallRequest(BaseModel):
    """
    Request made from a floor's call button.

    Two hall requests are the same call when floor and direction match; the
    creation timestamp is kept for reporting only.

    Attributes:
        floor: The floor where the call button was pressed
        direction: The direction the passenger wants to travel (Up or Down)
        created_at: Time the request was created (seconds since the epoch)
    """
    model_config = ConfigDict(frozen=True)

    floor: int
    direction: Direction
    created_at: float = Field(default_factory=time.time)

    @field_validator('floor', mode='before')
    @classmethod
    def validate_floor(cls, v: Any) -> int:
        return _validate_floor(v)

    @field_validator('direction')
    @classmethod
    def validate_direction(cls, v: Direction) -> Direction:
        if v is Direction.Idle:
            raise ValueError("Hall request direction must be Up or Down")
        return v

    @property
    def key(self) -> Tuple[int, Direction]:
        return self.floor, self.direction


class CarStatus(BaseModel):
    """
    Point-in-time snapshot of a car, published to status listeners.
    """
    model_config = ConfigDict(frozen=True)

    car_id: int
    current_floor: int
    direction: Direction
    door_state: DoorState
    is_moving: bool
    pending_cabin_floors: List[int]
    pending_hall_requests: List[HallRequest]
    current_passengers: int
    capacity: int
