from bisect import insort
from typing import Set, Optional, List, Tuple, Union
import asyncio
import logging

from elevator_interface import (
    CarState, Direction, DoorState, ElapseFn, IllegalStateTransition,
    LEGAL_TRANSITIONS, RequestResult, StatusListener, format_direction, sleep_elapse,
)
from elevator_requests import CabinRequest, CarStatus, HallRequest
from elevator_config import (
    DEFAULT_CAPACITY, DEFAULT_MAX_FLOOR, DEFAULT_MIN_FLOOR,
    DOOR_OPERATION_TIME, DWELL_TIME, FLOOR_TRAVEL_TIME,
)

logger = logging.getLogger("ElevatorSystem")


class ElevatorCar:
    """
    A single elevator car with its own request queues and door/motion cycle.

    The car picks its next stop with a SCAN policy: it keeps serving requests
    ahead of it in its current direction and only reverses when nothing is
    left ahead. Each call to advance_cycle performs one full stop: move,
    open, dwell, retire the satisfied requests and close.
    """

    def __init__(self, car_id: int,
                 min_floor: int = DEFAULT_MIN_FLOOR,
                 max_floor: int = DEFAULT_MAX_FLOOR,
                 elapse: Optional[ElapseFn] = None,
                 capacity: int = DEFAULT_CAPACITY,
                 floor_travel_time: float = FLOOR_TRAVEL_TIME,
                 door_operation_time: float = DOOR_OPERATION_TIME,
                 dwell_time: float = DWELL_TIME,
                 start_floor: Optional[int] = None) -> None:
        """
        Initialize the car.

        Args:
            car_id: Identifier of the car within its building
            min_floor: Lowest floor the car can reach
            max_floor: Highest floor the car can reach
            elapse: Timing collaborator awaited for travel, door and dwell time
            capacity: Passenger capacity (display only)
            floor_travel_time: Seconds to travel one floor
            door_operation_time: Seconds to open or close the doors
            dwell_time: Seconds the doors are held open at a stop
            start_floor: Initial floor, defaults to min_floor

        Raises:
            ValueError: If the floor range is empty or start_floor is outside it
        """
        if min_floor >= max_floor:
            raise ValueError(f"min_floor ({min_floor}) must be below max_floor ({max_floor})")
        if start_floor is None:
            start_floor = min_floor
        if not min_floor <= start_floor <= max_floor:
            raise ValueError(f"start_floor {start_floor} is outside [{min_floor}, {max_floor}]")

        self.car_id = car_id
        self._min_floor = min_floor
        self._max_floor = max_floor
        self.current_floor = start_floor
        self.direction = Direction.Idle
        self.door_state = DoorState.Closed
        self.is_moving = False

        # Pending requests
        self.cabin_requests: List[int] = []
        self.hall_requests: List[HallRequest] = []

        # Display-only passenger tracking
        self.capacity = capacity
        self.current_passengers = 0

        self.floor_travel_time = floor_travel_time
        self.door_operation_time = door_operation_time
        self.dwell_time = dwell_time
        self._elapse = elapse or sleep_elapse

        # One cycle at a time per car
        self._cycle_lock = asyncio.Lock()
        self._listeners: List[StatusListener] = []

        logger.info(f"Car {car_id} initialized with min_floor={min_floor}, max_floor={max_floor}",
                    extra={"car_id": car_id, "floor": start_floor})

    @property
    def min_floor(self) -> int:
        return self._min_floor

    @property
    def max_floor(self) -> int:
        return self._max_floor

    @property
    def state(self) -> CarState:
        """Combined door/motion state derived from is_moving and door_state."""
        if self.is_moving:
            if self.door_state is not DoorState.Closed:
                raise IllegalStateTransition(
                    f"Car {self.car_id} is moving with doors {self.door_state.value}")
            return CarState.Moving
        return {
            DoorState.Closed: CarState.Idle,
            DoorState.Opening: CarState.Opening,
            DoorState.Open: CarState.Open,
            DoorState.Closing: CarState.Closing,
        }[self.door_state]

    @property
    def has_pending_requests(self) -> bool:
        return bool(self.cabin_requests or self.hall_requests)

    @property
    def is_busy(self) -> bool:
        return self.is_moving or self.has_pending_requests

    def subscribe(self, listener: StatusListener) -> None:
        """
        Register a listener that receives a CarStatus after every state change.

        Args:
            listener: Callable taking a CarStatus
        """
        self._listeners.append(listener)

    # Request management

    def submit(self, request: Union[CabinRequest, HallRequest]) -> RequestResult:
        """
        Handle a validated request model from any button panel.

        Args:
            request: A cabin or hall request

        Returns:
            Result of queuing the request
        """
        if isinstance(request, HallRequest):
            return self.add_hall_request(request.floor, request.direction)
        return self.add_cabin_request(request.floor)

    def add_cabin_request(self, floor: int) -> RequestResult:
        """
        Process a request made from inside the car.

        A request for the floor the car is standing at with closed doors is
        already satisfied and leaves the queue unchanged.

        Args:
            floor: Destination floor

        Returns:
            ACCEPTED, or INVALID_FLOOR if the floor is outside the car's range
        """
        if not self._is_floor_in_range(floor):
            logger.warning(f"Car {self.car_id}: Invalid floor {floor}",
                           extra={"car_id": self.car_id, "floor": floor, "action": "cabin_request"})
            return RequestResult.INVALID_FLOOR

        if (floor == self.current_floor and self.door_state is DoorState.Closed
                and not self.is_moving):
            logger.info(f"Car {self.car_id}: Already at floor {floor}",
                        extra={"car_id": self.car_id, "floor": floor, "action": "cabin_request"})
            return RequestResult.ACCEPTED

        if floor not in self.cabin_requests:
            insort(self.cabin_requests, floor)
            logger.info(f"Car {self.car_id}: Floor {floor} requested from inside",
                        extra={"car_id": self.car_id, "floor": floor, "action": "cabin_request"})
            self._notify()
        return RequestResult.ACCEPTED

    def add_hall_request(self, floor: int, direction: Direction) -> RequestResult:
        """
        Process a hall call assigned to this car.

        Args:
            floor: Floor where the call button was pressed
            direction: Requested travel direction

        Returns:
            ACCEPTED, INVALID_FLOOR or INVALID_DIRECTION
        """
        if not self._is_floor_in_range(floor):
            logger.warning(f"Car {self.car_id}: Invalid floor {floor}",
                           extra={"car_id": self.car_id, "floor": floor, "action": "hall_request"})
            return RequestResult.INVALID_FLOOR

        # No destination exists above the top floor or below the bottom floor
        if (direction is Direction.Idle
                or (floor == self._max_floor and direction is Direction.Up)
                or (floor == self._min_floor and direction is Direction.Down)):
            logger.warning(f"Car {self.car_id}: Invalid direction {format_direction(direction)} from floor {floor}",
                           extra={"car_id": self.car_id, "floor": floor, "action": "hall_request"})
            return RequestResult.INVALID_DIRECTION

        if any(r.key == (floor, direction) for r in self.hall_requests):
            logger.debug(f"Car {self.car_id}: Hall call {floor}{format_direction(direction)} already registered")
            return RequestResult.ACCEPTED

        self.hall_requests.append(HallRequest(floor=floor, direction=direction))
        logger.info(f"Car {self.car_id}: Called to floor {floor} going {format_direction(direction)}",
                    extra={"car_id": self.car_id, "floor": floor,
                           "direction": format_direction(direction), "action": "hall_request"})
        self._notify()
        return RequestResult.ACCEPTED

    # Next-stop selection

    def _eligible_floors(self) -> Set[int]:
        floors = set(self.cabin_requests)
        for request in self.hall_requests:
            # Calls behind a car committed to a direction wait for the reversal
            if (self.direction is Direction.Idle
                    or request.direction is self.direction
                    or request.floor == self.current_floor
                    or (self.direction is Direction.Up and request.floor > self.current_floor)
                    or (self.direction is Direction.Down and request.floor < self.current_floor)):
                floors.add(request.floor)
        return floors

    def next_stop(self) -> Optional[int]:
        """
        Determine the next floor to visit using the SCAN algorithm.

        Returns:
            The next floor, or None if no request is eligible
        """
        floors = self._eligible_floors()
        if not floors:
            return None

        if self.direction in (Direction.Up, Direction.Idle):
            above = [f for f in floors if f > self.current_floor]
            if above:
                return min(above)

        if self.direction in (Direction.Down, Direction.Idle):
            below = [f for f in floors if f < self.current_floor]
            if below:
                return max(below)

        # Nothing ahead: closest eligible floor, lower floor wins ties
        nearest = min(floors, key=lambda f: (abs(f - self.current_floor), f))
        logger.debug(f"Car {self.car_id}: No stop ahead going {format_direction(self.direction)}, "
                     f"falling back to nearest floor {nearest}")
        return nearest

    # Cycle execution

    async def advance_cycle(self) -> bool:
        """
        Run one cycle: select a destination, move, open, dwell, retire, close.

        Requests submitted while the cycle runs are not retired by it; they are
        picked up by the next cycle.

        Returns:
            True if there was work to do, False if the car is idle
        """
        async with self._cycle_lock:
            destination = self.next_stop()
            if destination is None:
                if self.direction is not Direction.Idle:
                    self.direction = Direction.Idle
                    self._notify()
                # Only calls behind the car remain; an idle car may reverse for them
                if self.has_pending_requests:
                    destination = self.next_stop()
                if destination is None:
                    return False

            cabin_snapshot = set(self.cabin_requests)
            hall_snapshot = {r.key for r in self.hall_requests}

            self._update_direction(destination)
            await self._move_to_floor(destination)
            await self._open_doors()

            # Hold the doors for boarding and alighting
            await self._elapse(self.dwell_time)

            self._remove_completed_requests(destination, cabin_snapshot, hall_snapshot)
            await self._close_doors()
            return True

    def _update_direction(self, destination: int) -> None:
        if destination > self.current_floor:
            self.direction = Direction.Up
        elif destination < self.current_floor:
            self.direction = Direction.Down
        else:
            self.direction = Direction.Idle

    async def _move_to_floor(self, target_floor: int) -> None:
        if target_floor == self.current_floor:
            return

        floors_to_travel = abs(target_floor - self.current_floor)
        logger.info(f"Car {self.car_id}: Moving {format_direction(self.direction)} "
                    f"from floor {self.current_floor} to {target_floor}",
                    extra={"car_id": self.car_id, "floor": self.current_floor,
                           "direction": format_direction(self.direction), "action": "move"})
        self._enter(CarState.Moving)
        await self._elapse(floors_to_travel * self.floor_travel_time)
        self.current_floor = target_floor
        logger.info(f"Car {self.car_id}: Arrived at floor {self.current_floor}",
                    extra={"car_id": self.car_id, "floor": self.current_floor, "action": "arrive"})

    async def _open_doors(self) -> None:
        self._enter(CarState.Opening)
        await self._elapse(self.door_operation_time)
        self._enter(CarState.Open)
        logger.info(f"Car {self.car_id}: Doors open at floor {self.current_floor}",
                    extra={"car_id": self.car_id, "floor": self.current_floor, "action": "doors_open"})

    async def _close_doors(self) -> None:
        self._enter(CarState.Closing)
        await self._elapse(self.door_operation_time)
        self._enter(CarState.Idle)
        logger.info(f"Car {self.car_id}: Doors closed at floor {self.current_floor}",
                    extra={"car_id": self.car_id, "floor": self.current_floor, "action": "doors_closed"})

    def _remove_completed_requests(self, floor: int, cabin_snapshot: Set[int],
                                   hall_snapshot: Set[Tuple[int, Direction]]) -> None:
        if floor in cabin_snapshot and floor in self.cabin_requests:
            self.cabin_requests.remove(floor)
            logger.info(f"Car {self.car_id}: Removed cabin request for floor {floor}",
                        extra={"car_id": self.car_id, "floor": floor, "action": "remove_cabin_request"})

        # An idle car has no commitment, so it answers calls in either direction
        remaining = []
        for request in self.hall_requests:
            served = (request.floor == floor
                      and request.key in hall_snapshot
                      and (request.direction is self.direction or self.direction is Direction.Idle))
            if served:
                logger.info(f"Car {self.car_id}: Removed hall call {floor}{format_direction(request.direction)}",
                            extra={"car_id": self.car_id, "floor": floor, "action": "remove_hall_request"})
            else:
                remaining.append(request)
        self.hall_requests = remaining

    def _enter(self, new_state: CarState) -> None:
        """
        Move the door/motion state machine to a new state.

        Args:
            new_state: The state to enter

        Raises:
            IllegalStateTransition: If the transition skips a stage of the cycle
        """
        current = self.state
        if new_state not in LEGAL_TRANSITIONS[current]:
            raise IllegalStateTransition(
                f"Car {self.car_id}: Illegal transition {current.value} -> {new_state.value}")

        self.is_moving = new_state is CarState.Moving
        self.door_state = {
            CarState.Idle: DoorState.Closed,
            CarState.Moving: DoorState.Closed,
            CarState.Opening: DoorState.Opening,
            CarState.Open: DoorState.Open,
            CarState.Closing: DoorState.Closing,
        }[new_state]

        if self.is_moving and self.door_state is not DoorState.Closed:
            raise IllegalStateTransition(f"Car {self.car_id}: Doors must stay closed while moving")

        logger.debug(f"Car {self.car_id}: {current.value} -> {new_state.value}",
                     extra={"car_id": self.car_id, "floor": self.current_floor, "action": "transition"})
        self._notify()

    # Status

    def get_status(self) -> CarStatus:
        """
        Get a snapshot of the car's current state.

        Returns:
            Immutable CarStatus
        """
        return CarStatus(
            car_id=self.car_id,
            current_floor=self.current_floor,
            direction=self.direction,
            door_state=self.door_state,
            is_moving=self.is_moving,
            pending_cabin_floors=list(self.cabin_requests),
            pending_hall_requests=list(self.hall_requests),
            current_passengers=self.current_passengers,
            capacity=self.capacity,
        )

    def _notify(self) -> None:
        if not self._listeners:
            return
        status = self.get_status()
        for listener in self._listeners:
            try:
                listener(status)
            except Exception:
                logger.exception(f"Car {self.car_id}: Status listener failed",
                                 extra={"car_id": self.car_id, "action": "notify"})

    def _is_floor_in_range(self, floor: int) -> bool:
        """
        Check if a floor is within the valid range for this car.

        Args:
            floor: Floor number to check

        Returns:
            True if the floor is in range, False otherwise
        """
        if not isinstance(floor, int) or isinstance(floor, bool):
            return False
        return self._min_floor <= floor <= self._max_floor
