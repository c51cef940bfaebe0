from typing import Any, Dict, List, Optional, Sequence
import asyncio
import logging
import threading

from elevator_car import ElevatorCar
from elevator_config import BUSY_PENALTY, SAME_DIRECTION_BONUS, BuildingSettings
from elevator_interface import Direction, ElapseFn, RequestResult, format_direction
from elevator_requests import CarStatus

logger = logging.getLogger("ElevatorSystem")


class ElevatorDispatcher:
    """
    Building-level dispatcher that owns a fixed set of cars.

    Hall calls are assigned to the car with the lowest score: distance to the
    call, minus a bonus for cars already heading the requested way, plus a
    penalty for busy cars. Cabin requests go straight to a car.
    """

    def __init__(self, cars: Sequence[ElevatorCar], min_floor: int, max_floor: int,
                 same_direction_bonus: int = SAME_DIRECTION_BONUS,
                 busy_penalty: int = BUSY_PENALTY) -> None:
        """
        Initialize the dispatcher.

        Args:
            cars: Cars in insertion order; earlier cars win scoring ties
            min_floor: Lowest floor of the building
            max_floor: Highest floor of the building
            same_direction_bonus: Score reduction for cars travelling the requested way
            busy_penalty: Score increase for moving cars or cars with pending requests

        Raises:
            ValueError: If the floor range is empty, a car's range differs from
                the building's, or two cars share an id
        """
        if min_floor >= max_floor:
            raise ValueError(f"min_floor ({min_floor}) must be below max_floor ({max_floor})")
        for car in cars:
            if car.min_floor != min_floor or car.max_floor != max_floor:
                raise ValueError(
                    f"Car {car.car_id} range [{car.min_floor}, {car.max_floor}] "
                    f"does not match building range [{min_floor}, {max_floor}]")
        ids = [car.car_id for car in cars]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate car ids: {ids}")

        self._cars: List[ElevatorCar] = list(cars)
        self.min_floor = min_floor
        self.max_floor = max_floor
        self.same_direction_bonus = same_direction_bonus
        self.busy_penalty = busy_penalty

        # Score-then-assign must not interleave between callers; reentrant so
        # status listeners notified during assignment may submit calls themselves
        self._assign_lock = threading.RLock()

        logger.info(f"ElevatorDispatcher initialized with {len(self._cars)} cars, "
                    f"min_floor={min_floor}, max_floor={max_floor}")

    @classmethod
    def from_config(cls, config: Dict[str, Any],
                    elapse: Optional[ElapseFn] = None) -> "ElevatorDispatcher":
        """
        Build a dispatcher and its cars from a configuration dictionary.

        Args:
            config: Configuration in the shape returned by get_config()
            elapse: Timing collaborator shared by all cars

        Returns:
            A dispatcher with cars numbered from 1
        """
        settings = BuildingSettings.from_config(config)
        cars = [
            ElevatorCar(
                car_id=i + 1,
                min_floor=settings.min_floor,
                max_floor=settings.max_floor,
                elapse=elapse,
                capacity=settings.capacity,
                floor_travel_time=settings.floor_travel_time,
                door_operation_time=settings.door_operation_time,
                dwell_time=settings.dwell_time,
            )
            for i in range(settings.num_cars)
        ]
        return cls(cars, settings.min_floor, settings.max_floor,
                   same_direction_bonus=settings.same_direction_bonus,
                   busy_penalty=settings.busy_penalty)

    @property
    def cars(self) -> List[ElevatorCar]:
        return list(self._cars)

    def get_car(self, car_id: int) -> Optional[ElevatorCar]:
        for car in self._cars:
            if car.car_id == car_id:
                return car
        return None

    def score(self, car: ElevatorCar, floor: int, direction: Direction) -> int:
        """
        Score a car for a hall call; lower is better.

        Args:
            car: Candidate car
            floor: Floor of the hall call
            direction: Requested direction

        Returns:
            The car's score
        """
        score = abs(car.current_floor - floor)
        if car.direction is direction:
            score -= self.same_direction_bonus
        if car.is_busy:
            score += self.busy_penalty
        return score

    def request_hall(self, floor: int, direction: Direction) -> RequestResult:
        """
        Assign a hall call to the best-scoring car.

        Args:
            floor: Floor where the call button was pressed
            direction: Requested travel direction

        Returns:
            The chosen car's result, INVALID_FLOOR if outside the building, or
            NO_ELIGIBLE_CAR if the building has no cars
        """
        if not isinstance(floor, int) or not (self.min_floor <= floor <= self.max_floor):
            logger.warning(f"Invalid floor {floor} for hall call",
                           extra={"floor": floor, "action": "request_hall"})
            return RequestResult.INVALID_FLOOR

        with self._assign_lock:
            best_car: Optional[ElevatorCar] = None
            best_score: Optional[int] = None
            for car in self._cars:
                score = self.score(car, floor, direction)
                logger.debug(f"Car {car.car_id} scored {score} for hall call {floor}{format_direction(direction)}")
                # Strict comparison keeps the earliest car on ties
                if best_score is None or score < best_score:
                    best_car, best_score = car, score

            if best_car is None:
                logger.warning(f"No car available for hall call at floor {floor}",
                               extra={"floor": floor, "action": "request_hall"})
                return RequestResult.NO_ELIGIBLE_CAR

            logger.info(f"Assigning hall call {floor}{format_direction(direction)} to car {best_car.car_id} "
                        f"(score={best_score})",
                        extra={"car_id": best_car.car_id, "floor": floor,
                               "direction": format_direction(direction), "action": "assign"})
            return best_car.add_hall_request(floor, direction)

    def request_floor(self, car_id: int, floor: int) -> RequestResult:
        """
        Forward a cabin request to a specific car.

        Args:
            car_id: Id of the car whose panel was pressed
            floor: Destination floor

        Returns:
            The car's result, or NO_ELIGIBLE_CAR if no car has that id
        """
        car = self.get_car(car_id)
        if car is None:
            logger.warning(f"Car {car_id} not found", extra={"car_id": car_id, "action": "request_floor"})
            return RequestResult.NO_ELIGIBLE_CAR
        return car.add_cabin_request(floor)

    async def step_all(self) -> bool:
        """
        Run one cycle on every car concurrently.

        Returns:
            True if any car did work during the round
        """
        tasks = [asyncio.create_task(car.advance_cycle(), name=f"car-{car.car_id}")
                 for car in self._cars]
        results = await asyncio.gather(*tasks)
        return any(results)

    async def run_until_idle(self, max_rounds: Optional[int] = None) -> int:
        """
        Drive rounds until no car has an eligible destination.

        Args:
            max_rounds: Optional upper bound on the number of rounds

        Returns:
            Number of rounds in which at least one car did work
        """
        rounds = 0
        while max_rounds is None or rounds < max_rounds:
            if not await self.step_all():
                logger.info("All cars idle")
                break
            rounds += 1
        return rounds

    def snapshot(self) -> List[CarStatus]:
        """
        Get the status of every car in insertion order.

        Returns:
            List of CarStatus snapshots
        """
        return [car.get_status() for car in self._cars]
