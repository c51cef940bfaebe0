"""
Elevator Dispatch Realistic Scenario

This script simulates a short period of building traffic: two hall calls are
dispatched to the best car, passengers inside car 1 press two floor buttons,
and the cars are driven round by round until every request is served. Each
round prints the status of every car.
"""
import asyncio
import logging
from typing import List

from elevator_config import get_config
from elevator_dispatcher import ElevatorDispatcher
from elevator_interface import Direction, format_direction, scaled_elapse
from elevator_mock import StopRecorder
from elevator_requests import CarStatus

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("RealisticScenario")


def render_status(status: CarStatus) -> str:
    """
    Format a car status as a single console line.

    Args:
        status: Snapshot to format

    Returns:
        Line such as "Elevator 1: Floor 5, UP, Internal: [7], Hall: [8DOWN]"
    """
    internal = ", ".join(str(f) for f in status.pending_cabin_floors)
    hall = ", ".join(f"{r.floor}{format_direction(r.direction)}" for r in status.pending_hall_requests)
    return (f"Elevator {status.car_id}: Floor {status.current_floor}, "
            f"{format_direction(status.direction)}, Internal: [{internal}], Hall: [{hall}]")


class RealisticScenario:
    """Two-car building scenario driven round by round"""

    def __init__(self):
        """Initialize the scenario environment"""
        self.config = get_config()
        elapse = scaled_elapse(self.config["demo"]["time_scale"])
        self.dispatcher = ElevatorDispatcher.from_config(self.config, elapse=elapse)

        # Record stops of every car
        self.recorder = StopRecorder()
        for car in self.dispatcher.cars:
            car.subscribe(self.recorder)

        self.button_presses: List[str] = []

    def call(self, floor: int, direction: Direction) -> None:
        """Press a hall call button"""
        self.button_presses.append(f"hall {floor}{format_direction(direction)}")
        if not self.dispatcher.request_hall(floor, direction):
            logger.warning(f"Hall call {floor}{format_direction(direction)} rejected")

    def press_floor(self, car_id: int, floor: int) -> None:
        """Press a floor button inside a car"""
        self.button_presses.append(f"car {car_id} -> {floor}")
        if not self.dispatcher.request_floor(car_id, floor):
            logger.warning(f"Floor {floor} rejected by car {car_id}")

    def show_status(self) -> None:
        for status in self.dispatcher.snapshot():
            print(render_status(status))

    async def run_scenario(self) -> None:
        """Run the scenario"""
        logger.info("=== Elevator System Demo ===")
        print("Initial Status:")
        self.show_status()

        # Someone on floor 5 wants to go up, someone on floor 8 wants to go down
        self.call(5, Direction.Up)
        self.call(8, Direction.Down)

        # Passengers inside car 1
        self.press_floor(1, 7)
        self.press_floor(1, 3)

        max_rounds = self.config["demo"]["max_rounds"]
        for cycle in range(max_rounds):
            print(f"\n--- Cycle {cycle + 1} ---")
            if not await self.dispatcher.step_all():
                print("All elevators idle - simulation complete")
                break
            self.show_status()
        else:
            logger.warning(f"Requests still pending after {max_rounds} cycles")

        self.report()

    def report(self) -> None:
        """Log the button presses and stop sequence of every car"""
        logger.info(f"Button press sequence: {self.button_presses}")
        for car in self.dispatcher.cars:
            logger.info(f"Elevator {car.car_id} stop sequence: {self.recorder.stops_for(car.car_id)}")


async def main():
    """Main function"""
    scenario = RealisticScenario()
    await scenario.run_scenario()


if __name__ == "__main__":
    asyncio.run(main())
