"""
Specific Elevator Scenario Test

This module tests the reference two-car building scenario:
- Floors 1-10, two cars idle at floor 1
- A hall call UP from floor 5 and a hall call DOWN from floor 8
- Passengers in car 1 pressing floors 7 and 3
"""
import unittest

from elevator_config import get_config
from elevator_dispatcher import ElevatorDispatcher
from elevator_interface import Direction
from elevator_mock import SimulatedClock, StopRecorder


class SpecificScenarioTest(unittest.IsolatedAsyncioTestCase):
    """Specific Elevator Scenario Test Class"""

    def setUp(self):
        """Initialize test environment"""
        self.clock = SimulatedClock()
        self.dispatcher = ElevatorDispatcher.from_config(get_config(), elapse=self.clock)
        self.car1, self.car2 = self.dispatcher.cars

        # Record elevator stops
        self.recorder = StopRecorder()
        for car in self.dispatcher.cars:
            car.subscribe(self.recorder)

    def test_hall_calls_assigned(self):
        """First call goes to car 1 on the tie, second to car 2 once car 1 is busy"""
        self.assertTrue(self.dispatcher.request_hall(5, Direction.Up))
        self.assertTrue(self.dispatcher.request_hall(8, Direction.Down))

        self.assertEqual([r.key for r in self.car1.hall_requests], [(5, Direction.Up)])
        self.assertEqual([r.key for r in self.car2.hall_requests], [(8, Direction.Down)])

    async def test_pickup_then_cabin_requests(self):
        """Car 1 picks up at 5 going up, continues to 7, then reverses to 3"""
        self.dispatcher.request_hall(5, Direction.Up)
        self.dispatcher.request_hall(8, Direction.Down)

        self.assertTrue(await self.dispatcher.step_all())
        self.assertEqual(self.car1.current_floor, 5)
        self.assertEqual(self.car1.direction, Direction.Up)
        self.assertEqual(self.car1.hall_requests, [])

        # Passenger boards at 5; another passenger is already riding to 3
        self.dispatcher.request_floor(1, 7)
        self.dispatcher.request_floor(1, 3)

        await self.dispatcher.run_until_idle()

        self.assertEqual(self.recorder.stops_for(1), [5, 7, 3])
        self.assertEqual(self.car1.current_floor, 3)
        self.assertEqual(self.car2.current_floor, 8)
        self.assertFalse(self.car1.has_pending_requests)
        self.assertFalse(self.car2.has_pending_requests)

    async def test_all_requests_submitted_up_front(self):
        """With every request queued before the first round, car 1 sweeps 3, 5, 7"""
        self.dispatcher.request_hall(5, Direction.Up)
        self.dispatcher.request_hall(8, Direction.Down)
        self.dispatcher.request_floor(1, 7)
        self.dispatcher.request_floor(1, 3)

        rounds = await self.dispatcher.run_until_idle()

        self.assertEqual(self.recorder.stops_for(1), [3, 5, 7])
        self.assertEqual(rounds, 3)
        self.assertFalse(await self.dispatcher.step_all())

    async def test_car2_serves_down_call(self):
        """Car 2 travels to 8 and retires the down call before going idle"""
        self.dispatcher.request_hall(5, Direction.Up)
        self.dispatcher.request_hall(8, Direction.Down)

        await self.dispatcher.run_until_idle()

        # Arriving going up leaves the down call pending, so the now idle car
        # opens again at 8 to serve it
        self.assertEqual(self.recorder.stops_for(2), [8, 8])
        self.assertEqual(self.car2.hall_requests, [])
        self.assertEqual(self.car2.direction, Direction.Idle)

    async def test_cars_run_concurrently(self):
        """Both cars finish the first round in the same simulated span"""
        self.dispatcher.request_floor(1, 4)
        self.dispatcher.request_floor(2, 4)

        await self.dispatcher.step_all()

        # Each car awaits travel, open, dwell and close once, taking turns
        self.assertEqual(self.clock.task_names(), ["car-1", "car-2"] * 4)
        self.assertEqual(self.car1.current_floor, 4)
        self.assertEqual(self.car2.current_floor, 4)

        # 3 floors at 2.0 s, plus 1.5 + 3.0 + 1.5 s at the stop, spent side by side
        self.assertEqual(self.clock.now, 12.0)
        self.assertEqual(self.clock.total_elapsed, 24.0)

    async def test_round_lasts_as_long_as_slowest_car(self):
        """A round ends with its slowest car and the next round starts from there"""
        self.dispatcher.request_floor(1, 2)
        self.dispatcher.request_floor(2, 10)

        await self.dispatcher.step_all()
        # Car 2: 9 floors at 2.0 s plus 6.0 s at the stop
        self.assertEqual(self.clock.now, 24.0)

        self.dispatcher.request_floor(1, 3)
        await self.dispatcher.step_all()
        # Car 1: 1 floor at 2.0 s plus 6.0 s, after the previous round
        self.assertEqual(self.clock.now, 32.0)

    def test_no_op_cabin_request(self):
        """Pressing the current floor with closed doors changes nothing"""
        self.assertTrue(self.dispatcher.request_floor(1, 1))
        self.assertEqual(self.car1.cabin_requests, [])


if __name__ == "__main__":
    unittest.main()
