import unittest
import asyncio
import random
from unittest.mock import MagicMock

from pydantic import ValidationError

from elevator_car import ElevatorCar
from elevator_config import DEFAULT_CONFIG, BuildingSettings, get_config
from elevator_dispatcher import ElevatorDispatcher
from elevator_interface import (
    CarState, Direction, DoorState, IllegalStateTransition, RequestResult, format_direction,
    instant_elapse, scaled_elapse,
)
from elevator_mock import SimulatedClock, StopRecorder
from elevator_requests import CabinRequest, HallRequest


class TestElevatorCarRequests(unittest.TestCase):
    """Unit tests for cabin and hall request handling"""

    def setUp(self):
        """Setup before test execution"""
        self.car = ElevatorCar(1, 1, 10, elapse=SimulatedClock())

    def test_add_cabin_request(self):
        """Test cabin request is queued"""
        self.assertIs(self.car.add_cabin_request(5), RequestResult.ACCEPTED)
        self.assertEqual(self.car.cabin_requests, [5])

    def test_cabin_requests_kept_in_ascending_order(self):
        for floor in (9, 3, 6):
            self.car.add_cabin_request(floor)
        self.assertEqual(self.car.cabin_requests, [3, 6, 9])

    def test_cabin_request_is_idempotent(self):
        """Test duplicate cabin request does not change the pending set"""
        self.car.add_cabin_request(7)
        self.assertTrue(self.car.add_cabin_request(7))
        self.assertEqual(self.car.cabin_requests, [7])

    def test_cabin_request_at_current_floor_is_noop(self):
        """Test request for the current floor with closed doors is already satisfied"""
        result = self.car.add_cabin_request(1)
        self.assertIs(result, RequestResult.ACCEPTED)
        self.assertEqual(self.car.cabin_requests, [])

    def test_cabin_request_at_current_floor_queued_while_doors_open(self):
        self.car.door_state = DoorState.Open
        self.car.add_cabin_request(1)
        self.assertEqual(self.car.cabin_requests, [1])

    def test_out_of_range_requests_rejected(self):
        """Test invalid floor requests never mutate state"""
        for floor in (0, 11, -3, 100):
            self.assertIs(self.car.add_cabin_request(floor), RequestResult.INVALID_FLOOR)
            self.assertIs(self.car.add_hall_request(floor, Direction.Up), RequestResult.INVALID_FLOOR)
            self.assertIs(self.car.add_hall_request(floor, Direction.Down), RequestResult.INVALID_FLOOR)
        self.assertEqual(self.car.cabin_requests, [])
        self.assertEqual(self.car.hall_requests, [])

    def test_non_integer_floor_rejected(self):
        self.assertIs(self.car.add_cabin_request("5"), RequestResult.INVALID_FLOOR)
        self.assertIs(self.car.add_cabin_request(True), RequestResult.INVALID_FLOOR)

    def test_max_floor_up_request(self):
        """Test up request from maximum floor"""
        self.assertIs(self.car.add_hall_request(10, Direction.Up), RequestResult.INVALID_DIRECTION)
        self.assertEqual(self.car.hall_requests, [])

    def test_min_floor_down_request(self):
        """Test down request from minimum floor"""
        self.assertIs(self.car.add_hall_request(1, Direction.Down), RequestResult.INVALID_DIRECTION)
        self.assertEqual(self.car.hall_requests, [])

    def test_idle_hall_request_rejected(self):
        self.assertIs(self.car.add_hall_request(5, Direction.Idle), RequestResult.INVALID_DIRECTION)

    def test_boundary_hall_requests_in_valid_direction(self):
        self.assertTrue(self.car.add_hall_request(10, Direction.Down))
        self.assertTrue(self.car.add_hall_request(1, Direction.Up))
        self.assertEqual(len(self.car.hall_requests), 2)

    def test_duplicate_hall_request_ignored(self):
        self.car.add_hall_request(5, Direction.Up)
        self.car.add_hall_request(5, Direction.Up)
        self.car.add_hall_request(5, Direction.Down)
        keys = [r.key for r in self.car.hall_requests]
        self.assertEqual(keys, [(5, Direction.Up), (5, Direction.Down)])

    def test_hall_request_records_timestamp(self):
        self.car.add_hall_request(4, Direction.Up)
        self.assertGreater(self.car.hall_requests[0].created_at, 0)

    def test_submit_dispatches_by_request_type(self):
        self.assertTrue(self.car.submit(HallRequest(floor=5, direction=Direction.Up)))
        self.assertTrue(self.car.submit(CabinRequest(floor=7)))
        self.assertEqual(self.car.cabin_requests, [7])
        self.assertEqual([r.key for r in self.car.hall_requests], [(5, Direction.Up)])

    def test_invalid_construction(self):
        with self.assertRaises(ValueError):
            ElevatorCar(1, 5, 5)
        with self.assertRaises(ValueError):
            ElevatorCar(1, 1, 10, start_floor=11)

    def test_listener_failure_does_not_reject_request(self):
        self.car.subscribe(MagicMock(side_effect=RuntimeError("renderer down")))
        with self.assertLogs("ElevatorSystem", level="ERROR"):
            result = self.car.add_cabin_request(4)
        self.assertTrue(result)
        self.assertEqual(self.car.cabin_requests, [4])


class TestNextStop(unittest.TestCase):
    """Unit tests for SCAN next-stop selection"""

    def setUp(self):
        self.car = ElevatorCar(1, 1, 10, elapse=SimulatedClock())

    def test_no_requests(self):
        self.assertIsNone(self.car.next_stop())

    def test_closest_floor_ahead_going_up(self):
        """Test SCAN never skips a closer stop above while going up"""
        self.car.current_floor = 4
        self.car.direction = Direction.Up
        for floor in (9, 6, 8, 2):
            self.car.add_cabin_request(floor)
        self.assertEqual(self.car.next_stop(), 6)

    def test_closest_floor_ahead_going_down(self):
        self.car.current_floor = 6
        self.car.direction = Direction.Down
        for floor in (2, 4, 9):
            self.car.add_cabin_request(floor)
        self.assertEqual(self.car.next_stop(), 4)

    def test_idle_car_looks_up_first(self):
        self.car.current_floor = 5
        self.car.add_cabin_request(2)
        self.car.add_cabin_request(9)
        self.assertEqual(self.car.next_stop(), 9)

    def test_idle_car_goes_down_when_nothing_above(self):
        self.car.current_floor = 5
        self.car.add_cabin_request(2)
        self.car.add_cabin_request(3)
        self.assertEqual(self.car.next_stop(), 3)

    def test_opposite_call_behind_is_ignored(self):
        """Test a down call below an up-moving car waits for the reversal"""
        self.car.current_floor = 5
        self.car.direction = Direction.Up
        self.car.add_hall_request(3, Direction.Down)
        self.car.add_cabin_request(8)
        self.assertEqual(self.car.next_stop(), 8)

        self.car.cabin_requests.clear()
        self.assertIsNone(self.car.next_stop())

    def test_opposite_call_ahead_is_eligible(self):
        self.car.current_floor = 5
        self.car.direction = Direction.Up
        self.car.add_hall_request(9, Direction.Down)
        self.assertEqual(self.car.next_stop(), 9)

    def test_same_direction_call_behind_falls_back_to_nearest(self):
        self.car.current_floor = 5
        self.car.direction = Direction.Up
        self.car.add_hall_request(3, Direction.Up)
        self.car.add_hall_request(2, Direction.Up)
        self.assertEqual(self.car.next_stop(), 3)

    def test_call_at_current_floor_is_eligible(self):
        self.car.current_floor = 5
        self.car.direction = Direction.Up
        self.car.add_hall_request(5, Direction.Down)
        self.assertEqual(self.car.next_stop(), 5)

    def test_idle_car_answers_call_at_current_floor(self):
        self.car.add_hall_request(1, Direction.Up)
        self.assertEqual(self.car.next_stop(), 1)


class TestElevatorCarCycle(unittest.IsolatedAsyncioTestCase):
    """Unit tests for cycle execution and the door/motion state machine"""

    def setUp(self):
        self.clock = SimulatedClock()
        self.car = ElevatorCar(1, 1, 10, elapse=self.clock,
                               floor_travel_time=2.0, door_operation_time=1.5, dwell_time=3.0)

    async def test_idle_car_does_no_work(self):
        self.assertFalse(await self.car.advance_cycle())
        self.assertEqual(self.car.direction, Direction.Idle)
        self.assertEqual(self.clock.durations, [])

    async def test_cycle_moves_serves_and_retires(self):
        """Test one cycle travels, opens, dwells, retires and closes"""
        self.car.add_cabin_request(4)
        self.assertTrue(await self.car.advance_cycle())

        self.assertEqual(self.car.current_floor, 4)
        self.assertEqual(self.car.direction, Direction.Up)
        self.assertEqual(self.car.cabin_requests, [])
        self.assertEqual(self.car.door_state, DoorState.Closed)
        self.assertFalse(self.car.is_moving)
        self.assertEqual(self.clock.durations, [6.0, 1.5, 3.0, 1.5])

        self.assertFalse(await self.car.advance_cycle())
        self.assertEqual(self.car.direction, Direction.Idle)

    async def test_state_sequence(self):
        """Test the car passes through every stage of the cycle in order"""
        recorder = StopRecorder()
        self.car.subscribe(recorder)
        self.car.add_cabin_request(3)
        await self.car.advance_cycle()

        self.assertEqual(recorder.states[1], [
            CarState.Idle, CarState.Moving, CarState.Opening,
            CarState.Open, CarState.Closing, CarState.Idle,
        ])
        self.assertEqual(recorder.stops_for(1), [3])

    async def test_doors_never_open_while_moving(self):
        observed = []

        def listener(status):
            observed.append((status.is_moving, status.door_state))

        self.car.subscribe(listener)
        self.car.add_cabin_request(6)
        await self.car.advance_cycle()
        for is_moving, door_state in observed:
            if is_moving:
                self.assertEqual(door_state, DoorState.Closed)

    async def test_call_at_current_floor_served_without_travel(self):
        self.car.add_hall_request(1, Direction.Up)
        self.assertTrue(await self.car.advance_cycle())
        self.assertEqual(self.car.hall_requests, [])
        self.assertEqual(self.car.direction, Direction.Idle)
        self.assertEqual(self.clock.durations, [1.5, 3.0, 1.5])

    async def test_only_matching_hall_call_retired(self):
        """Test arrival going up retires the up call but keeps the down call"""
        self.car.add_hall_request(5, Direction.Up)
        self.car.add_hall_request(5, Direction.Down)

        await self.car.advance_cycle()
        self.assertEqual(self.car.current_floor, 5)
        self.assertEqual([r.key for r in self.car.hall_requests], [(5, Direction.Down)])

        # Nothing ahead, so the car serves the remaining call in place
        await self.car.advance_cycle()
        self.assertEqual(self.car.hall_requests, [])
        self.assertEqual(self.car.direction, Direction.Idle)

    async def test_car_reverses_for_calls_behind(self):
        self.car.current_floor = 6
        self.car.direction = Direction.Down
        self.car.add_hall_request(8, Direction.Up)

        self.assertTrue(await self.car.advance_cycle())
        self.assertEqual(self.car.current_floor, 8)
        self.assertEqual(self.car.direction, Direction.Up)
        self.assertEqual(self.car.hall_requests, [])

    async def test_request_added_mid_cycle_waits_for_next_cycle(self):
        """Test a request arriving during the dwell is not retired by the running cycle"""
        added = []

        async def elapse(seconds):
            if car.door_state is DoorState.Open and not added:
                added.append(car.add_hall_request(4, Direction.Up))
            await self.clock(seconds)

        car = ElevatorCar(1, 1, 10, elapse=elapse)
        car.add_cabin_request(4)

        await car.advance_cycle()
        self.assertEqual(added, [RequestResult.ACCEPTED])
        self.assertEqual(car.cabin_requests, [])
        self.assertEqual([r.key for r in car.hall_requests], [(4, Direction.Up)])

        self.assertTrue(await car.advance_cycle())
        self.assertEqual(car.hall_requests, [])
        self.assertFalse(await car.advance_cycle())

    async def test_concurrent_cycles_on_one_car_are_serialized(self):
        self.car.add_cabin_request(3)
        results = await asyncio.gather(self.car.advance_cycle(), self.car.advance_cycle())
        self.assertEqual(sorted(results), [False, True])
        self.assertEqual(self.car.current_floor, 3)

    async def test_real_time_elapse_functions(self):
        for elapse in (instant_elapse, scaled_elapse(0)):
            car = ElevatorCar(1, 1, 10, elapse=elapse)
            car.add_cabin_request(2)
            self.assertTrue(await car.advance_cycle())
            self.assertEqual(car.current_floor, 2)
        with self.assertRaises(ValueError):
            scaled_elapse(-1)

    def test_illegal_transition_rejected(self):
        with self.assertRaises(IllegalStateTransition):
            self.car._enter(CarState.Open)

    def test_moving_with_open_doors_is_invalid(self):
        self.car.is_moving = True
        self.car.door_state = DoorState.Open
        with self.assertRaises(IllegalStateTransition):
            _ = self.car.state


class TestElevatorDispatcher(unittest.IsolatedAsyncioTestCase):
    """Unit tests for hall call assignment and round execution"""

    def setUp(self):
        self.clock = SimulatedClock()
        self.dispatcher = ElevatorDispatcher.from_config(get_config(), elapse=self.clock)
        self.car1, self.car2 = self.dispatcher.cars

    def test_default_building(self):
        self.assertEqual([car.car_id for car in self.dispatcher.cars], [1, 2])
        self.assertEqual((self.dispatcher.min_floor, self.dispatcher.max_floor), (1, 10))
        self.assertEqual(self.car1.capacity, 8)

    def test_tie_goes_to_first_car(self):
        self.assertTrue(self.dispatcher.request_hall(5, Direction.Up))
        self.assertEqual([r.key for r in self.car1.hall_requests], [(5, Direction.Up)])
        self.assertEqual(self.car2.hall_requests, [])

    def test_busy_car_penalized(self):
        """Test an idle car wins over a busy car at equal distance"""
        self.car1.add_cabin_request(9)
        self.dispatcher.request_hall(5, Direction.Up)
        self.assertEqual(len(self.car2.hall_requests), 1)
        self.assertEqual(self.car1.hall_requests, [])

    def test_same_direction_car_preferred(self):
        self.car1.current_floor = 4
        self.car1.direction = Direction.Up
        self.car2.current_floor = 9
        self.assertEqual(self.dispatcher.score(self.car1, 7, Direction.Up), 1)
        self.assertEqual(self.dispatcher.score(self.car2, 7, Direction.Up), 2)

        self.dispatcher.request_hall(7, Direction.Up)
        self.assertEqual(len(self.car1.hall_requests), 1)

    def test_out_of_range_hall_call(self):
        self.assertIs(self.dispatcher.request_hall(0, Direction.Up), RequestResult.INVALID_FLOOR)
        self.assertIs(self.dispatcher.request_hall(11, Direction.Down), RequestResult.INVALID_FLOOR)
        self.assertFalse(any(car.has_pending_requests for car in self.dispatcher.cars))

    def test_invalid_direction_propagated(self):
        self.assertIs(self.dispatcher.request_hall(10, Direction.Up), RequestResult.INVALID_DIRECTION)
        self.assertIs(self.dispatcher.request_hall(1, Direction.Down), RequestResult.INVALID_DIRECTION)

    def test_listener_may_submit_hall_call_during_assignment(self):
        """Test a status listener can place a hall call while another is being assigned"""
        results = []

        def listener(status):
            if results:
                return
            # Non-blocking so a regression fails instead of hanging
            acquired = self.dispatcher._assign_lock.acquire(blocking=False)
            results.append(acquired)
            if acquired:
                self.dispatcher._assign_lock.release()
                results.append(self.dispatcher.request_hall(8, Direction.Down))

        self.car1.subscribe(listener)
        self.assertTrue(self.dispatcher.request_hall(5, Direction.Up))

        self.assertEqual(results, [True, RequestResult.ACCEPTED])
        self.assertEqual([r.key for r in self.car1.hall_requests], [(5, Direction.Up)])
        self.assertEqual([r.key for r in self.car2.hall_requests], [(8, Direction.Down)])

    def test_no_cars(self):
        dispatcher = ElevatorDispatcher([], 1, 10)
        self.assertIs(dispatcher.request_hall(5, Direction.Up), RequestResult.NO_ELIGIBLE_CAR)

    def test_request_floor(self):
        self.assertTrue(self.dispatcher.request_floor(2, 6))
        self.assertEqual(self.car2.cabin_requests, [6])
        self.assertIs(self.dispatcher.request_floor(3, 6), RequestResult.NO_ELIGIBLE_CAR)
        self.assertIs(self.dispatcher.request_floor(1, 42), RequestResult.INVALID_FLOOR)

    def test_car_range_must_match_building(self):
        with self.assertRaises(ValueError):
            ElevatorDispatcher([ElevatorCar(1, 1, 10), ElevatorCar(2, 1, 12)], 1, 10)

    def test_duplicate_car_ids_rejected(self):
        with self.assertRaises(ValueError):
            ElevatorDispatcher([ElevatorCar(1, 1, 10), ElevatorCar(1, 1, 10)], 1, 10)

    def test_snapshot(self):
        self.dispatcher.request_hall(5, Direction.Up)
        statuses = self.dispatcher.snapshot()
        self.assertEqual([s.car_id for s in statuses], [1, 2])
        self.assertEqual(statuses[0].pending_hall_requests[0].floor, 5)
        self.assertEqual(statuses[0].door_state, DoorState.Closed)
        dumped = statuses[1].model_dump()
        self.assertEqual(dumped["current_floor"], 1)
        self.assertEqual(dumped["capacity"], 8)

    async def test_step_all_runs_every_car(self):
        self.dispatcher.request_floor(1, 4)
        self.dispatcher.request_floor(2, 6)
        self.assertTrue(await self.dispatcher.step_all())
        self.assertEqual(self.car1.current_floor, 4)
        self.assertEqual(self.car2.current_floor, 6)
        self.assertFalse(await self.dispatcher.step_all())

    async def test_step_all_with_one_busy_car(self):
        self.dispatcher.request_floor(2, 3)
        self.assertTrue(await self.dispatcher.step_all())
        self.assertEqual(self.car1.current_floor, 1)

    async def test_run_until_idle_respects_max_rounds(self):
        for floor in (3, 5, 7):
            self.dispatcher.request_floor(1, floor)
        self.assertEqual(await self.dispatcher.run_until_idle(max_rounds=2), 2)
        self.assertEqual(self.car1.cabin_requests, [7])

    async def test_random_requests_terminate(self):
        """Test repeated rounds always reach a fixed point with nothing pending"""
        rng = random.Random(7)
        for _ in range(40):
            floor = rng.randint(1, 10)
            if rng.random() < 0.5:
                self.dispatcher.request_hall(floor, rng.choice([Direction.Up, Direction.Down]))
            else:
                self.dispatcher.request_floor(rng.choice([1, 2]), floor)

        rounds = await self.dispatcher.run_until_idle(max_rounds=500)
        self.assertLess(rounds, 500)
        self.assertFalse(any(car.has_pending_requests for car in self.dispatcher.cars))
        self.assertFalse(await self.dispatcher.step_all())


class TestConfigurationAndModels(unittest.TestCase):
    """Unit tests for configuration and request models"""

    def test_get_config_returns_copy(self):
        config = get_config()
        config["building"]["num_cars"] = 99
        self.assertEqual(DEFAULT_CONFIG["building"]["num_cars"], 2)

    def test_get_config_overrides(self):
        config = get_config({"building": {"max_floor": 20}, "timing": {"dwell": 0.5}})
        self.assertEqual(config["building"]["max_floor"], 20)
        self.assertEqual(config["building"]["min_floor"], 1)
        self.assertEqual(config["timing"]["dwell"], 0.5)

    def test_from_config_overrides(self):
        config = get_config({"building": {"num_cars": 3, "max_floor": 20}, "car": {"capacity": 12}})
        dispatcher = ElevatorDispatcher.from_config(config)
        self.assertEqual(len(dispatcher.cars), 3)
        self.assertEqual(dispatcher.cars[2].max_floor, 20)
        self.assertEqual(dispatcher.cars[0].capacity, 12)

    def test_invalid_settings(self):
        with self.assertRaises(ValidationError):
            BuildingSettings(min_floor=5, max_floor=5)
        with self.assertRaises(ValidationError):
            BuildingSettings(num_cars=0)
        with self.assertRaises(ValidationError):
            BuildingSettings(dwell_time=-1)

    def test_hall_request_model_validation(self):
        with self.assertRaises(ValidationError):
            HallRequest(floor=5, direction=Direction.Idle)
        with self.assertRaises(ValidationError):
            CabinRequest(floor="3")
        self.assertEqual(HallRequest(floor=3, direction=Direction.Down).key, (3, Direction.Down))

    def test_request_result_truthiness(self):
        self.assertTrue(RequestResult.ACCEPTED)
        self.assertFalse(RequestResult.INVALID_FLOOR)
        self.assertFalse(RequestResult.INVALID_DIRECTION)
        self.assertFalse(RequestResult.NO_ELIGIBLE_CAR)

    def test_format_direction(self):
        self.assertEqual(format_direction(Direction.Up), "UP")
        self.assertEqual(format_direction(Direction.Down), "DOWN")
        self.assertEqual(format_direction(Direction.Idle), "IDLE")


if __name__ == "__main__":
    unittest.main()
