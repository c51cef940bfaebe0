"""
Elevator System Configuration File

This file contains all configuration parameters for the dispatch system,
using configurable settings instead of hardcoded constants
"""
import copy
from typing import Dict, Any, Optional

from pydantic import BaseModel, Field, model_validator


# Default building configuration
DEFAULT_NUM_CARS = 2
DEFAULT_MIN_FLOOR = 1
DEFAULT_MAX_FLOOR = 10

# Per-car capacity (display only, no boarding logic uses it)
DEFAULT_CAPACITY = 8

# Timing configuration (seconds)
FLOOR_TRAVEL_TIME = 2.0  # Time to travel one floor
DOOR_OPERATION_TIME = 1.5  # Time for doors to open or close
DWELL_TIME = 3.0  # Time doors are held open at a stop

# Dispatch scoring weights
SAME_DIRECTION_BONUS = 2  # Subtracted for cars already heading the requested way
BUSY_PENALTY = 1  # Added for cars that are moving or have pending requests

# Demo configuration
DEMO_TIME_SCALE = 0.01  # Real seconds per simulated second in the demo
DEMO_MAX_ROUNDS = 10

# Complete default configuration
DEFAULT_CONFIG = {
    "building": {
        "num_cars": DEFAULT_NUM_CARS,
        "min_floor": DEFAULT_MIN_FLOOR,
        "max_floor": DEFAULT_MAX_FLOOR
    },
    "car": {
        "capacity": DEFAULT_CAPACITY
    },
    "timing": {
        "floor_travel": FLOOR_TRAVEL_TIME,
        "door_operation": DOOR_OPERATION_TIME,
        "dwell": DWELL_TIME
    },
    "dispatch": {
        "same_direction_bonus": SAME_DIRECTION_BONUS,
        "busy_penalty": BUSY_PENALTY
    },
    "demo": {
        "time_scale": DEMO_TIME_SCALE,
        "max_rounds": DEMO_MAX_ROUNDS
    }
}


class BuildingSettings(BaseModel):
    """
    Validated, flattened view of the configuration used to build a dispatcher.

    Attributes:
        num_cars: Number of cars in the building
        min_floor: Lowest floor served
        max_floor: Highest floor served
        capacity: Per-car capacity
        floor_travel_time: Seconds to travel one floor
        door_operation_time: Seconds to open or close the doors
        dwell_time: Seconds the doors are held open
        same_direction_bonus: Score reduction for same-direction cars
        busy_penalty: Score increase for busy cars
    """
    num_cars: int = Field(DEFAULT_NUM_CARS, ge=1)
    min_floor: int = DEFAULT_MIN_FLOOR
    max_floor: int = DEFAULT_MAX_FLOOR
    capacity: int = Field(DEFAULT_CAPACITY, ge=0)
    floor_travel_time: float = Field(FLOOR_TRAVEL_TIME, ge=0)
    door_operation_time: float = Field(DOOR_OPERATION_TIME, ge=0)
    dwell_time: float = Field(DWELL_TIME, ge=0)
    same_direction_bonus: int = SAME_DIRECTION_BONUS
    busy_penalty: int = BUSY_PENALTY

    @model_validator(mode='after')
    def check_floor_range(self) -> "BuildingSettings":
        if self.min_floor >= self.max_floor:
            raise ValueError(
                f"min_floor ({self.min_floor}) must be below max_floor ({self.max_floor})")
        return self

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "BuildingSettings":
        """
        Flatten a nested configuration dictionary and validate it.

        Args:
            config: Configuration in the shape of DEFAULT_CONFIG; missing
                sections fall back to defaults

        Returns:
            Validated settings
        """
        building = config.get("building", {})
        car = config.get("car", {})
        timing = config.get("timing", {})
        dispatch = config.get("dispatch", {})
        values = {
            "num_cars": building.get("num_cars", DEFAULT_NUM_CARS),
            "min_floor": building.get("min_floor", DEFAULT_MIN_FLOOR),
            "max_floor": building.get("max_floor", DEFAULT_MAX_FLOOR),
            "capacity": car.get("capacity", DEFAULT_CAPACITY),
            "floor_travel_time": timing.get("floor_travel", FLOOR_TRAVEL_TIME),
            "door_operation_time": timing.get("door_operation", DOOR_OPERATION_TIME),
            "dwell_time": timing.get("dwell", DWELL_TIME),
            "same_direction_bonus": dispatch.get("same_direction_bonus", SAME_DIRECTION_BONUS),
            "busy_penalty": dispatch.get("busy_penalty", BUSY_PENALTY),
        }
        return cls(**values)


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Get elevator system configuration

    Args:
        overrides: Optional nested dictionary whose values replace the defaults

    Returns:
        Dictionary containing complete configuration information
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if overrides:
        _merge(config, overrides)
    return config
