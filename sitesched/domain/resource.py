from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

from sitesched.domain.task import to_date


class ResourceError(ValueError):
    """Exception raised for invalid resource definitions."""

    pass


class ResourceType(Enum):
    LABOR = "labor"
    MATERIAL = "material"
    EQUIPMENT = "equipment"


class AvailabilityWindow:
    """
    A period during which a resource offers a specific number of units.
    """

    def __init__(self, start_date, end_date, available_units):
        if to_date(end_date) < to_date(start_date):
            raise ResourceError("Availability window ends before it starts")
        if available_units < 0:
            raise ResourceError("Available units cannot be negative")
        self.start_date = to_date(start_date)
        self.end_date = to_date(end_date)
        self.available_units = available_units

    def covers(self, day: Union[date, datetime]) -> bool:
        return self.start_date <= to_date(day) <= self.end_date


class Resource:
    """
    Represents a crew, piece of equipment or material that tasks draw on.
    Capacity is tracked in units per day.
    """

    def __init__(
        self,
        id,
        name,
        type="labor",
        rate=0.0,
        max_units=1.0,
        allocated_units=0.0,
        skills=None,
        availability: Optional[List[AvailabilityWindow]] = None,
    ):
        """
        Initialize a resource.

        Args:
            id: Unique identifier for the resource
            name: Human-readable name for the resource
            type: "labor", "material" or "equipment"
            rate: Hourly or unit rate
            max_units: Maximum units allocatable on any day (default: 1)
            allocated_units: Units currently committed
            skills: List of skill tags
            availability: Windows overriding max_units for specific periods
        """
        if id is None or str(id).strip() == "":
            raise ResourceError("Resource ID cannot be None or empty")
        self.id = id
        self.name = name or str(id)

        try:
            self.type = ResourceType(type) if not isinstance(type, ResourceType) else type
        except ValueError:
            valid = [t.value for t in ResourceType]
            raise ResourceError(f"Invalid resource type: {type}. Must be one of {valid}")

        if max_units is None or max_units < 0:
            raise ResourceError("Max units must be a non-negative number")
        if allocated_units < 0:
            raise ResourceError("Allocated units cannot be negative")
        self.rate = rate
        self.max_units = max_units
        self.allocated_units = allocated_units
        self.skills = list(skills) if skills else []
        self.availability = list(availability) if availability else []

    @property
    def remaining_units(self):
        return max(0, self.max_units - self.allocated_units)

    def capacity_on(self, day: Union[date, datetime]):
        """
        Units available on a given day.

        The first availability window covering the day wins; otherwise the
        resource's max units apply.
        """
        for window in self.availability:
            if window.covers(day):
                return window.available_units
        return self.max_units

    def __repr__(self):
        return f"Resource({self.id!r}, {self.name!r}, {self.type.value})"
