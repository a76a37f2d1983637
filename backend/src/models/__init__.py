# Package initialization
# Import all models to ensure relationships are properly established
from .clinician import Clinician, ScheduleSettings
from .client import Client
from .availability_rule import WeeklyAvailabilityRule
from .availability_exception import AvailabilityException
from .appointment import Appointment

__all__ = [
    "Clinician",
    "ScheduleSettings",
    "Client",
    "WeeklyAvailabilityRule",
    "AvailabilityException",
    "Appointment",
]
