"""TravelAlarm: location-triggered alarm engine."""

__version__ = "0.1.0"
