"""Collaborative trip itinerary planner: schedule timeline engine and API."""

__version__ = "1.0.0"
