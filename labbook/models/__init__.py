from labbook.models.resource import Resource
from labbook.models.booking import Booking

__all__ = ["Resource", "Booking"]
