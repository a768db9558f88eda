from .types import ServiceType
from .user import User
from .convention import ConventionRegistration
from .dinner import DinnerReservation, DinnerGuest
from .accommodation import Accommodation, AccommodationType
from .brochure import BrochureOrder, BrochureType
from .goodwill import GoodwillMessage
from .donation import Donation
from .delivery_log import DeliveryLog

__all__ = [
    "ServiceType",
    "User",
    "ConventionRegistration",
    "DinnerReservation",
    "DinnerGuest",
    "Accommodation",
    "AccommodationType",
    "BrochureOrder",
    "BrochureType",
    "GoodwillMessage",
    "Donation",
    "DeliveryLog",
]
