"""
Parcel status enumerations.
"""

import enum


class DeliveryStatus(str, enum.Enum):
    """
    Parcel delivery status.
    
    Status flow:
        PENDING → RIDER_ASSIGNED → IN_TRANSIT → DELIVERED | SERVICE_CENTER_DELIVERED
    """
    PENDING = "pending"
    RIDER_ASSIGNED = "rider_assigned"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    SERVICE_CENTER_DELIVERED = "service_center_delivered"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class CashoutStatus(str, enum.Enum):
    NOT_CASHED_OUT = "not_cashed_out"
    CASHED_OUT = "cashed_out"


class ParcelType(str, enum.Enum):
    DOCUMENT = "document"
    NON_DOCUMENT = "non_document"


# Terminal delivery states, eligible for cash-out
DELIVERED_STATES = (DeliveryStatus.DELIVERED, DeliveryStatus.SERVICE_CENTER_DELIVERED)

# States in which a rider is still carrying the parcel
OPEN_ASSIGNMENT_STATES = (DeliveryStatus.RIDER_ASSIGNED, DeliveryStatus.IN_TRANSIT)
