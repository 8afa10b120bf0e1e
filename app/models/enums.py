from enum import Enum


class CustomerStatus(str, Enum):
    active = "ACTIVE"
    closed = "CLOSED"
    default = "DEFAULT"


class PaymentStatus(str, Enum):
    pending = "PENDING"
    success = "SUCCESS"
    failed = "FAILED"
    reversed = "REVERSED"


class PaymentMethod(str, Enum):
    upi = "UPI"
    card = "CARD"
    net_banking = "NET_BANKING"
    cheque = "CHEQUE"


class ScheduleStatus(str, Enum):
    pending = "PENDING"
    paid = "PAID"
    overdue = "OVERDUE"
