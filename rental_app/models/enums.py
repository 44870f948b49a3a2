from enum import Enum


class UserRole(str, Enum):
    TENANT = "Tenant"
    PROPERTY_OWNER = "PropertyOwner"
    ADMIN = "Admin"


class PaymentStatusLabel(str, Enum):
    OVERDUE = "overdue"
    UP_TO_DATE = "up-to-date"


class DeliveryMethod(str, Enum):
    APP = "app"
    SMS = "sms"
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    BOTH = "both"


class DeliveryChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class NotificationType(str, Enum):
    PAYMENT = "payment"
    MAINTENANCE = "maintenance"
    TENANT = "tenant"
    OTHER = "other"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class NotificationReadStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"


class PaymentType(str, Enum):
    RENT = "Rent"
    DEPOSIT = "Deposit"
    UTILITY = "Utility"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PropertyStatus(str, Enum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    UNDER_MAINTENANCE = "Under Maintenance"


class TransactionState(str, Enum):
    INITIATED = "Initiated"
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    TIMEOUT = "Timeout"
    POLL_TIMEOUT = "PollTimeout"

    @property
    def is_terminal(self) -> bool:
        return self not in {
            TransactionState.INITIATED,
            TransactionState.PENDING,
            TransactionState.POLL_TIMEOUT,
        }
