from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"

    def __str__(self):
        return self.value


class BookingStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value


class ReturnState(str, Enum):
    # Declaration order is the workflow order
    NOT_STARTED = "not_started"
    INITIATED = "initiated"
    INTAKE_DONE = "intake_done"
    EVIDENCE_DONE = "evidence_done"
    ISSUES_REVIEWED = "issues_reviewed"
    CLOSEOUT_DONE = "closeout_done"
    DEPOSIT_PROCESSED = "deposit_processed"

    def __str__(self):
        return self.value


class ReturnStepId(str, Enum):
    INTAKE = "intake"
    EVIDENCE = "evidence"
    ISSUES = "issues"
    CLOSEOUT = "closeout"
    DEPOSIT = "deposit"

    def __str__(self):
        return self.value


class DriverAgeBand(str, Enum):
    AGE_20_24 = "20_24"
    AGE_25_70 = "25_70"

    def __str__(self):
        return self.value


class DiscountType(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    def __str__(self):
        return self.value


class WeekendSurchargePolicy(str, Enum):
    PICKUP_DAY = "pickup_day"
    PER_WEEKEND_DAY = "per_weekend_day"

    def __str__(self):
        return self.value


class ProtectionPlan(str, Enum):
    NONE = "none"
    BASIC = "basic"
    SMART = "smart"
    PREMIUM = "premium"

    def __str__(self):
        return self.value


class CardType(str, Enum):
    VISA = "visa"
    MASTERCARD = "mastercard"
    AMEX = "amex"
    DISCOVER = "discover"
    UNKNOWN = "unknown"

    def __str__(self):
        return self.value


class DepositAction(str, Enum):
    HOLD = "hold"
    RELEASE = "release"
    DEDUCT = "deduct"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    CREATE_BOOKING = "create_booking"
    CHANGE_STATUS = "change_status"
    ADVANCE_RETURN_STATE = "advance_return_state"
    WORKFLOW_BYPASS = "workflow_bypass"
    RECORD_INTAKE = "record_intake"
    PROCESS_DEPOSIT = "process_deposit"
    REPRICE_BOOKING = "reprice_booking"
    UPDATE_RATE_SETTING = "update_rate_setting"
    LOGIN = "login"

    def __str__(self):
        return self.value
