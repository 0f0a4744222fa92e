# Import every model so relationship() targets resolve and Base.metadata is complete
from rentalops.models.base import Base  # noqa: F401
from rentalops.models.user import User  # noqa: F401
from rentalops.models.booking import Booking  # noqa: F401
from rentalops.models.deposit import DepositLedgerEntry  # noqa: F401
from rentalops.models.setting import SystemSetting  # noqa: F401
from rentalops.models.audit import Audit  # noqa: F401
