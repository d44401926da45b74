# Import every mapped class so string relationships resolve before first use.
from jobtrack.models.base import Base  # noqa: F401
from jobtrack.models.job import Job  # noqa: F401
from jobtrack.models.spare_part_order import SparePartOrder  # noqa: F401
from jobtrack.models.history import JobHistoryEntry, SparePartOrderHistoryEntry  # noqa: F401
