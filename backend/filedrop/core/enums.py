"""
Enumerations shared by the database models, the services and the API.

The string value of each status member is exactly what is stored in the
database, so this module is the only place where those spellings live.
"""
import enum
from datetime import timedelta
from typing import Optional


class TokenStatus(str, enum.Enum):
    """Lifecycle state of a token."""
    FRESH = "FRESH"
    USED = "USED"
    DELETED = "DELETED"


class FileUploadStatus(str, enum.Enum):
    """Upload state of a single file."""
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"


class AuthType(str, enum.Enum):
    BASIC = "BASIC"


class SizeLimit(str, enum.Enum):
    """Size limits offered when creating a token."""
    UNLIMITED = "Unlimited"
    ONE_MB = "1MB"
    TEN_MB = "10MB"
    TWO_HUNDRED_MB = "200MB"
    ONE_GB = "1GB"
    FIVE_GB = "5GB"

    @property
    def mebibytes(self) -> Optional[int]:
        """Limit in MiB, None when unbounded."""
        return _SIZE_LIMIT_MIB[self]


_SIZE_LIMIT_MIB = {
    SizeLimit.UNLIMITED: None,
    SizeLimit.ONE_MB: 1,
    SizeLimit.TEN_MB: 10,
    SizeLimit.TWO_HUNDRED_MB: 200,
    SizeLimit.ONE_GB: 1024,
    SizeLimit.FIVE_GB: 5 * 1024,
}


class Lifetime(str, enum.Enum):
    """Durations offered for `valid-for` and `content-expires`."""
    ONE_HOUR = "1Hour"
    ONE_DAY = "1Day"
    ONE_WEEK = "1Week"
    ONE_MONTH = "1Month"
    DOESNT_EXPIRE = "DoesntExpire"

    @property
    def duration(self) -> Optional[timedelta]:
        """Duration of this lifetime, None when it never expires."""
        return _LIFETIME_DURATIONS[self]


_LIFETIME_DURATIONS = {
    Lifetime.ONE_HOUR: timedelta(hours=1),
    Lifetime.ONE_DAY: timedelta(days=1),
    Lifetime.ONE_WEEK: timedelta(weeks=1),
    Lifetime.ONE_MONTH: timedelta(days=31),
    Lifetime.DOESNT_EXPIRE: None,
}
