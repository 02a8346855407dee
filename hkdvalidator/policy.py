from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

__all__ = ['VerificationPolicy', 'DEFAULT_TIME_TOLERANCE']

DEFAULT_TIME_TOLERANCE = timedelta(0)


@dataclass(frozen=True)
class VerificationPolicy:
    """
    Settings that govern the chain verification procedure.
    """

    moment: Optional[datetime] = None
    """
    Reference time for validity checks. If ``None``, the current time is
    used, evaluated at the start of every verification.
    """

    time_tolerance: timedelta = DEFAULT_TIME_TOLERANCE
    """
    Tolerance to apply when checking certificate validity intervals.
    """

    leaf_crl_required: bool = True
    """
    Require an applicable CRL for every certificate passed as a leaf.
    """

    intermediate_crl_required: bool = False
    """
    Require an applicable CRL for intermediate certificates as well.
    If ``False``, intermediates are only checked against the CRLs that
    happen to be available.
    """

    def reference_time(self) -> datetime:
        moment = self.moment
        if moment is None:
            return datetime.now(tz=timezone.utc)
        if moment.tzinfo is None:
            # naive datetimes are interpreted as UTC
            moment = moment.replace(tzinfo=timezone.utc)
        return moment
