# coding: utf-8
import enum
from datetime import datetime
from typing import Optional

from asn1crypto.crl import CRLReason

__all__ = [
    'HkdError',
    'DecodeError',
    'IoError',
    'RetrievalError',
    'NoTrustAnchorError',
    'StoreFinalizedError',
    'ConfigurationError',
    'HkdVerifyErrorType',
    'ChainError',
    'PathNotFoundError',
    'SignatureInvalidError',
    'IssuerMismatchError',
    'BeforeValidityError',
    'AfterValidityError',
    'RevokedError',
    'StaleCRLError',
    'MissingCRLError',
    'InvalidCAError',
    'HkdVerifyError',
]


class HkdError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, msg: str):
        self.failure_msg = msg
        super().__init__(msg)


class DecodeError(HkdError):
    pass


class IoError(HkdError):
    pass


class RetrievalError(HkdError):
    pass


class NoTrustAnchorError(HkdError):
    pass


class StoreFinalizedError(RuntimeError):
    """
    Raised when a trust store builder is used after it has produced its
    store. This signals a programming error.
    """
    pass


class ConfigurationError(ValueError):
    """Signal configuration errors."""
    pass


class HkdVerifyErrorType(enum.Enum):
    """
    Closed enumeration of the reasons why a certificate chain can be rejected.
    """

    PATH_NOT_FOUND = enum.auto()
    SIGNATURE_INVALID = enum.auto()
    ISSUER_MISMATCH = enum.auto()
    BEFORE_VALIDITY = enum.auto()
    AFTER_VALIDITY = enum.auto()
    REVOKED = enum.auto()
    STALE_CRL = enum.auto()
    NO_CRL = enum.auto()
    INVALID_CA = enum.auto()


class ChainError(HkdError):
    """
    Base class for failures of the chain verification procedure.
    Every concrete subclass sets :attr:`kind`.
    """

    kind: HkdVerifyErrorType

    def __init__(self, msg: str, *, is_ee_cert: bool = True):
        self.is_ee_cert = is_ee_cert
        super().__init__(msg)


class PathNotFoundError(ChainError):
    kind = HkdVerifyErrorType.PATH_NOT_FOUND


class SignatureInvalidError(ChainError):
    kind = HkdVerifyErrorType.SIGNATURE_INVALID


class IssuerMismatchError(ChainError):
    kind = HkdVerifyErrorType.ISSUER_MISMATCH


class BeforeValidityError(ChainError):
    kind = HkdVerifyErrorType.BEFORE_VALIDITY

    @classmethod
    def format(cls, valid_from: datetime, cert_desc: str, is_ee_cert=True):
        msg = (
            f"The path could not be validated because {cert_desc} is not "
            f"valid until {valid_from.strftime('%Y-%m-%d %H:%M:%SZ')}"
        )
        err = cls(msg, is_ee_cert=is_ee_cert)
        err.valid_from = valid_from
        return err


class AfterValidityError(ChainError):
    kind = HkdVerifyErrorType.AFTER_VALIDITY

    @classmethod
    def format(cls, expired_dt: datetime, cert_desc: str, is_ee_cert=True):
        msg = (
            f"The path could not be validated because {cert_desc} expired "
            f"{expired_dt.strftime('%Y-%m-%d %H:%M:%SZ')}"
        )
        err = cls(msg, is_ee_cert=is_ee_cert)
        err.expired_dt = expired_dt
        return err


class RevokedError(ChainError):
    kind = HkdVerifyErrorType.REVOKED

    @classmethod
    def format(
        cls,
        reason: CRLReason,
        revocation_dt: datetime,
        cert_desc: str,
        is_ee_cert=True,
    ):
        reason_str = reason.human_friendly
        date = revocation_dt.strftime('%Y-%m-%d')
        time = revocation_dt.strftime('%H:%M:%S')
        msg = (
            f'CRL indicates {cert_desc} was revoked at {time} on {date}, '
            f'due to {reason_str}.'
        )
        return cls(msg, reason, revocation_dt, is_ee_cert=is_ee_cert)

    def __init__(
        self,
        msg,
        reason: CRLReason,
        revocation_dt: datetime,
        is_ee_cert=True,
    ):
        self.reason = reason
        self.revocation_date = revocation_dt
        super().__init__(msg, is_ee_cert=is_ee_cert)


class StaleCRLError(ChainError):
    kind = HkdVerifyErrorType.STALE_CRL

    def __init__(
        self, msg, next_update: Optional[datetime] = None, is_ee_cert=True
    ):
        self.next_update = next_update
        super().__init__(msg, is_ee_cert=is_ee_cert)


class MissingCRLError(ChainError):
    kind = HkdVerifyErrorType.NO_CRL


class InvalidCAError(ChainError):
    kind = HkdVerifyErrorType.INVALID_CA


class HkdVerifyError(HkdError):
    """
    Error raised by :meth:`.CertVerifier.verify` when a host key document
    cannot be trusted.
    """

    def __init__(self, kind: HkdVerifyErrorType, msg: Optional[str] = None):
        self.kind = kind
        super().__init__(msg or f"Host key document verification failed: "
                                f"{kind.name}")
