from .errors import (
    DecodeError,
    HkdError,
    HkdVerifyError,
    HkdVerifyErrorType,
    IoError,
    NoTrustAnchorError,
    RetrievalError,
)
from .helper import download_crls_into_store, store_setup
from .policy import VerificationPolicy
from .validate import verify_chain
from .verifier import CertVerifier
from .version import __version__, __version_info__

__all__ = [
    '__version__',
    '__version_info__',
    'CertVerifier',
    'VerificationPolicy',
    'verify_chain',
    'store_setup',
    'download_crls_into_store',
    'HkdError',
    'HkdVerifyError',
    'HkdVerifyErrorType',
    'DecodeError',
    'IoError',
    'RetrievalError',
    'NoTrustAnchorError',
]
