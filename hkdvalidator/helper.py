"""
Lower-level entry points for callers that need finer control than
:class:`.CertVerifier` offers.
"""

from typing import Iterable, Optional

from asn1crypto import x509

from .codec import PathLike
from .crl_client import CRLRetriever
from .store import TrustStoreBuilder

__all__ = ['store_setup', 'download_crls_into_store']


def store_setup(
    root: Optional[PathLike] = None,
    crl_files: Iterable[PathLike] = (),
    extra_certs: Iterable[PathLike] = (),
) -> TrustStoreBuilder:
    """
    Set up a trust store builder from files on disk.

    :param root:
        Path to the root certificate(s), or ``None``.
    :param crl_files:
        Paths to CRL files.
    :param extra_certs:
        Paths to additional certificates to trust.
    :return:
        A :class:`.TrustStoreBuilder` that has not been finalised yet.
    """
    return TrustStoreBuilder(
        root=root, crl_files=crl_files, extra_certs=extra_certs
    )


def download_crls_into_store(
    builder: TrustStoreBuilder,
    certificates: Iterable[x509.Certificate],
    retriever: Optional[CRLRetriever] = None,
):
    """
    Fetch the CRLs for the given certificates and add them to the builder.

    :raises:
        RetrievalError - if one of the CRLs could not be fetched
    """
    builder.add_crls_from(certificates, retriever=retriever)
