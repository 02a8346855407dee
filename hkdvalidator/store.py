# coding: utf-8
import hashlib
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from asn1crypto import crl, x509

from .codec import PathLike, load_certs_from_pemder, load_crl_from_pemder
from .errors import NoTrustAnchorError, StoreFinalizedError

__all__ = ['TrustStore', 'TrustStoreBuilder']

logger = logging.getLogger(__name__)


def _index_by_name(items, name_of) -> Dict[str, tuple]:
    index = defaultdict(list)
    for item in items:
        index[name_of(item).hashable].append(item)
    return {k: tuple(v) for k, v in index.items()}


class TrustStore:
    """
    Immutable verification context: trust anchors, pinned intermediate
    certificates and CRLs.

    Instances are produced by :meth:`.TrustStoreBuilder.build` and are only
    ever read afterwards, so they can be shared between threads.
    """

    __slots__ = (
        '_anchors', '_intermediates', '_crls',
        '_anchor_fingerprints', '_anchors_by_name', '_interm_by_name',
        '_crls_by_issuer'
    )

    def __init__(
        self,
        anchors: Tuple[x509.Certificate, ...],
        intermediates: Tuple[x509.Certificate, ...],
        crls: Tuple[crl.CertificateList, ...],
    ):
        self._anchors = anchors
        self._intermediates = intermediates
        self._crls = crls
        self._anchor_fingerprints = frozenset(c.sha256 for c in anchors)
        self._anchors_by_name = _index_by_name(anchors, lambda c: c.subject)
        self._interm_by_name = _index_by_name(
            intermediates, lambda c: c.subject
        )
        self._crls_by_issuer = _index_by_name(crls, lambda cl: cl.issuer)

    @property
    def anchors(self) -> Tuple[x509.Certificate, ...]:
        return self._anchors

    @property
    def intermediates(self) -> Tuple[x509.Certificate, ...]:
        return self._intermediates

    @property
    def crls(self) -> Tuple[crl.CertificateList, ...]:
        return self._crls

    def is_anchor(self, cert: x509.Certificate) -> bool:
        """
        Checks if a certificate is one of the trust anchors of this store

        :param cert:
            An asn1crypto.x509.Certificate object

        :return:
            A boolean
        """
        return cert.sha256 in self._anchor_fingerprints

    def anchors_by_name(self, name: x509.Name) -> Tuple[x509.Certificate, ...]:
        return self._anchors_by_name.get(name.hashable, ())

    def intermediates_by_name(
        self, name: x509.Name
    ) -> Tuple[x509.Certificate, ...]:
        return self._interm_by_name.get(name.hashable, ())

    def crls_by_issuer(
        self, name: x509.Name
    ) -> Tuple[crl.CertificateList, ...]:
        return self._crls_by_issuer.get(name.hashable, ())

    def __repr__(self):
        return (
            f"TrustStore(anchors={len(self._anchors)}, "
            f"intermediates={len(self._intermediates)}, "
            f"crls={len(self._crls)})"
        )


class TrustStoreBuilder:
    """
    Accumulates trust anchors, intermediates and CRLs, and finalises them
    into a :class:`TrustStore`.

    A builder has a single owner and produces exactly one store.

    :param root:
        Path to a file with the root certificate(s). Every certificate in
        the file is trusted.
    :param crl_files:
        Paths to PEM or DER-encoded CRLs.
    :param extra_certs:
        Paths to additional certificates that should be trusted as anchors.
    :raises:
        IoError - if one of the files cannot be read
        DecodeError - if one of the files cannot be decoded
    """

    def __init__(
        self,
        root: Optional[PathLike] = None,
        crl_files: Iterable[PathLike] = (),
        extra_certs: Iterable[PathLike] = (),
    ):
        self._anchors: List[x509.Certificate] = []
        self._intermediates: List[x509.Certificate] = []
        self._crls: List[crl.CertificateList] = []
        self._seen_certs = set()
        self._seen_crls = set()
        self._built = False

        if root is not None:
            for cert in load_certs_from_pemder((root,)):
                self.add_anchor(cert)
        for crl_file in crl_files:
            self.add_crl(load_crl_from_pemder(crl_file))
        for cert in load_certs_from_pemder(extra_certs):
            self.add_anchor(cert)

    def _check_open(self):
        if self._built:
            raise StoreFinalizedError(
                "This builder has already produced a trust store"
            )

    def add_anchor(self, cert: x509.Certificate) -> bool:
        """
        Register a trust anchor.

        :return:
            ``True`` if the certificate was added, ``False`` if it was
            already known to this builder.
        """
        self._check_open()
        key = ('anchor', cert.sha256)
        if key in self._seen_certs:
            return False
        self._seen_certs.add(key)
        self._anchors.append(cert)
        return True

    def add_intermediate(self, cert: x509.Certificate) -> bool:
        """
        Pin an (untrusted) intermediate certificate in the store.
        """
        self._check_open()
        key = ('interm', cert.sha256)
        if key in self._seen_certs:
            return False
        self._seen_certs.add(key)
        self._intermediates.append(cert)
        return True

    def add_crl(self, certificate_list: crl.CertificateList) -> bool:
        self._check_open()
        digest = hashlib.sha256(certificate_list.dump()).digest()
        if digest in self._seen_crls:
            return False
        self._seen_crls.add(digest)
        self._crls.append(certificate_list)
        return True

    def add_crls(self, crls: Iterable[crl.CertificateList]) -> bool:
        added = False
        for certificate_list in crls:
            added |= self.add_crl(certificate_list)
        return added

    def add_crls_from(self, certificates: Iterable[x509.Certificate],
                      retriever=None):
        """
        Fetch the CRLs declared in the distribution points of the supplied
        certificates and add them to this builder.

        :param certificates:
            Certificates whose CRLs should be fetched.
        :param retriever:
            A :class:`.CRLRetriever`. If not specified, a default one is
            instantiated.
        :raises:
            RetrievalError - if one of the CRLs could not be fetched
        """
        self._check_open()
        if retriever is None:
            from .crl_client import CRLRetriever
            retriever = CRLRetriever()
        fetched = retriever.fetch_all(certificates)
        self.add_crls(fetched)
        logger.debug(f"Added {len(fetched)} fetched CRL(s) to trust store")

    def build(self) -> TrustStore:
        """
        Finalise the accumulated material into an immutable trust store.

        :raises:
            NoTrustAnchorError - if no trust anchor was registered
            StoreFinalizedError - if this builder was already used
        :return:
            A :class:`TrustStore`.
        """
        self._check_open()
        if not self._anchors:
            raise NoTrustAnchorError(
                "Cannot build a trust store without any trust anchors"
            )
        self._built = True
        return TrustStore(
            anchors=tuple(self._anchors),
            intermediates=tuple(self._intermediates),
            crls=tuple(self._crls),
        )
