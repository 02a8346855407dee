# coding: utf-8
import itertools
import logging
from collections import defaultdict
from typing import Iterable, Iterator, List, Optional, Tuple

from asn1crypto import x509

from .errors import IssuerMismatchError, PathNotFoundError
from .store import TrustStore

__all__ = ['ValidationPath', 'PathBuilder']

logger = logging.getLogger(__name__)


class ValidationPath:
    """
    Represents a path going from a trust anchor towards an end-entity
    certificate.

    :param trust_anchor:
        The certificate of the trust anchor at the start of the path.
    :param certs:
        Certificates below the trust anchor, ending with the end-entity
        certificate.
    """

    def __init__(
        self,
        trust_anchor: x509.Certificate,
        certs: Optional[Iterable[x509.Certificate]] = None,
    ):
        self._root = trust_anchor
        self._certs = list(certs) if certs is not None else []

    @property
    def trust_anchor(self) -> x509.Certificate:
        return self._root

    @property
    def leaf(self) -> x509.Certificate:
        """
        Returns the end of the path - the end entity certificate

        :return:
            The last asn1crypto.x509.Certificate object in the path
        """
        if self._certs:
            return self._certs[-1]
        raise LookupError("No certificates in path")

    @property
    def pkix_len(self) -> int:
        """
        Path length in the sense of RFC 5280, i.e. the anchor doesn't count.
        """
        return len(self._certs)

    def __iter__(self):
        # iterate over all certs _including_ the anchor
        return itertools.chain((self._root,), self._certs)

    def __len__(self):
        return 1 + len(self._certs)

    def __getitem__(self, key):
        if key > 0:
            return self._certs[key - 1]
        return self._root

    def __eq__(self, other):
        if not isinstance(other, ValidationPath):
            return False
        return (
            self._root.sha256 == other._root.sha256
            and [c.sha256 for c in self._certs]
            == [c.sha256 for c in other._certs]
        )

    def __repr__(self):
        names = ' -> '.join(
            cert.subject.human_friendly for cert in self
        )
        return f"ValidationPath({names})"


def _key_id_matches(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    # Info from the authority key identifier extension can be used to
    # eliminate possible options when multiple keys with the same
    # subject exist, such as during a transition, or with cross-signing.
    if cert.authority_key_identifier and issuer.key_identifier:
        return cert.authority_key_identifier == issuer.key_identifier
    elif cert.authority_issuer_serial:
        return cert.authority_issuer_serial == issuer.issuer_serial
    return True


class _IssuerIterator:
    """
    Iterates over the candidate issuers of a single certificate, trust
    anchors first. Keeps track of the reasons why candidates were rejected.
    """

    def __init__(
        self,
        path_builder: 'PathBuilder',
        chain: Tuple[x509.Certificate, ...],
    ):
        self.chain = chain
        self.cert = chain[-1]
        self.seen = frozenset(c.sha256 for c in chain)
        self.issuers_found = 0
        self.key_id_mismatches = 0
        self._candidates = path_builder._potential_issuers(self.cert)

    def __iter__(self):
        return self

    def __next__(self) -> Tuple[bool, x509.Certificate]:
        for is_anchor, issuer in self._candidates:
            if not is_anchor and issuer.sha256 in self.seen:
                # no loops
                continue
            if not _key_id_matches(self.cert, issuer):
                self.key_id_mismatches += 1
                continue
            self.issuers_found += 1
            return is_anchor, issuer
        raise StopIteration


class PathBuilder:
    """
    Builds candidate validation paths from a certificate to one of the
    trust anchors of a store.

    The search is an explicit depth-first traversal. Each intermediate
    certificate is used at most once per path, so the depth is bounded by the
    number of intermediates available.

    :param store:
        A :class:`.TrustStore`.
    :param intermediates:
        Untrusted intermediate certificates to use in addition to those
        pinned in the store.
    """

    def __init__(
        self,
        store: TrustStore,
        intermediates: Iterable[x509.Certificate] = (),
    ):
        self.store = store
        pool = {}
        for cert in itertools.chain(store.intermediates, intermediates):
            if store.is_anchor(cert):
                continue
            pool.setdefault(cert.sha256, cert)
        self._interm_by_name = defaultdict(list)
        for cert in pool.values():
            self._interm_by_name[cert.subject.hashable].append(cert)
        self.max_depth = len(pool) + 1

    def _potential_issuers(
        self, cert: x509.Certificate
    ) -> Iterator[Tuple[bool, x509.Certificate]]:
        # go through matching trust anchors first
        for anchor in self.store.anchors_by_name(cert.issuer):
            yield True, anchor
        for issuer in self._interm_by_name[cert.issuer.hashable]:
            yield False, issuer

    def build_paths(self, end_entity_cert: x509.Certificate):
        """
        Lazily enumerate every validation path from a trust anchor to the
        end-entity certificate.

        :param end_entity_cert:
            An asn1crypto.x509.Certificate object
        :raises:
            IssuerMismatchError - if no path exists because a certificate's
            declared issuer doesn't match any available issuer
            PathNotFoundError - if no trust anchor can be reached
        :return:
            A generator of :class:`ValidationPath` objects.
        """
        emitted = 0
        dead_ends: List[_IssuerIterator] = []
        stack = [_IssuerIterator(self, (end_entity_cert,))]
        while stack:
            level = stack[-1]
            try:
                is_anchor, issuer = next(level)
            except StopIteration:
                stack.pop()
                if not level.issuers_found:
                    dead_ends.append(level)
                continue
            if is_anchor:
                # We've reached a trust anchor -> emit path
                emitted += 1
                path = ValidationPath(issuer, reversed(level.chain))
                logger.debug(f"Found candidate path {path!r}")
                yield path
            elif len(level.chain) < self.max_depth:
                stack.append(_IssuerIterator(self, level.chain + (issuer,)))

        if not emitted:
            raise self._no_path_error(end_entity_cert, dead_ends)

    def _no_path_error(self, end_entity_cert, dead_ends: List[_IssuerIterator]):
        name = end_entity_cert.subject.human_friendly
        if not self.store.anchors:  # pragma: nocover
            return PathNotFoundError(
                f"Unable to build a validation path for the certificate "
                f"\"{name}\" - the trust store has no trust anchors"
            )
        for level in dead_ends:
            missing_issuer_name = level.cert.issuer.human_friendly
            if level.key_id_mismatches:
                return IssuerMismatchError(
                    f"Unable to build a validation path for the certificate "
                    f"\"{name}\" - the key identifier of the certificate "
                    f"issued to \"{level.cert.subject.human_friendly}\" does "
                    f"not match that of any issuer named "
                    f"\"{missing_issuer_name}\"",
                    is_ee_cert=len(level.chain) == 1,
                )
            if len(level.chain) == 1:
                return IssuerMismatchError(
                    f"Unable to build a validation path for the certificate "
                    f"\"{name}\" - no issuer matching "
                    f"\"{missing_issuer_name}\" was found"
                )
        return PathNotFoundError(
            f"Unable to build a validation path for the certificate "
            f"\"{name}\" - no trust anchor could be reached"
        )
