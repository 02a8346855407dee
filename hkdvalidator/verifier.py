# coding: utf-8
import logging
from typing import Iterable, Optional, Sequence

from asn1crypto import x509

from .codec import PathLike, load_certs_from_pemder
from .crl_client import CRLRetriever
from .errors import ChainError, HkdVerifyError
from .helper import download_crls_into_store, store_setup
from .policy import VerificationPolicy
from .validate import verify_chain

__all__ = ['CertVerifier']

logger = logging.getLogger(__name__)


class CertVerifier:
    """
    Verifies host key documents against a fixed trust chain.

    The trust store is assembled once, when the verifier is constructed.
    Afterwards, :meth:`verify` may be called any number of times, also
    concurrently from several threads.

    :param certs:
        Paths to the signing key and intermediate certificates. These
        are used to build paths towards the root, but are not trusted
        by themselves.
    :param crls:
        Paths to CRL files. These are loaded in both modes.
    :param root:
        Path to the root certificate(s).
    :param offline:
        If ``False``, the CRLs declared by ``certs`` are fetched over the
        network at construction time. If ``True``, no network access takes
        place.
    :param retriever:
        The :class:`.CRLRetriever` to use in online mode.
    :param policy:
        A :class:`.VerificationPolicy`.
    :param fetch_leaf_crls:
        In online mode, also fetch the CRLs declared by each host key
        document when it is verified. These CRLs are only used for that
        particular call. Ignored in offline mode.
    :raises:
        IoError, DecodeError - if one of the files cannot be loaded
        RetrievalError - if a CRL cannot be fetched in online mode
        NoTrustAnchorError - if no root certificate is available
    """

    def __init__(
        self,
        certs: Iterable[PathLike],
        crls: Iterable[PathLike] = (),
        root: Optional[PathLike] = None,
        offline: bool = False,
        *,
        retriever: Optional[CRLRetriever] = None,
        policy: Optional[VerificationPolicy] = None,
        fetch_leaf_crls: bool = False,
    ):
        self.offline = offline
        self.policy = policy or VerificationPolicy()
        self.fetch_leaf_crls = fetch_leaf_crls and not offline
        self._intermediates: Sequence[x509.Certificate] = tuple(
            load_certs_from_pemder(certs)
        )

        builder = store_setup(root=root, crl_files=crls)
        if offline:
            self._retriever = None
        else:
            self._retriever = retriever or CRLRetriever()
            download_crls_into_store(
                builder, self._intermediates, retriever=self._retriever
            )
        self._store = builder.build()
        logger.debug(
            f"Set up {'offline' if offline else 'online'} verifier with "
            f"{self._store!r} and {len(self._intermediates)} "
            f"intermediate certificate(s)"
        )

    @classmethod
    def from_config(cls, config, *, retriever=None) -> 'CertVerifier':
        """
        Instantiate a verifier from a :class:`.VerifierConfig`.
        """
        if retriever is None and not config.offline:
            from .fetchers.requests_fetchers import RequestsTransport
            retriever = CRLRetriever(
                RequestsTransport(
                    per_request_timeout=config.per_request_timeout
                )
            )
        return cls(
            certs=config.certs,
            crls=config.crls,
            root=config.root,
            offline=config.offline,
            retriever=retriever,
            policy=config.get_policy(),
            fetch_leaf_crls=config.fetch_leaf_crls,
        )

    @property
    def store(self):
        return self._store

    @property
    def intermediates(self) -> Sequence[x509.Certificate]:
        return self._intermediates

    def verify(self, leaf: x509.Certificate):
        """
        Verify a host key document.

        Unless ``fetch_leaf_crls`` was set, this never touches the network.

        :param leaf:
            The host key document, as an asn1crypto.x509.Certificate object.
        :raises:
            HkdVerifyError - if the document cannot be trusted; the ``kind``
            attribute describes why
            RetrievalError - if ``fetch_leaf_crls`` is set and the CRL of
            the document cannot be fetched
        """
        extra_crls = ()
        if self.fetch_leaf_crls:
            extra_crls = self._retriever.fetch_all((leaf,))
        try:
            verify_chain(
                self._store,
                self._intermediates,
                (leaf,),
                policy=self.policy,
                extra_crls=extra_crls,
            )
        except ChainError as e:
            raise HkdVerifyError(e.kind, e.failure_msg) from e
