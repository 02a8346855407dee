import logging
from typing import Iterable, List, Optional

from asn1crypto import crl, x509

from .codec import distribution_points, parse_crl
from .errors import DecodeError, RetrievalError
from .fetchers import Transport, default_transport

__all__ = ['CRLRetriever', 'CRL_CONTENT_TYPES']

logger = logging.getLogger(__name__)

CRL_CONTENT_TYPES = ('application/pkix-crl', 'application/x-pkcs7-crl')


def _media_type(content_type: str) -> str:
    # drop parameters such as "; charset=binary"
    return content_type.split(';', 1)[0].strip().lower()


class CRLRetriever:
    """
    Fetch CRLs from the distribution points declared in certificates.

    :param transport:
        The transport used to issue HTTP GET requests. If not specified,
        a ``requests``-based transport is used.
    """

    def __init__(self, transport: Optional[Transport] = None):
        self.transport = transport or default_transport()

    def fetch(self, url: str) -> crl.CertificateList:
        """
        Fetch and decode a single CRL.

        :param url:
            URL of the CRL.
        :raises:
            RetrievalError - when a network error occurs, the server doesn't
            report success, the content type is wrong or the response body
            is not a CRL.
        :return:
            An asn1crypto.crl.CertificateList object
        """
        logger.info(f"Requesting CRL from {url}...")
        response = self.transport.get(
            url, acceptable_content_types=CRL_CONTENT_TYPES
        )
        if response.status != 200:
            raise RetrievalError(
                f"Failure to fetch CRL from URL {url}: "
                f"status code {response.status}"
            )
        content_type = _media_type(response.content_type)
        if content_type not in CRL_CONTENT_TYPES:
            raise RetrievalError(
                f"Failure to fetch CRL from URL {url}: unexpected "
                f"content type '{response.content_type}'"
            )
        try:
            return parse_crl(response.content)
        except DecodeError as e:
            raise RetrievalError(
                f"Failure to fetch CRL from URL {url}: {e.failure_msg}"
            ) from e

    def fetch_all(
        self, certificates: Iterable[x509.Certificate]
    ) -> List[crl.CertificateList]:
        """
        Fetch the CRLs for all distribution points of the certificates
        supplied. Every URL is only requested once, even if it is declared
        by several certificates.

        :param certificates:
            An iterable of asn1crypto.x509.Certificate objects
        :raises:
            RetrievalError - on the first fetch that fails
        :return:
            A list of asn1crypto.crl.CertificateList objects
        """
        urls = []
        seen = set()
        for cert in certificates:
            for url in distribution_points(cert):
                if url in seen:
                    continue
                seen.add(url)
                # Only fetch CRLs over http(s).
                # In particular, don't attempt to grab CRLs over LDAP
                if not url.lower().startswith(('http://', 'https://')):
                    logger.debug(
                        f"Skipping non-HTTP CRL distribution point {url}"
                    )
                    continue
                urls.append(url)

        return [self.fetch(url) for url in urls]
