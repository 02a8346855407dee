"""
Utilities to load certificates and certificate revocation lists from
PEM or DER-encoded data, and to inspect the CRL distribution points
declared in a certificate.
"""

import os
from typing import Iterable, List, Union

from asn1crypto import core, crl, pem, x509

from .errors import DecodeError, IoError

__all__ = [
    'parse_certificate',
    'parse_certificates',
    'parse_crl',
    'load_cert_from_pemder',
    'load_certs_from_pemder',
    'load_crl_from_pemder',
    'distribution_points',
]

PathLike = Union[str, os.PathLike]

_CERT_PEM_TYPES = frozenset(['certificate', 'x509 certificate'])
_CRL_PEM_TYPES = frozenset(['x509 crl'])


def _unarmor_all(data: bytes, acceptable_types, what: str) -> List[bytes]:
    # use the pattern from the asn1crypto docs
    # to distinguish PEM/DER and read multiple objects
    # from one PEM file (if necessary)
    if not pem.detect(data):
        return [data]
    try:
        result = [
            der
            for type_name, _, der in pem.unarmor(data, multiple=True)
            if type_name is None or type_name.lower() in acceptable_types
        ]
    except ValueError as e:
        raise DecodeError(f"Malformed PEM data for {what}: {e}") from e
    if not result:
        raise DecodeError(f"PEM data does not contain any {what}")
    return result


def _load_cert_der(der: bytes) -> x509.Certificate:
    try:
        cert = x509.Certificate.load(der, strict=True)
        # asn1crypto parses lazily, force a full parse here so that
        # malformed input cannot blow up later on
        cert.native
    except (ValueError, TypeError, KeyError) as e:
        raise DecodeError(f"Failed to decode certificate: {e}") from e
    return cert


def parse_certificates(data: bytes) -> List[x509.Certificate]:
    """
    Parse all certificates contained in a PEM bundle, or a single
    DER-encoded certificate.

    :param data:
        A byte string with PEM or DER-encoded data.
    :return:
        A list of :class:`asn1crypto.x509.Certificate` objects.
    :raises DecodeError:
        if the data could not be decoded.
    """
    if not isinstance(data, bytes):
        raise DecodeError(
            f"Certificate data must be bytes, not {type(data).__name__}"
        )
    return [
        _load_cert_der(der)
        for der in _unarmor_all(data, _CERT_PEM_TYPES, 'certificate')
    ]


def parse_certificate(data: bytes) -> x509.Certificate:
    """
    Parse a PEM or DER-encoded certificate. If the data is a PEM bundle,
    the first certificate is returned.

    :param data:
        A byte string with PEM or DER-encoded data.
    :return:
        An :class:`asn1crypto.x509.Certificate` object.
    :raises DecodeError:
        if the data could not be decoded.
    """
    return parse_certificates(data)[0]


def parse_crl(data: bytes) -> crl.CertificateList:
    """
    Parse a PEM or DER-encoded certificate revocation list.

    :param data:
        A byte string with PEM or DER-encoded data.
    :return:
        An :class:`asn1crypto.crl.CertificateList` object.
    :raises DecodeError:
        if the data could not be decoded.
    """
    if not isinstance(data, bytes):
        raise DecodeError(f"CRL data must be bytes, not {type(data).__name__}")
    der = _unarmor_all(data, _CRL_PEM_TYPES, 'CRL')[0]
    try:
        certificate_list = crl.CertificateList.load(der, strict=True)
        certificate_list.native
    except (ValueError, TypeError, KeyError) as e:
        raise DecodeError(f"Failed to decode CRL: {e}") from e
    return certificate_list


def _read_file(path: PathLike) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise IoError(f"Could not read {path}: {e}") from e


def load_certs_from_pemder(cert_files: Iterable[PathLike]):
    """
    A convenience function to load PEM/DER-encoded certificates from files.

    :param cert_files:
        An iterable of file names.
    :return:
        A generator producing :class:`.asn1crypto.x509.Certificate` objects.
    """
    for cert_file in cert_files:
        yield from parse_certificates(_read_file(cert_file))


def load_cert_from_pemder(cert_file: PathLike) -> x509.Certificate:
    """
    A convenience function to load a single PEM/DER-encoded certificate
    from a file.

    :param cert_file:
        A file name.
    :return:
        An :class:`.asn1crypto.x509.Certificate` object.
    """
    return parse_certificate(_read_file(cert_file))


def load_crl_from_pemder(crl_file: PathLike) -> crl.CertificateList:
    return parse_crl(_read_file(crl_file))


def distribution_points(cert: x509.Certificate) -> List[str]:
    """
    Extract the URLs from the CRL distribution points extension of a
    certificate, in the order in which they appear.

    Distribution points that only provide a name relative to the CRL issuer,
    and general names that aren't URIs, are skipped.

    :param cert:
        An :class:`asn1crypto.x509.Certificate` object.
    :return:
        A list of URL strings. Empty if the extension is absent.
    """
    dps = cert.crl_distribution_points_value
    if dps is None:
        return []

    urls = []
    for distribution_point in dps:
        dp_name = distribution_point['distribution_point']
        if isinstance(dp_name, core.Void):
            continue
        # RFC 5280 indicates conforming CA should not use the relative form
        if dp_name.name == 'name_relative_to_crl_issuer':
            continue
        for general_name in dp_name.chosen:
            if general_name.name == 'uniform_resource_identifier':
                urls.append(general_name.native)
    return urls
