# coding: utf-8
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from asn1crypto import core, crl, x509
from cryptography.exceptions import InvalidSignature

from .errors import (
    AfterValidityError,
    BeforeValidityError,
    ChainError,
    InvalidCAError,
    IssuerMismatchError,
    MissingCRLError,
    RevokedError,
    SignatureInvalidError,
    StaleCRLError,
)
from .path import PathBuilder, ValidationPath
from .policy import VerificationPolicy
from .store import TrustStore
from .util import verify_signed_object

__all__ = ['verify_chain', 'validate_path']

logger = logging.getLogger(__name__)


def verify_chain(
    store: TrustStore,
    intermediates: Iterable[x509.Certificate],
    leaf_chain: Iterable[x509.Certificate],
    *,
    policy: Optional[VerificationPolicy] = None,
    extra_crls: Iterable[crl.CertificateList] = (),
):
    """
    Verify every certificate in ``leaf_chain`` against the trust store.

    For each leaf, all candidate paths through ``intermediates`` (and the
    intermediates pinned in the store) to a trust anchor are attempted.
    The leaf is accepted as soon as one of them validates.

    :param store:
        A :class:`.TrustStore`.
    :param intermediates:
        Untrusted intermediate certificates to use for path building.
    :param leaf_chain:
        The certificates to verify.
    :param policy:
        A :class:`.VerificationPolicy`. If not specified, the defaults apply.
    :param extra_crls:
        CRLs to consider in addition to the ones in the store, for this
        call only.
    :raises:
        hkdvalidator.errors.ChainError - a subclass describing why the first
        rejected certificate could not be verified
    """

    policy = policy or VerificationPolicy()
    moment = policy.reference_time()
    crls = _CRLCollection(store, extra_crls)
    path_builder = PathBuilder(store, list(intermediates))

    for leaf in leaf_chain:
        _verify_single(path_builder, leaf, crls, policy, moment)


def _verify_single(
    path_builder: PathBuilder,
    leaf: x509.Certificate,
    crls: '_CRLCollection',
    policy: VerificationPolicy,
    moment: datetime,
):
    exceptions: List[ChainError] = []
    for candidate_path in path_builder.build_paths(leaf):
        try:
            validate_path(
                candidate_path, policy=policy, moment=moment, crls=crls
            )
            return candidate_path
        except ChainError as e:
            logger.debug(
                f"Candidate path {candidate_path!r} rejected: {e}"
            )
            exceptions.append(e)

    # build_paths raises if there are no paths at all, so there's
    # at least one error here
    raise exceptions[0]


class _CRLCollection:
    def __init__(self, store: TrustStore, extra_crls):
        self._store = store
        self._extra = tuple(extra_crls)

    def for_issuer(self, name: x509.Name):
        result = list(self._store.crls_by_issuer(name))
        result.extend(cl for cl in self._extra if cl.issuer == name)
        return result


@dataclass
class _PathValidationState:
    """
    State variables that need to be maintained while traversing a certification
    path
    """

    working_public_key: x509.PublicKeyInfo
    working_issuer_name: x509.Name
    max_path_length: int


def _describe_cert(index: int, path_length: int, def_interm=False) -> str:
    if index == path_length:
        return 'the end-entity certificate'
    return f'{"the " if def_interm else ""}intermediate certificate {index}'


def validate_path(
    path: ValidationPath,
    *,
    policy: VerificationPolicy,
    moment: datetime,
    crls,
):
    """
    Validate a single path, going from the trust anchor to the end-entity
    certificate.

    :param path:
        A :class:`.ValidationPath`.
    :param policy:
        The :class:`.VerificationPolicy` to apply.
    :param moment:
        The reference time.
    :param crls:
        Object providing a ``for_issuer(name)`` method returning candidate
        CRLs.
    :raises:
        hkdvalidator.errors.ChainError
    :return:
        The end-entity certificate of the path.
    """
    trust_anchor = path.trust_anchor
    path_length = path.pkix_len
    tolerance = policy.time_tolerance

    state = _PathValidationState(
        working_public_key=trust_anchor.public_key,
        working_issuer_name=trust_anchor.subject,
        max_path_length=path_length,
    )

    cert = trust_anchor
    for index in range(1, path_length + 1):
        issuer_cert = cert
        cert = path[index]
        is_ee_cert = index == path_length
        desc = _describe_cert(index, path_length)

        _check_signature(cert, state, desc, is_ee_cert)

        _check_validity(
            cert['tbs_certificate']['validity'],
            moment=moment,
            tolerance=tolerance,
            desc=desc,
            is_ee_cert=is_ee_cert,
        )

        if cert.issuer != state.working_issuer_name:
            raise IssuerMismatchError(
                f"The path could not be validated because {desc} issuer "
                f"name could not be matched",
                is_ee_cert=is_ee_cert,
            )

        crl_required = (
            policy.leaf_crl_required
            if is_ee_cert
            else policy.intermediate_crl_required
        )
        _check_revocation(
            cert,
            issuer_cert,
            crls.for_issuer(cert.issuer),
            moment=moment,
            tolerance=tolerance,
            required=crl_required,
            desc=desc,
            is_ee_cert=is_ee_cert,
        )

        if index < path_length:
            _prepare_next_step(
                cert, state, _describe_cert(index, path_length, True)
            )

    return cert


def _check_signature(
    cert: x509.Certificate,
    state: _PathValidationState,
    desc: str,
    is_ee_cert: bool,
):
    try:
        verify_signed_object(
            cert, 'tbs_certificate', 'signature_value',
            state.working_public_key
        )
    except InvalidSignature:
        raise SignatureInvalidError(
            f"The path could not be validated because the signature of "
            f"{desc} could not be verified",
            is_ee_cert=is_ee_cert,
        )
    except NotImplementedError as e:
        raise SignatureInvalidError(
            f"The path could not be validated because the signature of "
            f"{desc} uses an unsupported mechanism: {e}",
            is_ee_cert=is_ee_cert,
        )


def _check_validity(
    validity: x509.Validity,
    moment: datetime,
    tolerance: timedelta,
    desc: str,
    is_ee_cert: bool,
):
    not_before = validity['not_before'].native
    not_after = validity['not_after'].native
    if moment < not_before - tolerance:
        raise BeforeValidityError.format(
            valid_from=not_before, cert_desc=desc, is_ee_cert=is_ee_cert
        )
    if moment > not_after + tolerance:
        raise AfterValidityError.format(
            expired_dt=not_after, cert_desc=desc, is_ee_cert=is_ee_cert
        )


def _crl_signed_by(
    certificate_list: crl.CertificateList, issuer: x509.Certificate
) -> bool:
    if (
        issuer.key_usage_value
        and 'crl_sign' not in issuer.key_usage_value.native
    ):
        return False
    try:
        verify_signed_object(
            certificate_list, 'tbs_cert_list', 'signature', issuer.public_key
        )
    except (InvalidSignature, NotImplementedError):
        return False
    return True


def _find_cert_in_list(
    cert: x509.Certificate, certificate_list: crl.CertificateList
):
    """
    Looks for a cert in the list of revoked certificates

    :return:
        A tuple of (None, None) if not present, otherwise a tuple of
        (datetime, asn1crypto.crl.CRLReason object)
        representing the date/time the object was revoked and why
    """

    revoked_certificates = certificate_list['tbs_cert_list'][
        'revoked_certificates'
    ]
    if isinstance(revoked_certificates, core.Void):
        return None, None

    cert_serial = cert.serial_number
    for revoked_cert in revoked_certificates:
        if revoked_cert['user_certificate'].native != cert_serial:
            continue

        if not revoked_cert.crl_reason_value:
            crl_reason = crl.CRLReason('unspecified')
        else:
            crl_reason = revoked_cert.crl_reason_value

        return revoked_cert['revocation_date'].native, crl_reason

    return None, None


def _check_revocation(
    cert: x509.Certificate,
    issuer: x509.Certificate,
    candidate_crls,
    *,
    moment: datetime,
    tolerance: timedelta,
    required: bool,
    desc: str,
    is_ee_cert: bool,
):
    applicable = []
    for certificate_list in candidate_crls:
        if not _crl_signed_by(certificate_list, issuer):
            logger.debug(
                f"Disregarding CRL issued by "
                f"{certificate_list.issuer.human_friendly}: the signature "
                f"could not be verified against the issuer of {desc}"
            )
            continue
        this_update = certificate_list['tbs_cert_list']['this_update'].native
        if this_update > moment + tolerance:
            logger.debug("Disregarding CRL that is too recent")
            continue
        applicable.append(certificate_list)

    if not applicable:
        if required:
            raise MissingCRLError(
                f"The path could not be validated because no applicable "
                f"CRL could be found for {desc}",
                is_ee_cert=is_ee_cert,
            )
        return

    # a revocation entry is decisive, even on a CRL that is out of date
    for certificate_list in applicable:
        revocation_dt, reason = _find_cert_in_list(cert, certificate_list)
        if revocation_dt is not None:
            raise RevokedError.format(
                reason, revocation_dt, desc, is_ee_cert=is_ee_cert
            )

    next_updates = [
        cl['tbs_cert_list']['next_update'].native for cl in applicable
    ]
    if all(
        nu is not None and nu + tolerance < moment for nu in next_updates
    ):
        latest = max(next_updates)
        raise StaleCRLError(
            f"The path could not be validated because the CRLs covering "
            f"{desc} expired on {latest.strftime('%Y-%m-%d %H:%M:%SZ')}",
            next_update=latest,
            is_ee_cert=is_ee_cert,
        )


def _prepare_next_step(
    cert: x509.Certificate,
    state: _PathValidationState,
    desc: str,
):
    state.working_issuer_name = cert.subject
    state.working_public_key = cert.public_key

    if not cert.ca:
        raise InvalidCAError(
            f"The path could not be validated because {desc} is not a CA",
            is_ee_cert=False,
        )

    if not cert.self_issued:
        if state.max_path_length == 0:
            raise InvalidCAError(
                "The path could not be validated because it exceeds the "
                "maximum path length",
                is_ee_cert=False,
            )
        state.max_path_length -= 1

    if (
        cert.max_path_length is not None
        and cert.max_path_length < state.max_path_length
    ):
        state.max_path_length = cert.max_path_length

    if (
        cert.key_usage_value
        and 'key_cert_sign' not in cert.key_usage_value.native
    ):
        raise InvalidCAError(
            "The path could not be validated because "
            f"{desc} is not allowed to sign certificates",
            is_ee_cert=False,
        )
