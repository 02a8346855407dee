import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence

from asn1crypto import crl as asn1_crl
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.x509.oid import NameOID

CRL_BASE_URL = 'http://127.0.0.1:1234/crl'
CRL_CONTENT_TYPE = 'application/pkix-crl'

CA_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=True,
    crl_sign=True,
    encipher_only=False,
    decipher_only=False,
)

EE_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    content_commitment=False,
    key_encipherment=True,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=False,
    crl_sign=False,
    encipher_only=False,
    decipher_only=False,
)


def make_name(common_name, org='HKD Test PKI'):
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, 'US'),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


KEY_TYPES = ('ec', 'rsa', 'rsa-pss', 'ed25519')

# salt length matches the SHA-256 digest size
PSS_PADDING = padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=32)


def make_key(key_type='ec'):
    if key_type in ('rsa', 'rsa-pss'):
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)
    elif key_type == 'ed25519':
        return ed25519.Ed25519PrivateKey.generate()
    elif key_type == 'ec':
        return ec.generate_private_key(ec.SECP256R1())
    raise ValueError(f"Unknown key type {key_type}")


def _sign(builder, signing_key, rsa_padding=None):
    if isinstance(signing_key, ed25519.Ed25519PrivateKey):
        return builder.sign(signing_key, None)
    elif rsa_padding is not None:
        return builder.sign(
            signing_key, hashes.SHA256(), rsa_padding=rsa_padding
        )
    return builder.sign(signing_key, hashes.SHA256())


def crl_url(name):
    return f'{CRL_BASE_URL}/{name}'


def issue_cert(
    subject: x509.Name,
    public_key,
    issuer: x509.Name,
    signing_key,
    *,
    not_before: datetime,
    not_after: datetime,
    ca: bool,
    path_length: Optional[int] = None,
    crl_urls: Sequence[str] = (),
    aki_public_key=None,
    serial_number: Optional[int] = None,
    rsa_padding=None,
) -> x509.Certificate:
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(serial_number or x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.BasicConstraints(ca=ca, path_length=path_length),
            critical=True,
        )
        .add_extension(CA_KEY_USAGE if ca else EE_KEY_USAGE, critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                aki_public_key or signing_key.public_key()
            ),
            critical=False,
        )
    )
    if crl_urls:
        builder = builder.add_extension(
            x509.CRLDistributionPoints(
                [
                    x509.DistributionPoint(
                        full_name=[x509.UniformResourceIdentifier(url)],
                        relative_name=None,
                        reasons=None,
                        crl_issuer=None,
                    )
                    for url in crl_urls
                ]
            ),
            critical=False,
        )
    return _sign(builder, signing_key, rsa_padding)


def issue_crl(
    issuer: x509.Name,
    signing_key,
    *,
    this_update: datetime,
    next_update: datetime,
    revoked=(),
) -> x509.CertificateRevocationList:
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer)
        .last_update(this_update)
        .next_update(next_update)
        .add_extension(x509.CRLNumber(1), critical=False)
    )
    for serial_number, revocation_date in revoked:
        builder = builder.add_revoked_certificate(
            x509.RevokedCertificateBuilder()
            .serial_number(serial_number)
            .revocation_date(revocation_date)
            .add_extension(
                x509.CRLReason(x509.ReasonFlags.key_compromise),
                critical=False,
            )
            .build()
        )
    return _sign(builder, signing_key)


def to_asn1(cert: x509.Certificate) -> asn1_x509.Certificate:
    return asn1_x509.Certificate.load(
        cert.public_bytes(serialization.Encoding.DER)
    )


def crl_to_asn1(
    certificate_list: x509.CertificateRevocationList,
) -> asn1_crl.CertificateList:
    return asn1_crl.CertificateList.load(
        certificate_list.public_bytes(serialization.Encoding.DER)
    )


def with_signature_algorithm(signed_obj, algorithm: str):
    """
    Return a copy of a certificate or CRL with a different outer signature
    algorithm identifier. The signature itself is left alone.
    """
    cls = type(signed_obj)
    result = cls.load(signed_obj.dump())
    result['signature_algorithm'] = {'algorithm': algorithm}
    return cls.load(result.dump())


@dataclass
class PKIFixture:
    """
    Certificates, keys and CRLs of the test PKI, as written to ``directory``.
    """

    directory: str
    generated_at: datetime
    key_type: str = 'ec'
    certs: Dict[str, x509.Certificate] = field(default_factory=dict)
    keys: Dict[str, Any] = field(default_factory=dict)
    crls: Dict[str, x509.CertificateRevocationList] = field(
        default_factory=dict
    )

    def path(self, fname) -> str:
        return os.path.join(self.directory, fname)

    def cert(self, fname) -> asn1_x509.Certificate:
        return to_asn1(self.certs[fname])

    def crl(self, fname) -> asn1_crl.CertificateList:
        return crl_to_asn1(self.crls[fname])

    def crl_der(self, fname) -> bytes:
        return self.crls[fname].public_bytes(serialization.Encoding.DER)

    def name(self, fname) -> x509.Name:
        return self.certs[fname].subject


def _write(path, data: bytes):
    with open(path, 'wb') as outf:
        outf.write(data)


def generate_pki(directory, key_type='ec') -> PKIFixture:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    pki = PKIFixture(
        directory=directory, generated_at=now, key_type=key_type
    )
    not_before = now - timedelta(days=1)
    not_after = now + timedelta(days=365)

    root_key, inter_key, ibm_key, host_key, rogue_key = (
        make_key(key_type) for _ in range(5)
    )
    pki.keys.update(
        root=root_key, inter=inter_key, ibm=ibm_key, host=host_key
    )

    # CRLs are always signed with PKCS#1 v1.5 padding
    cert_padding = PSS_PADDING if key_type == 'rsa-pss' else None

    root_name = make_name('Root CA')
    inter_name = make_name('Intermediate CA')
    ibm_name = make_name(
        'International Business Machines Corporation',
        org='International Business Machines Corporation',
    )

    root = issue_cert(
        root_name, root_key.public_key(), root_name, root_key,
        not_before=not_before, not_after=not_after, ca=True,
        rsa_padding=cert_padding,
    )
    inter = issue_cert(
        inter_name, inter_key.public_key(), root_name, root_key,
        not_before=not_before, not_after=not_after, ca=True,
        rsa_padding=cert_padding,
        crl_urls=[crl_url('root_ca.crl')],
    )
    ibm = issue_cert(
        ibm_name, ibm_key.public_key(), inter_name, inter_key,
        not_before=not_before, not_after=not_after, ca=True, path_length=0,
        rsa_padding=cert_padding,
        crl_urls=[crl_url('inter_ca.crl')],
    )

    def _host(common_name, **kwargs):
        kwargs.setdefault('not_before', not_before)
        kwargs.setdefault('not_after', not_after)
        kwargs.setdefault('signing_key', ibm_key)
        kwargs.setdefault('rsa_padding', cert_padding)
        return issue_cert(
            make_name(common_name), host_key.public_key(), ibm_name,
            ca=False, crl_urls=[crl_url('ibm.crl')], **kwargs
        )

    host = _host('host')
    host_rev = _host('host revoked')
    host_expired = _host(
        'host expired',
        not_before=now - timedelta(days=60),
        not_after=now - timedelta(days=30),
    )
    # right issuer name, wrong key
    host_invalid = _host(
        'host invalid signing key',
        signing_key=rogue_key,
        aki_public_key=rogue_key.public_key(),
    )

    pki.certs.update(
        {
            'root_ca.chained.crt': root,
            'inter_ca.crt': inter,
            'ibm.crt': ibm,
            'host.crt': host,
            'host_rev.crt': host_rev,
            'host_crt_expired.crt': host_expired,
            'host_invalid_signing_key.crt': host_invalid,
        }
    )

    this_update = now - timedelta(hours=1)
    next_update = now + timedelta(days=7)
    pki.crls.update(
        {
            'root_ca.crl': issue_crl(
                root_name, root_key,
                this_update=this_update, next_update=next_update,
            ),
            'inter_ca.crl': issue_crl(
                inter_name, inter_key,
                this_update=this_update, next_update=next_update,
            ),
            'ibm.crl': issue_crl(
                ibm_name, ibm_key,
                this_update=this_update, next_update=next_update,
                revoked=[(host_rev.serial_number, now - timedelta(days=1))],
            ),
        }
    )

    # the signing key certificate is stored in DER, everything else in PEM
    for fname, cert in pki.certs.items():
        encoding = (
            serialization.Encoding.DER
            if fname == 'ibm.crt'
            else serialization.Encoding.PEM
        )
        _write(pki.path(fname), cert.public_bytes(encoding))
    for fname, certificate_list in pki.crls.items():
        encoding = (
            serialization.Encoding.PEM
            if fname == 'ibm.crl'
            else serialization.Encoding.DER
        )
        _write(pki.path(fname), certificate_list.public_bytes(encoding))
    return pki
