from asn1crypto import algos
from asn1crypto.keys import PublicKeyInfo
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import (
    dsa,
    ec,
    ed448,
    ed25519,
    padding,
    rsa,
)

__all__ = ['validate_sig', 'verify_signed_object']


def _get_hash(hash_algo):
    try:
        return getattr(hashes, hash_algo.upper())()
    except AttributeError:
        raise NotImplementedError(
            f"Digest algorithm {hash_algo} is not supported."
        )


def validate_sig(
    signature: bytes,
    signed_data: bytes,
    public_key_info: PublicKeyInfo,
    sig_algo: str,
    hash_algo: str,
    parameters=None,
):
    """
    Verify a signature with pyca/cryptography.

    :raises:
        cryptography.exceptions.InvalidSignature - if the signature is not
        valid for the given data and key
        NotImplementedError - for unsupported mechanisms
    """

    # pyca/cryptography can't load PSS-exclusive keys without some help:
    if public_key_info.algorithm == 'rsassa_pss':
        public_key_info = public_key_info.copy()
        if not isinstance(parameters, algos.RSASSAPSSParams):
            raise InvalidSignature(
                "RSASSA-PSS keys can only be used for RSASSA-PSS signatures"
            )
        pss_key_params = public_key_info['algorithm']['parameters'].native
        if pss_key_params is not None and pss_key_params != parameters.native:
            raise InvalidSignature(
                "Public key info includes PSS parameters that do not match "
                "those on the signature"
            )
        # set key type to generic RSA, discard parameters
        public_key_info['algorithm'] = {'algorithm': 'rsa'}

    try:
        pub_key = serialization.load_der_public_key(public_key_info.dump())
    except ValueError as e:
        raise InvalidSignature("Public key could not be loaded") from e

    try:
        if sig_algo == 'rsassa_pkcs1v15':
            assert isinstance(pub_key, rsa.RSAPublicKey)
            h = _get_hash(hash_algo)
            pub_key.verify(signature, signed_data, padding.PKCS1v15(), h)
        elif sig_algo == 'rsassa_pss':
            assert isinstance(pub_key, rsa.RSAPublicKey)
            assert isinstance(parameters, algos.RSASSAPSSParams)
            mga: algos.MaskGenAlgorithm = parameters['mask_gen_algorithm']
            if not mga['algorithm'].native == 'mgf1':
                raise NotImplementedError("Only MFG1 is supported")

            mgf_md_name = mga['parameters']['algorithm'].native

            salt_len: int = parameters['salt_length'].native

            mgf_md = _get_hash(mgf_md_name)
            pss_padding = padding.PSS(
                mgf=padding.MGF1(algorithm=mgf_md), salt_length=salt_len
            )
            hash_spec = _get_hash(hash_algo)
            pub_key.verify(signature, signed_data, pss_padding, hash_spec)
        elif sig_algo == 'dsa':
            assert isinstance(pub_key, dsa.DSAPublicKey)
            hash_spec = _get_hash(hash_algo)
            pub_key.verify(signature, signed_data, hash_spec)
        elif sig_algo == 'ecdsa':
            assert isinstance(pub_key, ec.EllipticCurvePublicKey)
            hash_spec = _get_hash(hash_algo)
            pub_key.verify(signature, signed_data, ec.ECDSA(hash_spec))
        elif sig_algo == 'ed25519':
            assert isinstance(pub_key, ed25519.Ed25519PublicKey)
            pub_key.verify(signature, signed_data)
        elif sig_algo == 'ed448':
            assert isinstance(pub_key, ed448.Ed448PublicKey)
            pub_key.verify(signature, signed_data)
        else:  # pragma: nocover
            raise NotImplementedError(
                f"Signature mechanism {sig_algo} is not supported."
            )
    except AssertionError as e:
        # key type doesn't match the signature mechanism
        raise InvalidSignature(
            f"Public key is not suitable for {sig_algo} signatures"
        ) from e


def verify_signed_object(
    signed_obj, tbs_key: str, sig_key: str, public_key_info: PublicKeyInfo
):
    """
    Verify the signature on a certificate or CRL.

    :param signed_obj:
        An asn1crypto.x509.Certificate or asn1crypto.crl.CertificateList
    :param tbs_key:
        Name of the to-be-signed component.
    :param sig_key:
        Name of the signature value component.
    :param public_key_info:
        The public key of the (purported) signer.
    :raises:
        cryptography.exceptions.InvalidSignature
        NotImplementedError - if the signature algorithm is not recognised
    """
    sd_algo: algos.SignedDigestAlgorithm = signed_obj['signature_algorithm']
    try:
        sig_algo = sd_algo.signature_algo
    except ValueError as e:
        raise NotImplementedError(str(e)) from e
    try:
        hash_algo = sd_algo.hash_algo
    except ValueError:
        # EdDSA variants don't use a separate hash
        hash_algo = None
    validate_sig(
        signature=signed_obj[sig_key].native,
        signed_data=signed_obj[tbs_key].dump(),
        public_key_info=public_key_info,
        sig_algo=sig_algo,
        hash_algo=hash_algo,
        parameters=sd_algo['parameters'],
    )
