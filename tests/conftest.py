import pytest

from .common import CRL_CONTENT_TYPE, KEY_TYPES, crl_url, generate_pki


@pytest.fixture(scope='session')
def pki(tmp_path_factory):
    return generate_pki(str(tmp_path_factory.mktemp('pki')))


@pytest.fixture(scope='session', params=KEY_TYPES)
def any_pki(request, tmp_path_factory):
    key_type = request.param
    return generate_pki(
        str(tmp_path_factory.mktemp(f'pki-{key_type}')), key_type=key_type
    )


@pytest.fixture
def crl_endpoints(pki, requests_mock):
    for fname in pki.crls:
        requests_mock.get(
            crl_url(fname),
            content=pki.crl_der(fname),
            headers={'Content-Type': CRL_CONTENT_TYPE},
        )
    return requests_mock
