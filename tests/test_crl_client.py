from datetime import timedelta

import pytest
import requests

from hkdvalidator.crl_client import CRLRetriever
from hkdvalidator.errors import RetrievalError
from hkdvalidator.fetchers import FetchResponse, Transport
from hkdvalidator.fetchers.requests_fetchers import RequestsTransport

from .common import (
    CRL_CONTENT_TYPE,
    crl_url,
    issue_cert,
    make_key,
    make_name,
    to_asn1,
)


def test_fetch(pki, crl_endpoints):
    retriever = CRLRetriever(RequestsTransport(per_request_timeout=5))
    result = retriever.fetch(crl_url('ibm.crl'))
    assert result.dump() == pki.crl_der('ibm.crl')
    assert crl_endpoints.call_count == 1
    request = crl_endpoints.request_history[0]
    assert CRL_CONTENT_TYPE in request.headers['Accept']
    assert request.headers['User-Agent'].startswith('hkdvalidator')


def test_fetch_logs_request(pki, crl_endpoints, caplog):
    caplog.set_level('INFO', logger='hkdvalidator.crl_client')
    CRLRetriever().fetch(crl_url('ibm.crl'))
    assert f"Requesting CRL from {crl_url('ibm.crl')}..." in caplog.messages


@pytest.mark.parametrize(
    'content_type',
    [
        'application/pkix-crl; charset=binary',
        'Application/PKIX-CRL',
        'application/x-pkcs7-crl',
    ],
)
def test_fetch_content_type_variants(pki, requests_mock, content_type):
    requests_mock.get(
        crl_url('ibm.crl'),
        content=pki.crl_der('ibm.crl'),
        headers={'Content-Type': content_type},
    )
    result = CRLRetriever().fetch(crl_url('ibm.crl'))
    assert result.issuer == pki.cert('ibm.crt').subject


@pytest.mark.parametrize('content_type', ['text/html', 'application/pkix-cert'])
def test_fetch_wrong_content_type(pki, requests_mock, content_type):
    requests_mock.get(
        crl_url('ibm.crl'),
        content=pki.crl_der('ibm.crl'),
        headers={'Content-Type': content_type},
    )
    with pytest.raises(RetrievalError, match='content type'):
        CRLRetriever().fetch(crl_url('ibm.crl'))


def test_fetch_missing_content_type(pki, requests_mock):
    requests_mock.get(crl_url('ibm.crl'), content=pki.crl_der('ibm.crl'))
    with pytest.raises(RetrievalError):
        CRLRetriever().fetch(crl_url('ibm.crl'))


def test_fetch_error_status(requests_mock):
    requests_mock.get(
        crl_url('ibm.crl'),
        status_code=404,
        headers={'Content-Type': CRL_CONTENT_TYPE},
    )
    with pytest.raises(RetrievalError, match='404'):
        CRLRetriever().fetch(crl_url('ibm.crl'))


def test_fetch_undecodable_body(requests_mock):
    requests_mock.get(
        crl_url('ibm.crl'),
        content=b'definitely not a CRL',
        headers={'Content-Type': CRL_CONTENT_TYPE},
    )
    with pytest.raises(RetrievalError, match='Failed to decode'):
        CRLRetriever().fetch(crl_url('ibm.crl'))


def test_fetch_transport_error(requests_mock):
    requests_mock.get(
        crl_url('ibm.crl'), exc=requests.exceptions.ConnectTimeout
    )
    with pytest.raises(RetrievalError):
        CRLRetriever().fetch(crl_url('ibm.crl'))


def test_fetch_all_deduplicates(pki, crl_endpoints):
    hosts = [
        pki.cert(fname)
        for fname in ('host.crt', 'host_rev.crt', 'host_crt_expired.crt')
    ]
    result = CRLRetriever().fetch_all(hosts)
    assert len(result) == 1
    assert crl_endpoints.call_count == 1


def test_fetch_all_several_urls(pki, crl_endpoints):
    result = CRLRetriever().fetch_all(
        [pki.cert('ibm.crt'), pki.cert('inter_ca.crt')]
    )
    assert [cl.issuer for cl in result] == [
        pki.cert('inter_ca.crt').subject,
        pki.cert('root_ca.chained.crt').subject,
    ]


def test_fetch_all_skips_ldap(pki, crl_endpoints):
    key = make_key()
    ldap_cert = issue_cert(
        make_name('ldap'), key.public_key(), make_name('ldap'), key,
        not_before=pki.generated_at - timedelta(days=1),
        not_after=pki.generated_at + timedelta(days=1),
        ca=False,
        crl_urls=[
            'ldap://ldap.example.com/cn=CRL',
            crl_url('root_ca.crl'),
        ],
    )
    result = CRLRetriever().fetch_all([to_asn1(ldap_cert)])
    assert len(result) == 1
    assert crl_endpoints.call_count == 1


def test_fetch_all_fails_fast(pki, requests_mock):
    requests_mock.get(crl_url('inter_ca.crl'), status_code=500)
    requests_mock.get(
        crl_url('root_ca.crl'),
        content=pki.crl_der('root_ca.crl'),
        headers={'Content-Type': CRL_CONTENT_TYPE},
    )
    with pytest.raises(RetrievalError):
        CRLRetriever().fetch_all(
            [pki.cert('ibm.crt'), pki.cert('inter_ca.crt')]
        )
    assert requests_mock.call_count == 1


def test_fetch_all_without_dist_points(pki):
    class _NoNetwork(Transport):
        def get(self, url, *, acceptable_content_types):
            raise AssertionError("should not be called")

    retriever = CRLRetriever(_NoNetwork())
    assert retriever.fetch_all([pki.cert('root_ca.chained.crt')]) == []


def test_custom_transport(pki):
    class _StaticTransport(Transport):
        def __init__(self):
            self.urls = []

        def get(self, url, *, acceptable_content_types):
            self.urls.append(url)
            return FetchResponse(
                url=url,
                status=200,
                content_type=CRL_CONTENT_TYPE,
                content=pki.crl_der('ibm.crl'),
            )

    transport = _StaticTransport()
    result = CRLRetriever(transport).fetch_all([pki.cert('host.crt')])
    assert transport.urls == [crl_url('ibm.crl')]
    assert result[0].dump() == pki.crl_der('ibm.crl')
