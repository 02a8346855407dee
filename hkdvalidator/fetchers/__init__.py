from .api import *

__all__ = [
    'FetchResponse', 'Transport', 'DEFAULT_USER_AGENT', 'default_transport'
]


def default_transport(per_request_timeout=10) -> Transport:
    """
    Instantiate a default transport backed by ``requests``.
    """

    from .requests_fetchers import RequestsTransport
    return RequestsTransport(per_request_timeout=per_request_timeout)
