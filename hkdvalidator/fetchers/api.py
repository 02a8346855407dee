"""
Synchronous API for retrieving revocation data over the network.
"""

import abc
from dataclasses import dataclass
from typing import Iterable

from hkdvalidator.version import __version__

__all__ = ['FetchResponse', 'Transport', 'DEFAULT_USER_AGENT']

DEFAULT_USER_AGENT = 'hkdvalidator %s' % __version__


@dataclass(frozen=True)
class FetchResponse:
    """
    Bare-bones representation of the outcome of an HTTP GET request.
    """

    url: str
    status: int
    content_type: str
    """
    Value of the ``Content-Type`` header, or an empty string if the
    server didn't declare one.
    """

    content: bytes


class Transport(abc.ABC):
    """
    Utility interface to fetch bytes given a URL.

    Implementations are expected to enforce their own connect/read timeouts,
    and must not retry failed requests.
    """

    def get(
        self, url: str, *, acceptable_content_types: Iterable[str]
    ) -> FetchResponse:
        """
        Perform an HTTP GET request.

        :param url:
            The URL to fetch.
        :param acceptable_content_types:
            Content types to list in the ``Accept`` header.
        :raises:
            RetrievalError - when a network/transport error occurs
        :return:
            A :class:`FetchResponse`. Non-success statuses are not errors
            at this level.
        """
        raise NotImplementedError
