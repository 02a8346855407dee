"""
Transport implementation using the ``requests`` library.
"""

import logging
from typing import Iterable, Optional

import requests

from ..errors import RetrievalError
from .api import DEFAULT_USER_AGENT, FetchResponse, Transport

__all__ = ['RequestsTransport']

logger = logging.getLogger(__name__)


class RequestsTransport(Transport):
    def __init__(
        self,
        user_agent: Optional[str] = None,
        per_request_timeout=10,
        session: Optional[requests.Session] = None,
    ):
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.per_request_timeout = per_request_timeout
        self._session = session

    def get(
        self, url: str, *, acceptable_content_types: Iterable[str]
    ) -> FetchResponse:
        headers = {
            'Accept': ','.join(acceptable_content_types),
            'User-Agent': self.user_agent,
        }
        getter = (
            self._session.get if self._session is not None else requests.get
        )
        try:
            response = getter(
                url=url, timeout=self.per_request_timeout, headers=headers
            )
        except requests.RequestException as e:
            raise RetrievalError(f"Failure to fetch {url}: {e}") from e
        logger.debug(f"GET {url} returned status {response.status_code}")
        return FetchResponse(
            url=url,
            status=response.status_code,
            content_type=response.headers.get('Content-Type', ''),
            content=response.content,
        )
