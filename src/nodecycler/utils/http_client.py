import logging
from typing import Callable, Optional

import httpx

from ..core.config import config

logger = logging.getLogger(__name__)


class BearerTokenAuth(httpx.Auth):
    """
    Bearer authentication whose token comes from `token_source`.

    The token is read on first use and kept. When the server answers 401 the
    source is read again and, if it yields a different token, the request is
    sent once more with it.
    """

    def __init__(self, token_source: Callable[[], Optional[str]]):
        self.token_source = token_source
        self._token: Optional[str] = None

    def _refresh(self) -> Optional[str]:
        self._token = self.token_source()
        return self._token

    @staticmethod
    def _apply(request: httpx.Request, token: Optional[str]) -> None:
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    def auth_flow(self, request: httpx.Request):
        token = self._token or self._refresh()
        self._apply(request, token)
        response = yield request

        if response.status_code != 401:
            return
        fresh = self._refresh()
        if fresh and fresh != token:
            logger.info(
                "Access token rejected for %s %s; retrying with a refreshed token.", request.method, request.url.path
            )
            self._apply(request, fresh)
            yield request


def get_async_http_client(
    base_url: str = "",
    auth: Optional[httpx.Auth] = None,
    connect_timeout: float = None,
    read_timeout: float = None,
    verify: bool = True,
) -> httpx.AsyncClient:
    """
    Returns a configured httpx.AsyncClient with:
    - Default timeouts (connect and read).
    - Standard User-Agent header.
    - The given authentication flow, if any.

    Retries are not handled here; callers wrap requests with the RetryExecutor.
    """
    c_timeout = connect_timeout if connect_timeout is not None else config.DEFAULT_TIMEOUT_CONNECT
    r_timeout = read_timeout if read_timeout is not None else config.DEFAULT_TIMEOUT_READ

    timeout = httpx.Timeout(r_timeout, connect=c_timeout)

    headers = {"User-Agent": config.USER_AGENT}

    return httpx.AsyncClient(
        base_url=base_url,
        auth=auth,
        timeout=timeout,
        headers=headers,
        verify=verify,
        follow_redirects=True,
    )
