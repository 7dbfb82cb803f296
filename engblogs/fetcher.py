import logging, socket, threading, time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import HTTPError, ReadTimeoutError
from urllib3.util.retry import Retry

# --------- Settings ----------
CONNECT_TIMEOUT_S = 5.0
READ_TIMEOUT_S    = 10.0
MAX_REDIRECTS     = 10
CHUNK_SIZE        = 16 * 1024

UA = 'engblogs/1.0 (+https://engineeringblogs.xyz)'

ACCEPT = 'application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.5'
# ------------------------------

log = logging.getLogger("engblogs.fetcher")


class FetchErrorKind(str, Enum):
    TIMEOUT = 'timeout'
    TRANSPORT = 'transport'


@dataclass(frozen=True)
class FetchError:
    kind: FetchErrorKind
    detail: str = ''

    def __str__(self):
        return f"{self.kind.value}: {self.detail}" if self.detail else self.kind.value


@dataclass(frozen=True)
class FetchResult:
    content: Optional[bytes] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _timeout(detail) -> FetchResult:
    return FetchResult(error=FetchError(FetchErrorKind.TIMEOUT, str(detail)))


def _transport(detail) -> FetchResult:
    return FetchResult(error=FetchError(FetchErrorKind.TRANSPORT, str(detail)))


def http_session(user_agent: str = UA, pool_size: int = 10) -> requests.Session:
    # One attempt per source per run: retrying is left to the next run.
    retry = Retry(total=0, read=False)
    adapter = HTTPAdapter(max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size)
    s = requests.Session()
    s.headers.update({'User-Agent': user_agent, 'Accept': ACCEPT})
    s.max_redirects = MAX_REDIRECTS
    s.mount('https://', adapter)
    s.mount('http://', adapter)
    return s


class Fetcher:
    """Single GET per feed, bounded by a connect timeout and a total read timeout.

    ``fetch`` never raises: failures come back as ``FetchResult.error``.
    The session is shared by all crawl workers (requests sessions are safe
    for concurrent GETs once configured).
    """

    def __init__(self, connect_timeout: float = CONNECT_TIMEOUT_S,
                 read_timeout: float = READ_TIMEOUT_S,
                 user_agent: str = UA,
                 session: Optional[requests.Session] = None,
                 pool_size: int = 10,
                 clock=time.monotonic):
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.session = session or http_session(user_agent, pool_size)
        self.clock = clock

    def fetch(self, url: str) -> FetchResult:
        log.debug("GET %s", url)
        try:
            resp = self.session.get(url, timeout=(self.connect_timeout, self.read_timeout), stream=True)
        except requests.exceptions.Timeout as e:
            return _timeout(e)
        except requests.exceptions.ConnectionError as e:
            if _is_read_timeout(e):
                return _timeout(e)
            return _transport(e)
        except (requests.RequestException, ValueError) as e:
            # InvalidURL, MissingSchema, TooManyRedirects, ...
            return _transport(e)

        try:
            if not 200 <= resp.status_code < 300:
                return _transport(f"HTTP {resp.status_code} for {url}")
            return self._read_body(resp)
        finally:
            resp.close()

    def _read_body(self, resp) -> FetchResult:
        """Read the body within ``read_timeout`` seconds in total.

        ``read1`` returns whatever a single recv delivers, so the deadline is
        checked between reads. A recv in progress can block for another
        ``read_timeout``, so a watchdog shuts the socket down at the deadline.
        """
        deadline = self.clock() + self.read_timeout
        expired = _timeout(f"body not read within {self.read_timeout}s")
        watchdog = threading.Timer(self.read_timeout, _shutdown, args=(resp,))
        watchdog.daemon = True
        watchdog.start()
        chunks = []
        try:
            while True:
                chunk = resp.raw.read1(CHUNK_SIZE, decode_content=True)
                if self.clock() >= deadline:
                    return expired
                if not chunk:
                    break
                chunks.append(chunk)
        except ReadTimeoutError as e:
            return _timeout(e)
        except (HTTPError, OSError) as e:
            # a shut down socket surfaces as ProtocolError/OSError
            if self.clock() >= deadline:
                return expired
            return _transport(e)
        finally:
            watchdog.cancel()
        return FetchResult(content=b''.join(chunks))


def _shutdown(resp) -> None:
    sock = getattr(getattr(resp.raw, '_connection', None), 'sock', None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        # already closed by the reader
        log.debug("Socket shutdown failed: %s", e)


def _is_read_timeout(exc: requests.exceptions.ConnectionError) -> bool:
    # urllib3 read timeouts can reach us wrapped in a ConnectionError
    return any(isinstance(a, ReadTimeoutError) or isinstance(getattr(a, 'reason', None), ReadTimeoutError)
               for a in exc.args)
