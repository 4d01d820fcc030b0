"""
Nginx Proxy Manager API Client
Handles proxy host and certificate management

Authentication is lazy: the first call logs in with identity/secret and the
session token is cached for the lifetime of the client. Every operation is
wrapped by ``retry_on_expired_session``, which re-authenticates and retries
the identical call once when the cached token is rejected.
"""
import functools
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .result import ConfigurationError, Err, ExternalServiceError, Ok, Result

logger = logging.getLogger(__name__)

SYSTEM = 'proxy_manager'


class ProxyManagerAuthError(Exception):
    """Login to the proxy manager failed."""
    pass


@dataclass
class ProxyHostSpec:
    """Proxy host definition sent to the proxy manager.

    Optional feature flags follow the manager's defaults used by this tool:
    SSL forcing, caching and HSTS are off; exploit blocking, websocket
    upgrade and HTTP/2 are on unless explicitly disabled.
    """

    domain_names: List[str]
    forward_host: str
    forward_port: int
    forward_scheme: str = 'http'
    access_list_id: int = 0
    certificate_id: int = 0
    ssl_forced: bool = False
    caching_enabled: bool = False
    block_exploits: bool = True
    advanced_config: str = ''
    allow_websocket_upgrade: bool = True
    http2_support: bool = True
    hsts_enabled: bool = False
    hsts_subdomains: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


def _extract_error(exc: Exception) -> str:
    """Pull the API's error message out of a failed request."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            data = exc.response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            error = data.get('error')
            if isinstance(error, dict) and error.get('message'):
                return str(error['message'])
            if data.get('message'):
                return str(data['message'])
        return f"HTTP {exc.response.status_code}"
    return str(exc) or type(exc).__name__


def retry_on_expired_session(method: Callable[..., Any]) -> Callable[..., Result]:
    """Turn a raising client method into a Result-returning one.

    The wrapped method returns the operation's value or raises. A 401 while a
    token was held clears the token and retries the call exactly once; any
    other failure, including a second 401, is returned as Err.
    """
    @functools.wraps(method)
    def wrapper(self: 'ProxyManagerClient', *args, **kwargs) -> Result:
        result, had_token = self._attempt(method, *args, **kwargs)
        if result.ok:
            return result

        if result.error.status_code == 401 and had_token:
            logger.info(f"Proxy manager session expired during {method.__name__}, re-authenticating")
            self.token = None
            result, _ = self._attempt(method, *args, **kwargs)
            if not result.ok:
                logger.error(f"Proxy manager {method.__name__} failed after re-authentication: {result.message}")
        return result

    return wrapper


class ProxyManagerClient:
    """Client for the Nginx Proxy Manager REST API"""

    def __init__(self, api_url: str, email: str, password: str,
                 timeout: float = 30, transport: Optional[httpx.BaseTransport] = None):
        if not api_url or not email or not password:
            raise ConfigurationError('Proxy manager API credentials not configured')

        self.api_url = api_url.rstrip('/')
        self.email = email
        self.password = password
        self.token: Optional[str] = None
        self.client = httpx.Client(
            base_url=self.api_url,
            headers={'Content-Type': 'application/json'},
            timeout=timeout,
            transport=transport,
        )

    def authenticate(self) -> str:
        """Exchange identity/secret for a session token."""
        try:
            response = self.client.post('/tokens', json={
                'identity': self.email,
                'secret': self.password,
            })
            response.raise_for_status()
            token = response.json()['token']
        except (httpx.HTTPError, ValueError, KeyError) as e:
            message = _extract_error(e) if isinstance(e, httpx.HTTPError) else f"malformed token response ({e})"
            raise ProxyManagerAuthError(f"Proxy manager authentication failed: {message}")

        self.token = token
        logger.info("Authenticated with proxy manager")
        return token

    def _ensure_authenticated(self):
        if not self.token:
            self.authenticate()

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """Authenticated request; raises httpx errors on failure."""
        self._ensure_authenticated()
        response = self.client.request(
            method, path, json=json,
            headers={'Authorization': f'Bearer {self.token}'},
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def _attempt(self, method: Callable[..., Any], *args, **kwargs) -> Tuple[Result, bool]:
        """Run one authenticated call.

        Returns:
            (result, had_token): whether the call went out with a session token
        """
        try:
            self._ensure_authenticated()
        except ProxyManagerAuthError as e:
            logger.error(str(e))
            return Err(ExternalServiceError(SYSTEM, str(e))), False

        try:
            return Ok(method(self, *args, **kwargs)), True
        except httpx.HTTPStatusError as e:
            message = _extract_error(e)
            logger.error(f"Proxy manager {method.__name__} failed: {message}")
            return Err(ExternalServiceError(SYSTEM, message, e.response.status_code)), True
        except (httpx.HTTPError, ValueError) as e:
            message = _extract_error(e)
            logger.error(f"Proxy manager {method.__name__} failed: {message}")
            return Err(ExternalServiceError(SYSTEM, message)), True

    @retry_on_expired_session
    def create_proxy_host(self, spec: ProxyHostSpec) -> int:
        """Create a proxy host and return its id."""
        data = self._request('POST', '/nginx/proxy-hosts', json=spec.to_payload())
        proxy_host_id = data.get('id') if isinstance(data, dict) else None
        if proxy_host_id is None:
            raise ValueError('Proxy host created but no id returned')
        logger.info(f"Created proxy host {proxy_host_id} for {', '.join(spec.domain_names)}")
        return proxy_host_id

    @retry_on_expired_session
    def update_proxy_host(self, proxy_host_id: int, fields: Dict[str, Any]) -> None:
        """Update some fields of a proxy host."""
        self._request('PUT', f'/nginx/proxy-hosts/{proxy_host_id}', json=fields)

    @retry_on_expired_session
    def delete_proxy_host(self, proxy_host_id: int) -> None:
        """Delete a proxy host."""
        self._request('DELETE', f'/nginx/proxy-hosts/{proxy_host_id}')
        logger.info(f"Deleted proxy host {proxy_host_id}")

    @retry_on_expired_session
    def list_proxy_hosts(self) -> List[Dict[str, Any]]:
        """List all proxy hosts."""
        data = self._request('GET', '/nginx/proxy-hosts')
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError('Unexpected proxy host listing format')
        return data

    @retry_on_expired_session
    def request_certificate(self, domains: List[str]) -> int:
        """Request a Let's Encrypt certificate for the given domains."""
        data = self._request('POST', '/nginx/certificates', json={
            'provider': 'letsencrypt',
            'domain_names': list(domains),
            'meta': {
                'letsencrypt_agree': True,
                'letsencrypt_email': self.email,
            },
        })
        certificate_id = data.get('id') if isinstance(data, dict) else None
        if certificate_id is None:
            raise ValueError('Certificate requested but no id returned')
        return certificate_id
