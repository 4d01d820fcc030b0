"""
Cloudflare DNS Backend Implementation.

Implements DNSBackend interface for the Cloudflare v4 zone API.
Authentication is a static API token sent as a bearer token.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..result import ConfigurationError, Err, ExternalServiceError, Ok, Result
from .base import AUTO_TTL, DNSBackend

logger = logging.getLogger(__name__)

SYSTEM = 'dns'


class CloudflareBackend(DNSBackend):
    """Cloudflare DNS backend implementation."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize Cloudflare backend.

        Required config keys:
            api_token: Cloudflare API token with DNS edit permission
            zone_id: Default zone identifier

        Optional config keys:
            api_url: API base URL (default: https://api.cloudflare.com/client/v4)
            timeout: Request timeout in seconds (default: 30)
        """
        super().__init__(config)

        if not config.get('api_token') or not config.get('zone_id'):
            raise ConfigurationError('Cloudflare API credentials not configured')

        self.api_token = config['api_token']
        self.zone_id = config['zone_id']
        self.api_url = config.get('api_url', 'https://api.cloudflare.com/client/v4').rstrip('/')
        self.timeout = config.get('timeout', 30)
        self.transport: Optional[httpx.BaseTransport] = config.get('transport')

        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.api_url,
                headers={
                    'Authorization': f'Bearer {self.api_token}',
                    'Content-Type': 'application/json',
                },
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    def _records_path(self, zone_id: Optional[str]) -> str:
        return f'/zones/{zone_id or self.zone_id}/dns_records'

    def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Result:
        """Issue a request and unwrap the Cloudflare response envelope.

        Returns:
            Ok(envelope['result']) or Err(ExternalServiceError)
        """
        try:
            response = self.client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Cloudflare {method} {path} failed: {e}")
            return Err(ExternalServiceError(SYSTEM, str(e) or type(e).__name__))

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            message = f"HTTP {response.status_code}: unexpected response body"
            logger.error(f"Cloudflare {method} {path} failed: {message}")
            return Err(ExternalServiceError(SYSTEM, message, response.status_code))

        if data.get('success') and response.is_success:
            return Ok(data.get('result'))

        message = self._error_message(data) or f"HTTP {response.status_code}"
        logger.error(f"Cloudflare {method} {path} failed: {message}")
        return Err(ExternalServiceError(SYSTEM, message, response.status_code))

    @staticmethod
    def _error_message(data: Dict[str, Any]) -> str:
        """Join provider error messages with ', '."""
        errors = data.get('errors')
        if not isinstance(errors, list):
            return ''
        return ', '.join(str(e.get('message', '')) for e in errors if isinstance(e, dict))

    def test_connection(self) -> tuple[bool, str]:
        """Verify the API token."""
        result = self._call('GET', '/user/tokens/verify')
        if not result.ok:
            return False, result.message
        token = result.value if isinstance(result.value, dict) else {}
        status = token.get('status', 'unknown')
        return status == 'active', f"Token status: {status}"

    def create_record(self, record_type: str, name: str, content: str,
                      ttl: int = AUTO_TTL, proxied: bool = False, *,
                      zone_id: Optional[str] = None) -> Result:
        """Create a DNS record and return its identifier."""
        result = self._call('POST', self._records_path(zone_id), json={
            'type': record_type,
            'name': name,
            'content': content,
            'ttl': ttl or AUTO_TTL,
            'proxied': bool(proxied),
        })
        if not result.ok:
            return result

        record_id = result.value.get('id') if isinstance(result.value, dict) else None
        if not record_id:
            return Err(ExternalServiceError(SYSTEM, 'Record created but no id returned'))

        logger.info(f"Created {record_type} record {name} -> {content} ({record_id})")
        return Ok(record_id)

    def update_record(self, record_id: str, fields: Dict[str, Any], *,
                      zone_id: Optional[str] = None) -> Result:
        """Update only the supplied fields of a record."""
        result = self._call('PATCH', f'{self._records_path(zone_id)}/{record_id}', json=fields)
        return Ok() if result.ok else result

    def delete_record(self, record_id: str, *, zone_id: Optional[str] = None) -> Result:
        """Delete a DNS record."""
        result = self._call('DELETE', f'{self._records_path(zone_id)}/{record_id}')
        if result.ok:
            logger.info(f"Deleted DNS record {record_id}")
            return Ok()
        return result

    def list_records(self, *, zone_id: Optional[str] = None) -> Result:
        """List all DNS records of the zone."""
        result = self._call('GET', self._records_path(zone_id))
        if not result.ok:
            return result
        records: List[Dict[str, Any]] = result.value or []
        if not isinstance(records, list):
            return Err(ExternalServiceError(SYSTEM, 'Unexpected record listing format'))
        return Ok([self.normalize_record(r) for r in records if isinstance(r, dict)])

    def get_zone_info(self, *, zone_id: Optional[str] = None) -> Result:
        """Get zone details (name, status, name servers...)."""
        return self._call('GET', f'/zones/{zone_id or self.zone_id}')
