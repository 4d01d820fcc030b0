"""
Abstract base class for DNS backends.

The provisioning workflow only depends on this interface, so a different
DNS provider can be plugged in without touching the workflow.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..result import Result

logger = logging.getLogger(__name__)

# TTL value meaning "automatic" on the provider side
AUTO_TTL = 1


@dataclass
class DNSRecord:
    """A DNS record as returned by a backend."""

    id: str
    type: str
    name: str
    content: str
    ttl: int = AUTO_TTL
    proxied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DNSBackend(ABC):
    """Abstract base class for DNS backends.

    Every method returns a ``Result``. Provider errors and transport errors
    come back as ``Err(ExternalServiceError)`` and are never raised.
    """

    def __init__(self, config: Dict[str, Any]):
        """Initialize backend with configuration.

        Args:
            config: Provider-specific configuration dict
        """
        self.config = config

    @abstractmethod
    def test_connection(self) -> tuple[bool, str]:
        """Test backend connectivity.

        Returns:
            Tuple of (success, message).
        """
        pass

    @abstractmethod
    def create_record(self, record_type: str, name: str, content: str,
                      ttl: int = AUTO_TTL, proxied: bool = False, *,
                      zone_id: Optional[str] = None) -> Result:
        """Create a DNS record.

        Args:
            record_type: Record type (A, AAAA, CNAME, ...)
            name: Fully-qualified record name
            content: Record value (e.g. the IP for an A record)
            ttl: Time to live, ``AUTO_TTL`` for provider default
            proxied: Whether the provider should proxy traffic
            zone_id: Zone to create the record in (default: configured zone)

        Returns:
            Ok(record_id) or Err(ExternalServiceError)
        """
        pass

    @abstractmethod
    def update_record(self, record_id: str, fields: Dict[str, Any], *,
                      zone_id: Optional[str] = None) -> Result:
        """Update some fields of a DNS record.

        Returns:
            Ok(None) or Err(ExternalServiceError)
        """
        pass

    @abstractmethod
    def delete_record(self, record_id: str, *, zone_id: Optional[str] = None) -> Result:
        """Delete a DNS record.

        Returns:
            Ok(None) or Err(ExternalServiceError)
        """
        pass

    @abstractmethod
    def list_records(self, *, zone_id: Optional[str] = None) -> Result:
        """List all records of a zone.

        Returns:
            Ok(list of DNSRecord) or Err(ExternalServiceError)
        """
        pass

    @abstractmethod
    def get_zone_info(self, *, zone_id: Optional[str] = None) -> Result:
        """Get zone metadata.

        Returns:
            Ok(dict) or Err(ExternalServiceError)
        """
        pass

    def normalize_record(self, record: Dict[str, Any]) -> DNSRecord:
        """Convert a provider record dict to a DNSRecord.

        Subclasses can override to handle provider-specific formats.
        """
        return DNSRecord(
            id=str(record.get('id', '')),
            type=record.get('type', ''),
            name=record.get('name', ''),
            content=record.get('content', ''),
            ttl=record.get('ttl', AUTO_TTL),
            proxied=bool(record.get('proxied', False)),
        )

