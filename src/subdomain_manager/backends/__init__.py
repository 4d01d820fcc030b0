"""
DNS Backend Abstraction Layer.

Each DNS provider implements the DNSBackend interface.

Supported providers:
- cloudflare: Cloudflare v4 zone API

Usage:
    from subdomain_manager.backends import get_backend

    backend = get_backend('cloudflare', {'api_token': '...', 'zone_id': '...'})
"""
from typing import Any, Dict, Type

from ..result import ConfigurationError
from .base import AUTO_TTL, DNSBackend, DNSRecord
from .cloudflare import CloudflareBackend

BACKEND_REGISTRY: Dict[str, Type[DNSBackend]] = {
    'cloudflare': CloudflareBackend,
}


def get_backend(provider_code: str, config: Dict[str, Any]) -> DNSBackend:
    """Get backend instance by provider code and configuration.

    Raises:
        ConfigurationError: If the provider is unknown or config is incomplete
    """
    backend_class = BACKEND_REGISTRY.get(provider_code)
    if not backend_class:
        raise ConfigurationError(f"Unknown DNS provider: {provider_code}")
    return backend_class(config)


__all__ = [
    'AUTO_TTL',
    'BACKEND_REGISTRY',
    'CloudflareBackend',
    'DNSBackend',
    'DNSRecord',
    'get_backend',
]
