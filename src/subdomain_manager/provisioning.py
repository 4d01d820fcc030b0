"""
Subdomain provisioning workflow.

Creating a subdomain touches three systems in a fixed order:

1. DNS provider: A record for the full hostname
2. Proxy manager: proxy host forwarding the hostname to the target
3. Local database: Subdomain row holding both external ids

If step 2 fails the DNS record from step 1 is deleted again. That is the
only compensating action; step 1 failing leaves nothing to undo, and a
failed compensation is recorded in the activity log rather than retried.

Deleting a subdomain removes the proxy host and DNS record on a best-effort
basis and always removes the local row.

The provisioner needs a Flask app context for database access. None of its
public methods raise; they return ``Ok``/``Err`` results.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import database
from .audit_logger import AuditLogger
from .backends.base import AUTO_TTL, DNSBackend
from .models import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    MAX_PORT,
    MIN_PORT,
    RESOURCE_DNS_RECORD,
    RESOURCE_PROXY_HOST,
    RESOURCE_SUBDOMAIN,
    ROOT_LABEL,
    STATUS_FAILED,
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    TARGET_SCHEMES,
    Domain,
    Subdomain,
    build_full_domain,
)
from .proxy_manager import ProxyHostSpec, ProxyManagerClient
from .result import (
    ConflictError,
    Err,
    ExternalServiceError,
    NotFoundError,
    Ok,
    PersistenceError,
    Result,
    ValidationError,
)

logger = logging.getLogger(__name__)

SYSTEM_DNS = 'dns'
SYSTEM_PROXY = 'proxy_manager'

# One or more dot-separated DNS labels (RFC 1123)
LABEL_PATTERN = re.compile(
    r'^(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))*$'
)
DOMAIN_PATTERN = re.compile(
    r'^(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))+$'
)


@dataclass
class SubdomainRequest:
    """Input for creating a subdomain."""

    domain_id: Any
    subdomain_name: Any
    target_port: Any
    target_scheme: str = 'http'
    enable_ssl: Any = False
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubdomainRequest':
        return cls(
            domain_id=data.get('domain_id'),
            subdomain_name=data.get('subdomain_name'),
            target_port=data.get('target_port'),
            target_scheme=data.get('target_scheme') or 'http',
            enable_ssl=_default_if_none(data.get('enable_ssl'), False),
            description=data.get('description'),
        )


@dataclass
class SubdomainUpdate:
    """Changes to an existing subdomain. ``None`` keeps the stored value."""

    target_port: Any = None
    target_scheme: Optional[str] = None
    is_active: Any = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubdomainUpdate':
        return cls(
            target_port=data.get('target_port'),
            target_scheme=data.get('target_scheme'),
            is_active=data.get('is_active'),
            description=data.get('description'),
        )

    def changes(self) -> Dict[str, Any]:
        """Snapshot of the supplied fields, for the activity log."""
        return {k: v for k, v in vars(self).items() if v is not None}


@dataclass
class DeleteOutcome:
    """Result value of a delete: the removed hostname and cleanup warnings."""

    full_domain: str
    warnings: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)


def _parse_port(value: Any) -> Optional[int]:
    """Return the port as int, or None if it is not a valid port number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or not MIN_PORT <= value <= MAX_PORT:
        return None
    return value


def _default_if_none(value: Any, default: Any) -> Any:
    return default if value is None else value


def _parse_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class SubdomainProvisioner:
    """Orchestrates DNS, proxy manager and database for subdomains."""

    def __init__(self, dns_backend: DNSBackend, proxy_client: ProxyManagerClient,
                 audit: AuditLogger, target_host: str):
        """
        Args:
            dns_backend: DNS provider client
            proxy_client: Proxy manager client
            audit: Activity log writer
            target_host: IP/host that A records point to and proxies forward to
        """
        self.dns = dns_backend
        self.proxy = proxy_client
        self.audit = audit
        self.target_host = target_host

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_domains(self) -> List[Domain]:
        return database.list_domains()

    def list_subdomains(self) -> List[Subdomain]:
        return database.list_subdomains()

    def list_activity(self, limit: int = 100):
        return database.list_activity(limit)

    def get_subdomain(self, subdomain_id: Any) -> Result:
        subdomain = self._load_subdomain(subdomain_id)
        if subdomain is None:
            return Err(NotFoundError('Subdomain not found'))
        return Ok(subdomain)

    # ------------------------------------------------------------------
    # Domains
    # ------------------------------------------------------------------

    def create_domain(self, domain_name: Optional[str], zone_id: Optional[str]) -> Result:
        """Register a parent domain and its DNS zone id."""
        if not domain_name or not zone_id:
            return Err(ValidationError('Missing required fields: domain_name, zone_id'))

        domain_name = str(domain_name).strip().lower().rstrip('.')
        if not DOMAIN_PATTERN.match(domain_name):
            return Err(ValidationError(f"Invalid domain name: {domain_name}"))

        if database.find_domain_by_name(domain_name):
            return Err(ConflictError(f"Domain {domain_name} already exists"))

        try:
            domain = database.create_domain(domain_name, str(zone_id).strip())
        except SQLAlchemyError as e:
            database.rollback()
            logger.error(f"Failed to store domain {domain_name}: {e}")
            return Err(PersistenceError(f"Failed to store domain: {e}"))
        return Ok(domain)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _validate_create(self, request: SubdomainRequest) -> Optional[ValidationError]:
        if not request.subdomain_name or not request.target_port or not request.domain_id:
            return ValidationError('Missing required fields: subdomain_name, target_port, domain_id')

        if _parse_id(request.domain_id) is None:
            return ValidationError('domain_id must be an integer')

        label = str(request.subdomain_name).strip().lower()
        if label != ROOT_LABEL and not LABEL_PATTERN.match(label):
            return ValidationError(f"Invalid subdomain name: {request.subdomain_name}")

        if _parse_port(request.target_port) is None:
            return ValidationError(f"target_port must be between {MIN_PORT} and {MAX_PORT}")

        if request.target_scheme not in TARGET_SCHEMES:
            return ValidationError(f"target_scheme must be one of: {', '.join(TARGET_SCHEMES)}")

        if not isinstance(request.enable_ssl, bool):
            return ValidationError('enable_ssl must be true or false')

        if request.description is not None and not isinstance(request.description, str):
            return ValidationError('description must be a string')

        return None

    def create_subdomain(self, request: SubdomainRequest) -> Result:
        """Provision DNS record, proxy host and database row for a subdomain.

        Returns:
            Ok(Subdomain) or Err with ValidationError, NotFoundError,
            ConflictError, ExternalServiceError or PersistenceError
        """
        error = self._validate_create(request)
        if error:
            return Err(error)

        domain = database.get_domain(_parse_id(request.domain_id))
        if domain is None:
            return Err(NotFoundError('Domain not found'))

        label = str(request.subdomain_name).strip().lower()
        target_port = _parse_port(request.target_port)
        full_domain = build_full_domain(label, domain.domain_name)

        if database.find_subdomain_by_full_domain(full_domain):
            return Err(ConflictError(f"Subdomain {full_domain} already exists"))

        # Step 1: DNS record
        dns_result = self._call_external(
            SYSTEM_DNS, self.dns.create_record, 'A', full_domain, self.target_host,
            ttl=AUTO_TTL, proxied=False, zone_id=domain.zone_id,
        )
        if not dns_result.ok:
            self._audit(ACTION_CREATE, RESOURCE_DNS_RECORD, full_domain,
                        STATUS_FAILED, error_message=dns_result.message)
            return Err(ExternalServiceError(
                SYSTEM_DNS, f"Failed to create DNS record: {dns_result.message}",
                getattr(dns_result.error, 'status_code', None),
            ))
        dns_record_id = dns_result.value

        # Step 2: proxy host. From here on the DNS record exists and must be
        # either referenced by the database row or deleted again.
        spec = ProxyHostSpec(
            domain_names=[full_domain],
            forward_scheme=request.target_scheme,
            forward_host=self.target_host,
            forward_port=target_port,
            block_exploits=True,
            allow_websocket_upgrade=True,
            http2_support=True,
            ssl_forced=False,
        )
        proxy_result = self._call_external(SYSTEM_PROXY, self.proxy.create_proxy_host, spec)

        if not proxy_result.ok:
            compensation = self._compensate_dns_record(dns_record_id, domain.zone_id, full_domain)
            self._audit(ACTION_CREATE, RESOURCE_PROXY_HOST, full_domain, STATUS_FAILED,
                        error_message=proxy_result.message,
                        details={'dns_record_id': dns_record_id, 'dns_rollback': compensation})
            return Err(ExternalServiceError(
                SYSTEM_PROXY, f"Failed to create proxy host: {proxy_result.message}",
                getattr(proxy_result.error, 'status_code', None),
            ))
        proxy_host_id = proxy_result.value

        # Step 3: database row
        try:
            subdomain = database.create_subdomain(
                domain_id=domain.id,
                subdomain_name=label,
                full_domain=full_domain,
                target_host=self.target_host,
                target_port=target_port,
                target_scheme=request.target_scheme,
                ssl_enabled=request.enable_ssl,
                description=request.description,
                dns_record_id=dns_record_id,
                proxy_host_id=proxy_host_id,
            )
        except SQLAlchemyError as e:
            database.rollback()
            logger.error(f"Failed to store subdomain {full_domain}: {e}")
            self._audit(ACTION_CREATE, RESOURCE_SUBDOMAIN, full_domain, STATUS_FAILED,
                        error_message=str(e),
                        details={'full_domain': full_domain,
                                 'dns_record_id': dns_record_id,
                                 'proxy_host_id': proxy_host_id})
            return Err(PersistenceError(f"Failed to store subdomain {full_domain}: {e}"))

        self._audit(ACTION_CREATE, RESOURCE_SUBDOMAIN, subdomain.id, STATUS_SUCCESS, details={
            'full_domain': full_domain,
            'target_port': target_port,
            'dns_record_id': dns_record_id,
            'proxy_host_id': proxy_host_id,
        })
        logger.info(f"Subdomain {full_domain} created (dns={dns_record_id}, proxy={proxy_host_id})")
        return Ok(subdomain)

    def _compensate_dns_record(self, record_id: str, zone_id: str, full_domain: str) -> str:
        """Delete the DNS record created for a failed provisioning attempt.

        Returns:
            'deleted' or 'failed: <reason>' for the activity log
        """
        result = self._call_external(SYSTEM_DNS, self.dns.delete_record, record_id, zone_id=zone_id)

        if result.ok:
            logger.info(f"Rolled back DNS record {record_id} for {full_domain}")
            return 'deleted'

        logger.error(f"DNS record {record_id} for {full_domain} is orphaned: {result.message}")
        return f"failed: {result.message}"

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_subdomain(self, subdomain_id: Any, update: SubdomainUpdate) -> Result:
        """Change target port/scheme, active flag or description.

        A changed port or scheme is pushed to the proxy manager first; if
        that fails nothing is persisted.
        """
        subdomain = self._load_subdomain(subdomain_id)
        if subdomain is None:
            return Err(NotFoundError('Subdomain not found'))

        if update.target_port is not None and _parse_port(update.target_port) is None:
            return Err(ValidationError(f"target_port must be between {MIN_PORT} and {MAX_PORT}"))
        if update.target_scheme is not None and update.target_scheme not in TARGET_SCHEMES:
            return Err(ValidationError(f"target_scheme must be one of: {', '.join(TARGET_SCHEMES)}"))
        if update.is_active is not None and not isinstance(update.is_active, bool):
            return Err(ValidationError('is_active must be true or false'))
        if update.description is not None and not isinstance(update.description, str):
            return Err(ValidationError('description must be a string'))

        new_port = _parse_port(update.target_port) if update.target_port is not None else subdomain.target_port
        new_scheme = update.target_scheme or subdomain.target_scheme

        if subdomain.proxy_host_id and (new_port != subdomain.target_port
                                        or new_scheme != subdomain.target_scheme):
            proxy_result = self._call_external(SYSTEM_PROXY, self.proxy.update_proxy_host,
                                               subdomain.proxy_host_id, {
                                                   'forward_port': new_port,
                                                   'forward_scheme': new_scheme,
                                               })
            if not proxy_result.ok:
                self._audit(ACTION_UPDATE, RESOURCE_PROXY_HOST, subdomain.id, STATUS_FAILED,
                            error_message=proxy_result.message,
                            details={'changes': update.changes()})
                return Err(ExternalServiceError(
                    SYSTEM_PROXY, f"Failed to update proxy host: {proxy_result.message}",
                    getattr(proxy_result.error, 'status_code', None),
                ))

        fields: Dict[str, Any] = {'target_port': new_port, 'target_scheme': new_scheme}
        if update.is_active is not None:
            fields['is_active'] = update.is_active
        if update.description is not None:
            fields['description'] = update.description

        try:
            database.update_subdomain(subdomain, **fields)
        except SQLAlchemyError as e:
            database.rollback()
            logger.error(f"Failed to update subdomain {subdomain_id}: {e}")
            self._audit(ACTION_UPDATE, RESOURCE_SUBDOMAIN, subdomain_id, STATUS_FAILED,
                        error_message=str(e), details={'changes': update.changes()})
            return Err(PersistenceError(f"Failed to update subdomain: {e}"))

        self._audit(ACTION_UPDATE, RESOURCE_SUBDOMAIN, subdomain.id, STATUS_SUCCESS,
                    details={'changes': update.changes()})
        return Ok(subdomain)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_subdomain(self, subdomain_id: Any) -> Result:
        """Remove proxy host, DNS record and database row.

        External failures become warnings; the row is deleted regardless.

        Returns:
            Ok(DeleteOutcome) or Err(NotFoundError | PersistenceError)
        """
        subdomain = self._load_subdomain(subdomain_id)
        if subdomain is None:
            return Err(NotFoundError('Subdomain not found'))

        record_id = subdomain.id
        full_domain = subdomain.full_domain
        zone_id = subdomain.domain.zone_id if subdomain.domain else None
        warnings: List[str] = []

        if subdomain.proxy_host_id:
            proxy_result = self._call_external(SYSTEM_PROXY, self.proxy.delete_proxy_host,
                                               subdomain.proxy_host_id)
            if not proxy_result.ok:
                warnings.append(f"Proxy manager: {proxy_result.message}")

        if subdomain.dns_record_id:
            dns_result = self._call_external(SYSTEM_DNS, self.dns.delete_record,
                                             subdomain.dns_record_id, zone_id=zone_id)
            if not dns_result.ok:
                warnings.append(f"DNS: {dns_result.message}")

        try:
            database.delete_subdomain(subdomain)
        except SQLAlchemyError as e:
            database.rollback()
            logger.error(f"Failed to delete subdomain {full_domain}: {e}")
            self._audit(ACTION_DELETE, RESOURCE_SUBDOMAIN, record_id, STATUS_FAILED,
                        error_message='; '.join(warnings + [str(e)]),
                        details={'full_domain': full_domain})
            return Err(PersistenceError(f"Failed to delete subdomain: {e}"))

        if warnings:
            logger.warning(f"Subdomain {full_domain} deleted with warnings: {'; '.join(warnings)}")
            self._audit(ACTION_DELETE, RESOURCE_SUBDOMAIN, record_id, STATUS_PARTIAL,
                        error_message='; '.join(warnings), details={'full_domain': full_domain})
        else:
            logger.info(f"Subdomain {full_domain} deleted")
            self._audit(ACTION_DELETE, RESOURCE_SUBDOMAIN, record_id, STATUS_SUCCESS,
                        details={'full_domain': full_domain})

        return Ok(DeleteOutcome(full_domain=full_domain, warnings=warnings))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _call_external(self, system: str, call: Callable[..., Result], *args, **kwargs) -> Result:
        """Invoke a client operation; an unexpected exception becomes Err."""
        try:
            return call(*args, **kwargs)
        except Exception as e:
            logger.exception(f"Unexpected error in {system} call {getattr(call, '__name__', call)}")
            return Err(ExternalServiceError(system, str(e) or type(e).__name__))

    def _load_subdomain(self, subdomain_id: Any) -> Optional[Subdomain]:
        parsed = _parse_id(subdomain_id)
        if parsed is None:
            return None
        return database.get_subdomain(parsed)

    def _audit(self, action_type: str, resource_type: str, resource_id: Any, status: str,
               error_message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Write an activity log entry without letting a DB error escape."""
        try:
            self.audit.log_activity(action_type, resource_type, resource_id, status,
                                    error_message=error_message, details=details)
        except SQLAlchemyError as e:
            database.rollback()
            logger.error(f"Failed to write activity log ({action_type} {resource_type} "
                         f"{resource_id} {status}): {e}")
