"""
Database models for subdomain-manager

- Domain: a parent DNS zone registered by an administrator
- Subdomain: a routed hostname under a Domain, linked to a DNS record
  and a proxy host in the external systems
- ActivityLog: append-only audit trail of provisioning attempts
"""
import json
from datetime import datetime
from typing import Any, Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint


db = SQLAlchemy()

# Label meaning "the domain itself"
ROOT_LABEL = '@'

TARGET_SCHEMES = ('http', 'https')
MIN_PORT = 1
MAX_PORT = 65535

# Activity log vocabulary
ACTION_CREATE = 'CREATE'
ACTION_UPDATE = 'UPDATE'
ACTION_DELETE = 'DELETE'

RESOURCE_SUBDOMAIN = 'SUBDOMAIN'
RESOURCE_DNS_RECORD = 'DNS_RECORD'
RESOURCE_PROXY_HOST = 'PROXY_HOST'

STATUS_SUCCESS = 'SUCCESS'
STATUS_PARTIAL = 'PARTIAL'
STATUS_FAILED = 'FAILED'


def build_full_domain(label: str, domain_name: str) -> str:
    """Combine a subdomain label with its parent domain.

    The root label maps to the domain name itself.
    """
    if label == ROOT_LABEL:
        return domain_name
    return f"{label}.{domain_name}"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Domain(db.Model):
    """Parent DNS zone (e.g. example.com)."""
    __tablename__ = 'domains'

    id = db.Column(db.Integer, primary_key=True)
    domain_name = db.Column(db.String(255), unique=True, nullable=False, index=True)
    zone_id = db.Column(db.String(64), nullable=False)  # DNS provider zone identifier
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    subdomains = db.relationship(
        'Subdomain', back_populates='domain', cascade='all, delete-orphan',
        order_by='Subdomain.created_at.desc()'
    )

    def to_dict(self, include_subdomains: bool = False) -> dict[str, Any]:
        data = {
            'id': self.id,
            'domain_name': self.domain_name,
            'zone_id': self.zone_id,
            'created_at': _isoformat(self.created_at),
        }
        if include_subdomains:
            data['subdomains'] = [s.to_dict(include_domain=False) for s in self.subdomains]
        return data

    def __repr__(self):
        return f'<Domain {self.domain_name}>'


class Subdomain(db.Model):
    """Routed hostname under a Domain."""
    __tablename__ = 'subdomains'
    __table_args__ = (
        CheckConstraint(f'target_port >= {MIN_PORT} AND target_port <= {MAX_PORT}',
                        name='ck_subdomains_target_port'),
        CheckConstraint("target_scheme IN ('http', 'https')", name='ck_subdomains_target_scheme'),
    )

    id = db.Column(db.Integer, primary_key=True)
    domain_id = db.Column(db.Integer, db.ForeignKey('domains.id', ondelete='CASCADE'), nullable=False, index=True)

    subdomain_name = db.Column(db.String(255), nullable=False)  # label or '@'
    full_domain = db.Column(db.String(255), unique=True, nullable=False, index=True)

    target_host = db.Column(db.String(255), nullable=False)
    target_port = db.Column(db.Integer, nullable=False)
    target_scheme = db.Column(db.String(5), nullable=False, default='http')

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    ssl_enabled = db.Column(db.Boolean, nullable=False, default=False)
    description = db.Column(db.Text)

    # External correlation ids
    dns_record_id = db.Column(db.String(64))
    proxy_host_id = db.Column(db.Integer)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    domain = db.relationship('Domain', back_populates='subdomains')

    def to_dict(self, include_domain: bool = True) -> dict[str, Any]:
        data = {
            'id': self.id,
            'domain_id': self.domain_id,
            'subdomain_name': self.subdomain_name,
            'full_domain': self.full_domain,
            'target_host': self.target_host,
            'target_port': self.target_port,
            'target_scheme': self.target_scheme,
            'is_active': bool(self.is_active),
            'ssl_enabled': bool(self.ssl_enabled),
            'description': self.description,
            'dns_record_id': self.dns_record_id,
            'proxy_host_id': self.proxy_host_id,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }
        if include_domain and self.domain is not None:
            data['domain'] = self.domain.to_dict()
        return data

    def __repr__(self):
        return f'<Subdomain {self.full_domain}>'


class ActivityLog(db.Model):
    """
    Activity log (audit trail).

    One row per workflow attempt. Rows are never updated or deleted.
    """
    __tablename__ = 'activity_log'

    id = db.Column(db.Integer, primary_key=True)
    action_type = db.Column(db.String(10), nullable=False, index=True)  # CREATE, UPDATE, DELETE
    resource_type = db.Column(db.String(20), nullable=False)  # SUBDOMAIN, DNS_RECORD, PROXY_HOST
    resource_id = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(10), nullable=False, index=True)  # SUCCESS, PARTIAL, FAILED
    error_message = db.Column(db.Text)
    details = db.Column(db.Text)  # JSON
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def get_details(self) -> dict[str, Any]:
        """Parse details from JSON."""
        try:
            return json.loads(self.details) if self.details else {}
        except (json.JSONDecodeError, TypeError):
            return {}

    def set_details(self, data: Optional[dict[str, Any]]):
        """Set details as JSON."""
        self.details = json.dumps(data, default=str) if data else None

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'action_type': self.action_type,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'status': self.status,
            'error_message': self.error_message,
            'details': self.get_details(),
            'created_at': _isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<ActivityLog {self.action_type} {self.resource_type} {self.status}>'
