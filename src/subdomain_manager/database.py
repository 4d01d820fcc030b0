"""
Database initialization and data-access helpers.

This module provides:
- Database initialization for the Flask app
- Query helpers for domains, subdomains and the activity log

Helpers that write call ``db.session.commit()`` and let SQLAlchemy errors
propagate; callers decide how to report them.
"""
import logging
from typing import Any, List, Optional

from .models import ActivityLog, Domain, Subdomain, db

logger = logging.getLogger(__name__)


def init_db(app, database_uri: str):
    """
    Initialize database with Flask app.

    Creates all tables if they do not exist yet.
    """
    app.config['SQLALCHEMY_DATABASE_URI'] = database_uri
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {'pool_pre_ping': True})

    db.init_app(app)

    with app.app_context():
        db.create_all()
        logger.info("Database tables created/verified")


# ============================================================================
# Domains
# ============================================================================

def get_domain(domain_id: int) -> Optional[Domain]:
    return db.session.get(Domain, domain_id)


def find_domain_by_name(domain_name: str) -> Optional[Domain]:
    return Domain.query.filter_by(domain_name=domain_name).first()


def list_domains() -> List[Domain]:
    """All domains, newest first."""
    return Domain.query.order_by(Domain.created_at.desc(), Domain.id.desc()).all()


def create_domain(domain_name: str, zone_id: str) -> Domain:
    domain = Domain(domain_name=domain_name, zone_id=zone_id)
    db.session.add(domain)
    db.session.commit()
    logger.info(f"Domain registered: {domain_name} (zone {zone_id})")
    return domain


# ============================================================================
# Subdomains
# ============================================================================

def get_subdomain(subdomain_id: int) -> Optional[Subdomain]:
    return db.session.get(Subdomain, subdomain_id)


def find_subdomain_by_full_domain(full_domain: str) -> Optional[Subdomain]:
    return Subdomain.query.filter_by(full_domain=full_domain).first()


def list_subdomains() -> List[Subdomain]:
    """All subdomains, newest first."""
    return Subdomain.query.order_by(Subdomain.created_at.desc(), Subdomain.id.desc()).all()


def create_subdomain(**fields: Any) -> Subdomain:
    subdomain = Subdomain(**fields)
    db.session.add(subdomain)
    db.session.commit()
    return subdomain


def update_subdomain(subdomain: Subdomain, **fields: Any) -> Subdomain:
    for key, value in fields.items():
        setattr(subdomain, key, value)
    db.session.commit()
    return subdomain


def delete_subdomain(subdomain: Subdomain):
    db.session.delete(subdomain)
    db.session.commit()


def rollback():
    """Discard a failed unit of work so the session stays usable."""
    db.session.rollback()


# ============================================================================
# Activity log
# ============================================================================

def create_activity_log(action_type: str, resource_type: str, resource_id: str,
                        status: str, error_message: Optional[str] = None,
                        details: Optional[dict[str, Any]] = None) -> ActivityLog:
    """Append an activity log entry."""
    entry = ActivityLog(
        action_type=action_type,
        resource_type=resource_type,
        resource_id=str(resource_id),
        status=status,
        error_message=error_message,
    )
    entry.set_details(details)
    db.session.add(entry)
    db.session.commit()
    return entry


def list_activity(limit: int = 100) -> List[ActivityLog]:
    """Most recent activity log entries first."""
    return (ActivityLog.query
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all())
