"""
JSON API Blueprints.

Provides:
- domains_bp: domain registration and listing
- subdomains_bp: subdomain provisioning, update, deletion and activity log
"""
from .domains import domains_bp
from .subdomains import subdomains_bp

__all__ = ['domains_bp', 'subdomains_bp']
