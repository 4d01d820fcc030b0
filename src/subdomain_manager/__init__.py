"""
subdomain-manager: provision subdomains across a DNS provider and a
reverse-proxy manager, with an audit trail of every attempt.
"""

__version__ = '1.0.0'
