"""
Subdomains Blueprint.

Routes:
- GET    /api/subdomains - List subdomains
- POST   /api/subdomains - Create subdomain (DNS record + proxy host + row)
- GET    /api/subdomains/<id> - Subdomain detail
- PUT    /api/subdomains/<id> - Update port/scheme/active/description
- DELETE /api/subdomains/<id> - Delete subdomain
- GET    /api/activity - Recent activity log entries
"""

from flask import Blueprint, jsonify, request

from ..provisioning import SubdomainRequest, SubdomainUpdate
from .responses import error_response, get_provisioner, json_body

subdomains_bp = Blueprint('subdomains', __name__, url_prefix='/api')

MAX_ACTIVITY_LIMIT = 500


@subdomains_bp.route('/subdomains', methods=['GET'])
def list_subdomains():
    """List all subdomains, newest first."""
    subdomains = get_provisioner().list_subdomains()
    return jsonify({'success': True, 'data': [s.to_dict() for s in subdomains]})


@subdomains_bp.route('/subdomains', methods=['POST'])
def create_subdomain():
    """Create a subdomain.

    Body:
        subdomain_name: label or '@' for the domain itself
        domain_id: owning domain
        target_port: 1-65535
        target_scheme: 'http' (default) or 'https'
        enable_ssl: optional flag
        description: optional text
    """
    result = get_provisioner().create_subdomain(SubdomainRequest.from_dict(json_body()))
    if not result.ok:
        return error_response(result)

    subdomain = result.value
    return jsonify({
        'success': True,
        'data': subdomain.to_dict(),
        'message': f"Subdomain {subdomain.full_domain} created successfully",
    }), 201


@subdomains_bp.route('/subdomains/<int:subdomain_id>', methods=['GET'])
def get_subdomain(subdomain_id):
    result = get_provisioner().get_subdomain(subdomain_id)
    if not result.ok:
        return error_response(result)
    return jsonify({'success': True, 'data': result.value.to_dict()})


@subdomains_bp.route('/subdomains/<int:subdomain_id>', methods=['PUT'])
def update_subdomain(subdomain_id):
    """Update a subdomain; a port/scheme change is pushed to the proxy host."""
    result = get_provisioner().update_subdomain(subdomain_id, SubdomainUpdate.from_dict(json_body()))
    if not result.ok:
        return error_response(result)
    return jsonify({'success': True, 'data': result.value.to_dict()})


@subdomains_bp.route('/subdomains/<int:subdomain_id>', methods=['DELETE'])
def delete_subdomain(subdomain_id):
    """Delete a subdomain. External cleanup failures come back as warnings."""
    result = get_provisioner().delete_subdomain(subdomain_id)
    if not result.ok:
        return error_response(result)

    outcome = result.value
    body = {'success': True, 'message': f"Subdomain {outcome.full_domain} deleted"}
    if outcome.warnings:
        body['warnings'] = outcome.warnings
    return jsonify(body)


@subdomains_bp.route('/activity', methods=['GET'])
def list_activity():
    """Most recent activity log entries (?limit=N, default 100)."""
    limit = request.args.get('limit', 100, type=int)
    limit = max(1, min(limit, MAX_ACTIVITY_LIMIT))
    entries = get_provisioner().list_activity(limit)
    return jsonify({'success': True, 'data': [e.to_dict() for e in entries]})
