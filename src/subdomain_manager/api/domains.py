"""
Domains Blueprint.

Routes:
- GET  /api/domains - List domains with their subdomains
- POST /api/domains - Register a domain
"""

from flask import Blueprint, jsonify

from .responses import error_response, get_provisioner, json_body

domains_bp = Blueprint('domains', __name__, url_prefix='/api/domains')


@domains_bp.route('', methods=['GET'])
def list_domains():
    """List all domains, newest first, each with its subdomains."""
    domains = get_provisioner().list_domains()
    return jsonify({
        'success': True,
        'data': [d.to_dict(include_subdomains=True) for d in domains],
    })


@domains_bp.route('', methods=['POST'])
def create_domain():
    """Register a parent domain.

    Body: {"domain_name": "example.com", "zone_id": "<dns zone id>"}
    """
    data = json_body()
    result = get_provisioner().create_domain(data.get('domain_name'), data.get('zone_id'))
    if not result.ok:
        return error_response(result)

    return jsonify({'success': True, 'data': result.value.to_dict()}), 201
