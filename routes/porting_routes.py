"""
Routes for number porting: creating requests, moving them through their
lifecycle, documents, history and the operator listings.
"""
from flask import Blueprint, request, jsonify, current_app

from utils.errors import PortingError, ValidationError
from utils.utils import parse_pagination
from utils.validation import missing_address_fields, normalize_porting_payload

porting_bp = Blueprint('porting', __name__, url_prefix='/api/porting')

CREATE_REQUIRED_FIELDS = (
    'user_id',
    'current_number',
    'current_carrier',
    'account_number',
    'pin',
    'authorized_name',
)


def _service():
    return current_app.extensions['porting_service']


def _pagination():
    return parse_pagination(
        request.args,
        current_app.config['PORTING_DEFAULT_PAGE_LIMIT'],
        current_app.config['PORTING_MAX_PAGE_LIMIT']
    )


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("No data provided")
    return data


def _require(data, *fields):
    missing = [field for field in fields if not data.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)


def _error_response(error: PortingError):
    return jsonify(error.to_dict()), error.status_code


def _internal_error(action: str, error: Exception):
    current_app.logger.exception(f"Error {action}: {error}")
    return jsonify({"success": False, "error": "An internal error occurred", "kind": "internal_error"}), 500


# 1. POST / - Create a porting request
@porting_bp.route('', methods=['POST'])
def create_porting_request():
    """Submit a number for porting into the platform."""
    try:
        data = _json_body()
        payload = normalize_porting_payload(data)
        _require(payload, *CREATE_REQUIRED_FIELDS)
        if missing_address_fields(payload['billing_address']):
            raise ValidationError("Complete billing address is required")

        porting_request = _service().initiate_porting(data)
        return jsonify({
            "success": True,
            "data": porting_request.to_response(),
            "message": "Porting request submitted successfully"
        }), 201
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error("creating porting request", e)


# 2. POST /validate - Dry-run validation
@porting_bp.route('/validate', methods=['POST'])
def validate_porting_request():
    """Check porting data without creating anything."""
    try:
        result = _service().validate_porting_request(request.get_json(silent=True) or {})
        return jsonify({"success": True, "data": result.model_dump()}), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error("validating porting request", e)


# 3. GET /<id> - Porting request details
@porting_bp.route('/<request_id>', methods=['GET'])
def get_porting_request(request_id):
    try:
        porting_request = _service().get_porting_request(request_id)
        return jsonify({"success": True, "data": porting_request.to_response()}), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"fetching porting request {request_id}", e)


# 4. GET /user/<user_id> - A user's porting requests
@porting_bp.route('/user/<user_id>', methods=['GET'])
def get_user_porting_requests(user_id):
    try:
        limit, offset = _pagination()
        result = _service().get_user_porting_requests(user_id, limit, offset)
        return jsonify({
            "success": True,
            "data": [porting_request.to_response() for porting_request in result['requests']],
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": result['total']
            }
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"listing porting requests of user {user_id}", e)


# 5. GET /<id>/progress - Progress through the porting steps
@porting_bp.route('/<request_id>/progress', methods=['GET'])
def get_porting_progress(request_id):
    try:
        progress = _service().get_porting_progress(request_id)
        return jsonify({"success": True, "data": progress.model_dump(mode="json")}), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"fetching progress of porting request {request_id}", e)


# 6. PUT /<id>/status - Move a request to a new status (operators)
@porting_bp.route('/<request_id>/status', methods=['PUT'])
def update_porting_status(request_id):
    try:
        data = _json_body()
        _require(data, 'status', 'message', 'updated_by')

        porting_request = _service().update_porting_status(
            request_id,
            data['status'],
            data['message'],
            data['updated_by']
        )
        return jsonify({
            "success": True,
            "data": porting_request.to_response(),
            "message": "Porting status updated successfully"
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"updating status of porting request {request_id}", e)


# 7. POST /<id>/cancel - Cancel a request
@porting_bp.route('/<request_id>/cancel', methods=['POST'])
def cancel_porting_request(request_id):
    try:
        data = _json_body()
        _require(data, 'reason', 'cancelled_by')

        porting_request = _service().cancel_porting_request(
            request_id,
            data['reason'],
            data['cancelled_by']
        )
        return jsonify({
            "success": True,
            "data": porting_request.to_response(),
            "message": "Porting request cancelled successfully"
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"cancelling porting request {request_id}", e)


# 8. PATCH /<id>/notes - Edit operator notes
@porting_bp.route('/<request_id>/notes', methods=['PATCH'])
def update_porting_notes(request_id):
    try:
        data = _json_body()
        if 'notes' not in data:
            raise ValidationError("Missing required fields: notes", ['notes'])

        porting_request = _service().update_notes(request_id, data['notes'])
        return jsonify({"success": True, "data": porting_request.to_response()}), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"updating notes of porting request {request_id}", e)


# 9. POST /<id>/documents - Attach a document
@porting_bp.route('/<request_id>/documents', methods=['POST'])
def add_porting_document(request_id):
    try:
        data = _json_body()
        _require(data, 'type', 'filename', 'url')

        document = _service().add_document(request_id, data['type'], data['filename'], data['url'])
        return jsonify({
            "success": True,
            "data": document.to_response(),
            "message": "Document uploaded successfully"
        }), 201
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"adding document to porting request {request_id}", e)


# 10. GET /<id>/documents - List documents
@porting_bp.route('/<request_id>/documents', methods=['GET'])
def list_porting_documents(request_id):
    try:
        documents = _service().list_documents(request_id)
        return jsonify({
            "success": True,
            "data": [document.to_response() for document in documents]
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"listing documents of porting request {request_id}", e)


# 11. DELETE /documents/<document_id> - Remove a document
@porting_bp.route('/documents/<document_id>', methods=['DELETE'])
def delete_porting_document(document_id):
    try:
        _service().delete_document(document_id)
        return jsonify({"success": True, "message": "Document deleted successfully"}), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"deleting porting document {document_id}", e)


# 12. GET /<id>/history - Status history, newest first
@porting_bp.route('/<request_id>/history', methods=['GET'])
def get_porting_history(request_id):
    try:
        history = _service().get_status_history(request_id)
        return jsonify({
            "success": True,
            "data": [entry.model_dump(mode="json") for entry in history]
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"fetching history of porting request {request_id}", e)


# 13. GET /search/<query> - Search requests
@porting_bp.route('/search/<query>', methods=['GET'])
def search_porting_requests(query):
    try:
        limit, offset = _pagination()
        filters = {
            "user_id": request.args.get('user_id'),
            "status": request.args.get('status'),
            "carrier": request.args.get('carrier'),
        }
        results = _service().search(query, filters, limit, offset)
        return jsonify({
            "success": True,
            "data": [porting_request.to_response() for porting_request in results],
            "count": len(results)
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error("searching porting requests", e)


# 14. GET /status/<status> - Requests in a status (operators)
@porting_bp.route('/status/<status>', methods=['GET'])
def list_porting_requests_by_status(status):
    try:
        limit, offset = _pagination()
        result = _service().list_by_status(status, limit, offset)
        return jsonify({
            "success": True,
            "data": [porting_request.to_response() for porting_request in result['requests']],
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": result['total']
            }
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(f"listing porting requests in status {status}", e)


# 15. GET /admin/attention - Failed and overdue requests
@porting_bp.route('/admin/attention', methods=['GET'])
def list_requests_requiring_attention():
    try:
        results = _service().list_requiring_attention()
        return jsonify({
            "success": True,
            "data": [porting_request.to_response() for porting_request in results],
            "count": len(results)
        }), 200
    except PortingError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error("listing porting requests requiring attention", e)
