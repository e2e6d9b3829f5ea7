"""
KYC Contract Service - Main Application
Contract generation, download and cleanup endpoints for the onboarding
dashboard.
"""

import os
import re
import logging
from flask import Flask, request, jsonify, make_response
from flask_cors import CORS
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

# Load environment variables before the services read their settings
load_dotenv()

from kyc_contracts.google_auth import credentials_configured
from kyc_contracts import (
    ContractError,
    TemplateUnavailable,
    StorageError,
    ObjectNotFoundError,
    VALIDATORS,
    TEMPLATE_PATH,
    generate_contract,
    cleanup_old_contracts,
    download_contract,
    replace_template,
    document_types_for,
    requires_commercial_register,
    LEGAL_FORMS,
    get_sheets_client,
    get_storage_client
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
CORS(app, origins=os.environ.get('CORS_ORIGINS', 'http://localhost:*').split(','))

# Configuration
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', os.urandom(24))
app.config['MAX_CONTENT_LENGTH'] = int(os.getenv('MAX_CONTENT_LENGTH', 16777216))  # 16MB

RANGE_PATTERN = re.compile(r'^bytes=(\d+)-(\d*)$')


# ========== Security Headers ==========

@app.after_request
def add_security_headers(response):
    """Add security headers to all responses"""
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response


# ========== Helper Functions ==========

def get_customer_id():
    """customerId from the JSON body, or None"""
    payload = request.get_json(silent=True) or {}
    customer_id = payload.get('customerId')
    return str(customer_id).strip() if customer_id else None


def pdf_response(content, filename, status=200):
    response = make_response(content, status)
    response.headers['Content-Type'] = 'application/pdf'
    response.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


# ========== Contract Routes ==========

@app.route('/api/contracts/generate', methods=['POST'])
def api_generate_contract():
    """Generate (or regenerate) the contract PDF for a customer"""
    customer_id = get_customer_id()
    if not customer_id:
        return jsonify({'error': 'customerId is required'}), 400

    result = generate_contract(customer_id)
    return jsonify(result)


@app.route('/api/contracts/cleanup', methods=['POST'])
def api_cleanup_contracts():
    """Delete all but the newest contract of a customer"""
    customer_id = get_customer_id()
    if not customer_id:
        return jsonify({'error': 'customerId is required'}), 400

    result = cleanup_old_contracts(customer_id)
    return jsonify(result)


@app.route('/api/contracts/<customer_id>/latest')
def api_latest_contract(customer_id):
    """Download the newest contract of a customer; ?generate=1 creates one if none exists"""
    generate_missing = request.args.get('generate', '').lower() in ('1', 'true')
    contract, content = download_contract(customer_id, generate_missing=generate_missing)
    return pdf_response(content, contract['file_name'])


@app.route('/api/contracts/template', methods=['GET'])
def api_get_template():
    """Contract template; supports a single 'Range: bytes=a-b' request"""
    storage = get_storage_client()
    filename = os.path.basename(TEMPLATE_PATH)
    range_header = request.headers.get('Range')

    if range_header:
        match = RANGE_PATTERN.match(range_header.strip())
        if not match:
            return jsonify({'error': 'Invalid Range header'}), 416
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else None
        try:
            content = storage.read_range(TEMPLATE_PATH, start, end)
        except ObjectNotFoundError:
            return jsonify({'error': 'Template nicht gefunden'}), 404
        except StorageError as e:
            return jsonify({'error': str(e)}), 416
        if not content:
            return jsonify({'error': 'Range not satisfiable'}), 416
        response = pdf_response(content, filename, status=206)
        response.headers['Content-Range'] = f"bytes {start}-{start + len(content) - 1}/*"
        return response

    try:
        content = storage.download(TEMPLATE_PATH)
    except ObjectNotFoundError:
        return jsonify({'error': 'Template nicht gefunden'}), 404
    return pdf_response(content, filename)


@app.route('/api/contracts/template', methods=['PUT', 'POST'])
def api_replace_template():
    """Replace the contract template (raw PDF body or multipart 'file')"""
    upload = request.files.get('file')
    content = upload.read() if upload else request.get_data()
    if not content:
        return jsonify({'error': 'No file provided'}), 400

    try:
        result = replace_template(content)
    except TemplateUnavailable as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(result)


# ========== KYC Rule Routes ==========

@app.route('/api/kyc/legal-forms')
def api_legal_forms():
    return jsonify([
        {'value': value, 'label': label, 'requires_commercial_register': requires_commercial_register(value)}
        for value, label in LEGAL_FORMS.items()
    ])


@app.route('/api/kyc/document-types')
def api_document_types():
    """Required document types for a legal form"""
    legal_form = request.args.get('legal_form', '')
    return jsonify({
        'legal_form': legal_form,
        'requires_commercial_register': requires_commercial_register(legal_form),
        'document_types': document_types_for(legal_form)
    })


@app.route('/api/kyc/validate/<kind>', methods=['POST'])
def api_validate(kind):
    """Validate one onboarding form step"""
    validator = VALIDATORS.get(kind)
    if not validator:
        return jsonify({'error': f'Unknown form: {kind}'}), 404

    errors = validator(request.get_json(silent=True) or {})
    return jsonify({'valid': not errors, 'errors': errors})


@app.route('/api/health')
def api_health():
    return jsonify({
        'status': 'ok',
        'demo_mode': get_sheets_client().demo_mode or get_storage_client().demo_mode,
        'credentials_configured': credentials_configured()
    })


# ========== Error Handlers ==========

@app.errorhandler(ContractError)
def handle_contract_error(e):
    logger.error(f'Contract error ({type(e).__name__}): {e}')
    return jsonify({'error': str(e)}), e.status_code


@app.errorhandler(Exception)
def handle_exception(e):
    """Catch-all: no exception leaves a request without a JSON answer"""
    if isinstance(e, HTTPException):
        return jsonify({'error': e.description}), e.code
    logger.error(f'Unhandled exception: {e}', exc_info=True)
    return jsonify({'error': str(e)}), 500


# ========== Main ==========

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5001))
    debug = os.environ.get('FLASK_ENV', 'development') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug)
