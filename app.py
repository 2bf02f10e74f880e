"""
Main Flask application file for the number porting service
"""
import os
import logging
from flask import Flask, jsonify
from flask_cors import CORS
from config import config
from models import NumberConfigurationModel, PortingRequestModel, VirtualNumberModel
from routes.porting_routes import porting_bp
from services.carrier_policy import CarrierPolicyTable
from services.carrier_service import CarrierService
from services.number_activation_service import NumberActivationService
from services.porting_service import PortingService
from utils.errors import PortingError
from utils.utils import create_indexes, init_database


def create_app(config_name=None, db=None):
    """Application factory pattern"""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')

    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    # Setup logging
    setup_logging(app)

    # Initialize CORS
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
        supports_credentials=True
    )

    # Initialize database and services
    db = init_database(app, db)
    create_indexes(db)
    init_services(app, db)

    # Register blueprints
    app.register_blueprint(porting_bp)

    # Error handlers
    setup_error_handlers(app)

    # Health check route
    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'message': 'Number porting service is running',
            'version': '1.0.0'
        }), 200

    # Root route
    @app.route('/', methods=['GET'])
    def root():
        """Root endpoint with API information"""
        return jsonify({
            'message': 'Number Porting API',
            'version': '1.0.0',
            'endpoints': {
                'porting': {
                    'create': 'POST /api/porting',
                    'validate': 'POST /api/porting/validate',
                    'get': 'GET /api/porting/<id>',
                    'progress': 'GET /api/porting/<id>/progress',
                    'update_status': 'PUT /api/porting/<id>/status',
                    'cancel': 'POST /api/porting/<id>/cancel',
                    'notes': 'PATCH /api/porting/<id>/notes',
                    'documents': 'GET|POST /api/porting/<id>/documents',
                    'history': 'GET /api/porting/<id>/history',
                    'user_requests': 'GET /api/porting/user/<user_id>',
                    'search': 'GET /api/porting/search/<query>',
                    'by_status': 'GET /api/porting/status/<status>',
                    'attention': 'GET /api/porting/admin/attention'
                },
                'health': 'GET /health'
            }
        }), 200

    return app


def init_services(app, db):
    """Wire the models and services of the porting engine"""
    porting_model = PortingRequestModel(db)
    number_model = VirtualNumberModel(db)

    activation_service = NumberActivationService(
        number_model,
        NumberConfigurationModel(db),
        monthly_rate=app.config['PORTED_NUMBER_MONTHLY_RATE']
    )

    app.extensions['porting_service'] = PortingService(
        porting_model,
        number_model,
        activation_service,
        CarrierService.from_config(app.config),
        policy_provider=CarrierPolicyTable()
    )


def setup_logging(app):
    """Setup application logging"""
    # Disable MongoDB debug logs
    logging.getLogger('pymongo').setLevel(logging.WARNING)

    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s: %(message)s'
    )


def setup_error_handlers(app):
    """Setup global error handlers"""

    @app.errorhandler(PortingError)
    def porting_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'success': False, 'error': 'Bad request'}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        original = getattr(error, 'original_exception', None)
        if original is not None:
            app.logger.error("Unhandled exception", exc_info=original)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


if __name__ == '__main__':
    # Development server
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=5000,
        debug=app.config.get('DEBUG', False)
    )
