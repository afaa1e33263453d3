"""
LiveCheck - Main Flask Application
Serves the live prose-checking command surface over HTTP
"""
import os
from flask import Flask, jsonify, g, request

from config_logging import get_config, get_logger, StructuredLogger, APP_NAME, VERSION
from live_check import lc_blueprint
from live_check.controller import get_check_manager

logger = get_logger('app')


def create_app() -> Flask:
    """Build the Flask application and register the live check routes."""
    app = Flask(__name__)
    app.register_blueprint(lc_blueprint, url_prefix='/api/live-check')

    @app.before_request
    def assign_correlation_id():
        header_id = request.headers.get('X-Correlation-ID')
        if header_id:
            StructuredLogger.set_correlation_id(header_id)
            g.correlation_id = header_id
        else:
            g.correlation_id = StructuredLogger.new_correlation_id()

    @app.route('/api/health')
    def health():
        """Report service status and configuration summary"""
        config = get_config()
        is_valid, errors = config.validate()
        return jsonify({
            'app': APP_NAME,
            'version': VERSION,
            'service_url': config.service_url,
            'language': config.language,
            'check_interval': config.check_interval,
            'config_valid': is_valid,
            'config_errors': errors,
        })

    return app


app = create_app()


if __name__ == '__main__':
    port = int(os.environ.get('LIVECHECK_PORT', '5050'))
    print("=" * 60)
    print(f"  {APP_NAME} v{VERSION}")
    print(f"  Starting server at http://localhost:{port}")
    print("=" * 60)
    try:
        app.run(host='127.0.0.1', port=port, debug=False)
    finally:
        get_check_manager().shutdown()
