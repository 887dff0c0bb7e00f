"""
Tool Gateway API Server.

v1 API endpoints:
    GET/POST /v1/ip     - IP geolocation lookup (single object or batch of up to 50)
    POST     /v1/tools  - Dispatch a tool call by functionName
    POST     /v1/upload - Upload a file with a managed bearer token
    GET      /v1/health - Health check (public)

OPTIONS on /v1/ip and /v1/tools returns a self-description for the assistant.

Run with: python -m toolgate.cli serve --port 8080
"""

import logging

from flask import Flask, request, jsonify, g
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from toolgate import __version__
from toolgate.batch import run_batch
from toolgate.errors import GatewayError, InvalidArgument
from toolgate.services import Services, build_services

logger = logging.getLogger(__name__)

SERVICE_NAME = "toolgate"

IP_SUCCESS_MESSAGE = "IP information retrieved successfully."

IP_OPTIONS = {
    "description": "This endpoint retrieves IP information using the ipapi.co API.",
    "requiredParams": {"ip": "IP address (required)"},
    "demoBody": [{"ip": "4.2.2.1"}, {"ip": "108.65.112.74"}],
}

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "IPAddressLookUp",
            "description": (
                "Look up detailed information for a given IP address including location, network "
                "details, and organization information. The response includes fields like ip, asn, "
                "city, country_name, currency, description, detailedDescription, latitude, longitude, "
                "network, org, postal, region, utc_offset, version."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "ip": {"type": "string", "description": "The IP address to look up, e.g., 108.65.112.74"},
                },
                "required": ["ip"],
            },
        },
    },
]


def _error(err: GatewayError):
    return jsonify({
        "status": False,
        "message": f"Error: {err.message}",
        "error": err.to_dict(),
    }), err.status


def _ip_item(services: Services, item: dict):
    return services.lookup_cache.resolve(item.get("ip"))


TOOL_HANDLERS = {
    "IPAddressLookUp": _ip_item,
}


def create_app(services: Services = None) -> Flask:
    """Build the Flask app around a Services container (one per process)."""
    app = Flask(__name__)
    CORS(app)
    app.config["SERVICES"] = services or build_services()

    @app.before_request
    def _attach_services():
        g.services = app.config["SERVICES"]

    @app.errorhandler(GatewayError)
    def _gateway_error(err):
        return _error(err)

    @app.errorhandler(Exception)
    def _unexpected_error(err):
        if isinstance(err, HTTPException):
            return err
        logger.exception("Unhandled error on %s", request.path)
        return jsonify({
            "status": False,
            "message": f"Error: {err}",
            "error": {"code": "internal_error", "message": str(err), "status": 500},
        }), 500

    # ──────────────── Health ────────────────

    @app.route('/v1/health', methods=['GET'])
    def v1_health():
        """Health check. Does not touch the database."""
        return jsonify({
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
        })

    # ──────────────── IP lookup ────────────────

    @app.route('/v1/ip', methods=['GET', 'POST', 'OPTIONS'])
    def v1_ip():
        """Look up one or more IP addresses through the cache."""
        if request.method == 'OPTIONS':
            return jsonify(IP_OPTIONS)

        if request.method == 'GET':
            body = request.args.to_dict()
        else:
            body = request.get_json(silent=True)

        services = g.services
        result = run_batch(body, lambda item: _ip_item(services, item), IP_SUCCESS_MESSAGE)
        return jsonify(result.to_dict())

    # ──────────────── Tool dispatcher ────────────────

    @app.route('/v1/tools', methods=['POST', 'OPTIONS'])
    def v1_tools():
        """Dispatch a tool call by name."""
        if request.method == 'OPTIONS':
            return jsonify({"tools": TOOLS})

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise InvalidArgument("Request body must be a JSON object")

        function_name = data.get("functionName")
        handler = TOOL_HANDLERS.get(function_name)
        if handler is None:
            raise InvalidArgument(f"Invalid function name: {function_name!r}")

        logger.info("Dispatching tool call %s", function_name)
        params = {k: v for k, v in data.items() if k != "functionName"}
        return jsonify({"status": True, "data": handler(g.services, params)})

    # ──────────────── Upload ────────────────

    @app.route('/v1/upload', methods=['POST'])
    def v1_upload():
        """Upload a multipart 'file' field to the file service."""
        upload = request.files.get("file")
        if upload is None:
            raise InvalidArgument("Missing required file field: 'file'")

        file_name = request.form.get("fileName") or upload.filename
        backend_kind = request.form.get("backend")
        uploader = g.services.uploader()
        stored = uploader.upload_file(
            upload.read(),
            file_name=file_name,
            mime_type=upload.mimetype or "application/octet-stream",
            backend=g.services.backend(backend_kind) if backend_kind else None,
        )
        return jsonify({"status": True, "data": stored.model_dump()})

    return app
