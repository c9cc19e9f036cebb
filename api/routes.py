"""
API routes for the Business Card Extraction API.

Flask REST API endpoints for extracting contacts from business cards.
"""

import logging
from typing import Optional

from flask import Blueprint, request, jsonify, current_app
from werkzeug.utils import secure_filename

from card_ocr.pipeline import CardPipeline
from card_ocr.models import QualityReport
from config import Config

logger = logging.getLogger(__name__)

# Create Blueprint
api_bp = Blueprint("api", __name__, url_prefix="/api")

# Pipeline instance (lazy initialization)
_pipeline: Optional[CardPipeline] = None


def get_pipeline() -> CardPipeline:
    """Get or create pipeline instance.

    Returns:
        CardPipeline instance
    """
    global _pipeline

    if _pipeline is None:
        config_class = current_app.config.get("CONFIG_CLASS", Config)
        settings = config_class.pipeline_config()
        _pipeline = CardPipeline(config=settings)
        logger.info(
            f"Pipeline initialized (cloud credentials: {settings.has_cloud_credentials}, "
            f"offline: {settings.force_offline})"
        )

    return _pipeline


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed.

    Args:
        filename: Name of the file

    Returns:
        True if allowed, False otherwise
    """
    return Config.is_allowed_file(filename)


def _quality_from_request() -> Optional[QualityReport]:
    # Optional verdict from an upstream quality gate: ?quality=pass|fail&issues=a,b
    verdict = request.args.get("quality")
    if verdict is None:
        return None
    issues = tuple(i.strip() for i in request.args.get("issues", "").split(",") if i.strip())
    return QualityReport(acceptable=verdict.lower() in ("pass", "true", "1"), issues=issues)


@api_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint.

    Returns:
        JSON with health status
    """
    return jsonify({
        "success": True,
        "status": "healthy",
        "message": "Business Card Extraction API is running",
        "version": "1.0.0"
    }), 200


@api_bp.route("/status", methods=["GET"])
def get_status():
    """Get API and pipeline status, including the current recognition strategy.

    Returns:
        JSON with status information
    """
    try:
        pipeline = get_pipeline()
        status = pipeline.get_status()

        return jsonify({
            "success": True,
            "data": {
                "api_status": "running",
                "pipeline_status": status,
                "api_keys_configured": current_app.config.get("CONFIG_CLASS", Config).get_api_status()
            }
        }), 200

    except Exception as e:
        logger.error(f"Error getting status: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500


@api_bp.route("/process", methods=["POST"])
def process_card():
    """Process a single business card image.

    Expects:
        - multipart/form-data with 'file' field
        - Optional query params: quality=pass|fail, issues=comma,separated

    Returns:
        JSON with extracted contact data
    """
    # Check if file is present
    if "file" not in request.files:
        return jsonify({
            "success": False,
            "error": "No file provided. Use 'file' field in form-data."
        }), 400

    file = request.files["file"]

    if file.filename == "":
        return jsonify({
            "success": False,
            "error": "No file selected"
        }), 400

    if not allowed_file(file.filename):
        return jsonify({
            "success": False,
            "error": f"File type not allowed. Allowed: {', '.join(sorted(Config.ALLOWED_EXTENSIONS))}"
        }), 400

    try:
        image_bytes = file.read()
        if not image_bytes:
            return jsonify({
                "success": False,
                "error": "Uploaded file is empty"
            }), 400

        logger.info(f"Processing uploaded file: {secure_filename(file.filename)} ({len(image_bytes)} bytes)")

        pipeline = get_pipeline()
        record = pipeline.extract_contact(image_bytes, quality=_quality_from_request())

        return jsonify({
            "success": record.success,
            "data": record.to_dict()
        }), 200 if record.success else 502

    except Exception as e:
        logger.error(f"Error processing file: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500


@api_bp.route("/parse-text", methods=["POST"])
def parse_text():
    """Parse raw text (skip recognition).

    Expects:
        - JSON body with 'text' field

    Returns:
        JSON with parsed contact data
    """
    data = request.get_json(silent=True)

    if not data or "text" not in data:
        return jsonify({
            "success": False,
            "error": "No text provided. Send JSON with 'text' field."
        }), 400

    try:
        pipeline = get_pipeline()
        record = pipeline.process_text(data["text"])

        return jsonify({
            "success": True,
            "data": record.to_dict()
        }), 200

    except Exception as e:
        logger.error(f"Error parsing text: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500


@api_bp.route("/analytics", methods=["GET"])
def get_analytics():
    """Snapshot of backend usage: counts, quota, recent errors and timings.

    Returns:
        JSON with analytics data
    """
    try:
        return jsonify({
            "success": True,
            "data": get_pipeline().get_analytics()
        }), 200

    except Exception as e:
        logger.error(f"Error getting analytics: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500


@api_bp.route("/analytics/reset", methods=["POST"])
def reset_analytics():
    """Clear usage counters and samples."""
    try:
        get_pipeline().reset_analytics()
        return jsonify({
            "success": True,
            "message": "Analytics reset"
        }), 200

    except Exception as e:
        logger.error(f"Error resetting analytics: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500
