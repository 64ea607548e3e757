"""
API routes for the Business Card Scanning API.

Flask REST API endpoints for processing business cards.
"""

import asyncio
import logging
from typing import Optional

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from cardscan import (
    BatchItem,
    CardPipeline,
    CardPipelineError,
    EasyOCRAdapter,
    GeminiCardParser,
    InMemoryCardStore,
    InvalidInput,
    ParseHints,
    PipelineConfig,
    ProcessOptions,
    QuotaExceeded,
    RateLimited,
    SecurityViolation,
    ServiceUnavailable,
    StageTimeout,
    StorageFailure,
)
from config import Config

logger = logging.getLogger(__name__)

# Create Blueprint
api_bp = Blueprint("api", __name__, url_prefix="/api")

# Pipeline instance (lazy initialization)
_pipeline: Optional[CardPipeline] = None

# Most specific first
ERROR_STATUS = (
    (InvalidInput, 400),
    (SecurityViolation, 422),
    (QuotaExceeded, 429),
    (RateLimited, 429),
    (StageTimeout, 504),
    (ServiceUnavailable, 503),
    (StorageFailure, 507),
)


def get_pipeline() -> CardPipeline:
    """Get or create pipeline instance.

    Returns:
        CardPipeline wired from the active configuration
    """
    global _pipeline

    if _pipeline is None:
        config = current_app.config.get("CARDSCAN_CONFIG", Config)
        ai_parser = None
        if config.USE_AI_PARSING and config.GOOGLE_API_KEY:
            ai_parser = GeminiCardParser(api_key=config.GOOGLE_API_KEY, model=config.GEMINI_MODEL)

        _pipeline = CardPipeline(
            ocr=EasyOCRAdapter(
                languages=config.OCR_LANGUAGES,
                gpu=config.OCR_GPU,
                model_dir=config.OCR_MODEL_DIR,
                max_image_bytes=config.MAX_CONTENT_LENGTH,
                workers=config.OCR_WORKERS,
            ),
            ai_parser=ai_parser,
            store=InMemoryCardStore(capacity=config.STORE_CAPACITY),
            config=PipelineConfig.from_config(config),
        )
        logger.info(f"Pipeline initialized with AI parsing: {ai_parser is not None}")

    return _pipeline


def status_for(error: CardPipelineError) -> int:
    """HTTP status code for a pipeline error."""
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return status
    return 500


def error_response(error: CardPipelineError):
    """JSON response for a pipeline error."""
    response = jsonify({"success": False, **error.to_dict()})
    response.status_code = status_for(error)
    if isinstance(error, RateLimited):
        response.headers["Retry-After"] = str(int(error.retry_after))
    return response


def _arg_bool(name: str, default: bool) -> bool:
    return request.args.get(name, str(default)).lower() == "true"


def parse_options() -> ProcessOptions:
    """Build ProcessOptions from query parameters."""
    threshold = request.args.get("threshold")
    if threshold is not None:
        try:
            threshold = float(threshold)
        except ValueError:
            raise InvalidInput(f"threshold must be a number, got {threshold!r}", field="threshold") from None

    return ProcessOptions(
        confidence_threshold=threshold,
        dry_run=_arg_bool("dry_run", False),
        track_metrics=_arg_bool("track_metrics", False),
        save_result=_arg_bool("save", True),
        use_ai=_arg_bool("use_ai", True),
        validate_quality=_arg_bool("validate_quality", False),
    )


def parse_hints() -> Optional[ParseHints]:
    """Build ParseHints from query parameters."""
    return ParseHints.from_dict({
        "language": request.args.get("language"),
        "country": request.args.get("country"),
        "card_type": request.args.get("card_type"),
        "industry": request.args.get("industry"),
    })


@api_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return jsonify({
        "success": True,
        "status": "healthy",
        "message": "Business Card Scanning API is running",
        "version": "1.0.0"
    }), 200


@api_bp.route("/status", methods=["GET"])
def get_status():
    """Get API and pipeline status.

    Returns:
        JSON with status information
    """
    config = current_app.config.get("CARDSCAN_CONFIG", Config)
    pipeline = get_pipeline()

    return jsonify({
        "success": True,
        "data": {
            "api_status": "running",
            "pipeline_status": pipeline.get_status(),
            "api_keys_configured": config.get_api_status()
        }
    }), 200


@api_bp.route("/process", methods=["POST"])
def process_single():
    """Process a single business card image.

    Expects:
        - multipart/form-data with 'file' field
        - Optional query params: dry_run, track_metrics, save, use_ai, validate_quality (true/false),
          threshold (0-1), language, country, card_type, industry

    Returns:
        JSON with the extracted card, warnings and processing steps
    """
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

    config = current_app.config.get("CARDSCAN_CONFIG", Config)
    if not config.is_allowed_file(file.filename):
        return jsonify({
            "success": False,
            "error": f"File type not allowed. Allowed: {', '.join(sorted(config.ALLOWED_EXTENSIONS))}"
        }), 400

    try:
        options = parse_options()
        image_bytes = file.read()
        logger.info(f"Processing uploaded file: {secure_filename(file.filename)} ({len(image_bytes)} bytes)")

        result = asyncio.run(get_pipeline().process(image_bytes, hints=parse_hints(), options=options))
    except CardPipelineError as e:
        logger.warning(f"Processing failed: {e.code}: {e.message}")
        return error_response(e)

    return jsonify({"success": True, "data": result.to_dict()}), 200


@api_bp.route("/parse-text", methods=["POST"])
def parse_text():
    """Parse already-recognized card text.

    Expects JSON:
        {"text": "...", "ocr_confidence": 0.9, "hints": {"language": "zh-TW"}}

    Query params are the same as for /process.
    """
    data = request.get_json(silent=True) or {}
    text = data.get("text")

    if not isinstance(text, str) or not text.strip():
        return jsonify({
            "success": False,
            "error": "No text provided. Send JSON with a 'text' field."
        }), 400

    try:
        options = parse_options()
        hints_data = data.get("hints")
        if hints_data is not None and not isinstance(hints_data, dict):
            raise InvalidInput("hints must be an object", field="hints")
        hints = ParseHints.from_dict(hints_data) or parse_hints()
        ocr_confidence = data.get("ocr_confidence", 1.0)
        if not isinstance(ocr_confidence, (int, float)):
            raise InvalidInput("ocr_confidence must be a number", field="ocr_confidence")

        result = asyncio.run(get_pipeline().process_text(
            text, hints=hints, options=options, ocr_confidence=ocr_confidence
        ))
    except CardPipelineError as e:
        logger.warning(f"Text parsing failed: {e.code}: {e.message}")
        return error_response(e)

    return jsonify({"success": True, "data": result.to_dict()}), 200


@api_bp.route("/batch", methods=["POST"])
def process_batch():
    """Process several card images concurrently.

    Expects:
        - multipart/form-data with 'files' field (multiple files)
        - Optional query param: concurrency (default from configuration)

    Every file shows up either under ``results`` or under ``errors``.
    """
    if "files" not in request.files:
        return jsonify({
            "success": False,
            "error": "No files provided"
        }), 400

    config = current_app.config.get("CARDSCAN_CONFIG", Config)
    items = []
    for file in request.files.getlist("files"):
        if file.filename and config.is_allowed_file(file.filename):
            items.append(BatchItem(payload=file.read(), item_id=secure_filename(file.filename)))

    if not items:
        return jsonify({
            "success": False,
            "error": "No valid files to process"
        }), 400

    try:
        concurrency = request.args.get("concurrency")
        if concurrency is not None:
            try:
                concurrency = int(concurrency)
            except ValueError:
                raise InvalidInput(f"concurrency must be an integer, got {concurrency!r}", field="concurrency") from None

        batch = asyncio.run(get_pipeline().process_batch(
            items, concurrency=concurrency, hints=parse_hints(), options=parse_options()
        ))
    except CardPipelineError as e:
        logger.warning(f"Batch rejected: {e.code}: {e.message}")
        return error_response(e)

    return jsonify({"success": True, **batch.to_dict()}), 200


@api_bp.route("/cards", methods=["GET"])
def list_cards():
    """List stored cards."""
    cards = get_pipeline().store.list_cards()
    return jsonify({
        "success": True,
        "cards": [card.to_dict() for card in cards],
        "count": len(cards)
    }), 200


@api_bp.route("/cards/<card_id>", methods=["GET"])
def get_card(card_id: str):
    """Fetch one stored card by id."""
    card = get_pipeline().store.get_card(card_id)
    if card is None:
        return jsonify({
            "success": False,
            "error": f"Card not found: {card_id}"
        }), 404
    return jsonify({"success": True, "data": card.to_dict()}), 200
