"""Distress Service HTTP handler - feedback analysis endpoint.

POST /analyze classifies one piece of feedback. When the request names
an organization scope, analyses at or above the alert threshold are
handed to the alert dispatcher before the response is returned.

Subject identifiers are only ever logged through hash_pii(); feedback
text is never logged.
"""
import logging
import os

from flask import Flask, jsonify, request

from carewatch.shared.database import RepositoryError
from carewatch.shared.models import Language, RiskLevel
from carewatch.shared.utils import configure_pii_salt, hash_pii
from carewatch.services.alert_service import dispatcher_from_env
from .analyzer import DistressAnalyzer, failed_analysis
from .config import DistressConfig

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Configure PII salt from environment
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)

config = DistressConfig.from_env()
analyzer = DistressAnalyzer(config=config)
dispatcher = dispatcher_from_env()


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "distress-service",
        "lexicon_version": config.lexicon_version,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies analyzer is initialized."""
    if analyzer is None:
        return jsonify({"status": "not_ready", "reason": "analyzer_not_initialized"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/analyze", methods=["POST"])
def analyze_feedback():
    """Analyze feedback text for distress.

    Request Body:
        {
            "text": "Feedback text",
            "subject_id": "student_789" (optional),
            "subject_name": "Ana" (optional),
            "organization_scope": "school_001" (optional)
        }

    Response:
        DistressAnalysis fields, plus:
        - "alert_id" when an alert was dispatched
        - "crisis_resources" for critical results

    Error Handling:
        An analyzer failure returns a MEDIUM result (never fail open).
        A failure to persist the alert returns 503.
    """
    data = request.get_json(silent=True)
    if not data:
        logger.warning("ANALYZE_REQUEST_INVALID", extra={"reason": "empty_body"})
        return jsonify({"error": "Request body required"}), 400

    text = data.get("text")
    if text is None or not isinstance(text, str):
        logger.warning("ANALYZE_REQUEST_INVALID", extra={"reason": "missing_text"})
        return jsonify({"error": "Missing required field: text"}), 400

    subject_id = data.get("subject_id")
    subject_name = data.get("subject_name")
    scope = data.get("organization_scope")

    logger.info(
        "ANALYZE_REQUESTED",
        extra={
            "subject_id_hash": hash_pii(subject_id),
            "scope": scope,
            "text_length": len(text),
        }
    )

    try:
        analysis = analyzer.analyze(text)
        response = analysis.to_dict()
    except Exception as e:
        # On error, default to MEDIUM so the text still reaches a human
        logger.error(
            "ANALYZE_ERROR",
            extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "action": "DEFAULTING_TO_MEDIUM",
            }
        )
        analysis = failed_analysis()
        response = analysis.to_dict()
        response["error"] = "Analysis failed - defaulting to medium risk"

    if analysis.risk_level == RiskLevel.CRITICAL:
        response["crisis_resources"] = analyzer.get_crisis_resources(
            analysis.detected_language
        ).to_dict()

    if scope:
        try:
            alert = dispatcher.process_distress(
                analysis=analysis,
                subject_id=subject_id,
                subject_name=subject_name,
                scope=scope,
            )
        except RepositoryError as e:
            logger.critical(
                "ANALYZE_ALERT_NOT_RECORDED",
                extra={
                    "subject_id_hash": hash_pii(subject_id),
                    "scope": scope,
                    "risk_level": analysis.risk_level.value,
                    "error": str(e),
                    "action": "MANUAL_REVIEW_REQUIRED",
                }
            )
            response["error"] = "Alert could not be recorded"
            return jsonify(response), 503

        if alert is not None:
            response["alert_id"] = alert.id

    return jsonify(response), 200


@app.route("/crisis-resources/<language>", methods=["GET"])
def crisis_resources(language: str):
    """Crisis hotlines and websites for a language code (en, lt).

    Unknown codes fall back to the English resources.
    """
    try:
        lang = Language(language.lower())
    except ValueError:
        lang = Language.UNKNOWN
    return jsonify(analyzer.get_crisis_resources(lang).to_dict()), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    port = int(os.getenv("PORT", "8001"))
    app.run(host="0.0.0.0", port=port, debug=False)
