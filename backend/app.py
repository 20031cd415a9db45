from flask import Flask, request, jsonify
from flask_cors import CORS
import os
import sys
import logging

# Add the project root (parent of backend) to sys.path for script execution
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from backend.statement_etl import RawDocument, StatementPipeline
from backend.statement_etl.config import Config
from backend.statement_etl.errors import (
    EmptyInputError, NoDataError, RendererUnavailableError,
    StatementParseError, UnsupportedFormatError,
)
from backend.statement_etl.summary import (
    TRANSACTION_TYPES, detect_dominant_polarity, filter_by_polarity,
    number_records, summarize,
)

# Setup Logging
logging.basicConfig(
    filename=Config.LOG_FILE or None,
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s: %(message)s'
)
logging.info("Server starting up...")


app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = int(Config.MAX_UPLOAD_MB * 1024 * 1024)
CORS(app, resources={r"/*": {"origins": Config.CORS_ORIGINS}})

statement_pipeline = StatementPipeline()

# Typed pipeline failures -> HTTP status
ERROR_STATUS = [
    (UnsupportedFormatError, 415),
    (EmptyInputError, 422),
    (NoDataError, 422),
    (RendererUnavailableError, 503),
]


def _status_for(exc: StatementParseError) -> int:
    for error_cls, status in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status
    return 500


@app.errorhandler(413)
def file_too_large(_e):
    return jsonify({"status": "failed", "error": f"File too large. Max is {Config.MAX_UPLOAD_MB:g}MB."}), 413


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@app.route('/parse', methods=['POST'])
def parse_statement():
    if 'file' not in request.files:
        return jsonify({"status": "failed", "error": "No file part"}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({"status": "failed", "error": "No selected file"}), 400

    billing_type = request.form.get('billing_type', Config.DEFAULT_BILLING_TYPE)
    transaction_type = request.form.get('transaction_type', 'all').lower()
    if transaction_type not in TRANSACTION_TYPES:
        return jsonify({"status": "failed", "error": f"Unknown transaction_type: {transaction_type}"}), 400

    document = RawDocument.from_upload(file.filename, file.read())
    if document.format not in Config.ALLOWED_EXTENSIONS:
        return jsonify({"status": "failed", "error": f"Unsupported file type: .{document.format}"}), 415
    try:
        result = statement_pipeline.parse(document, billing_type)
    except StatementParseError as e:
        status = _status_for(e)
        logging.warning(f"Parse failed for {file.filename} ({status}): {e}")
        return jsonify({"status": "failed", "error": str(e)}), status
    except Exception:
        logging.exception("PIPELINE_ERROR")
        return jsonify({"status": "failed", "error": "Internal error while parsing the file"}), 500

    records = list(result.records)
    view = [record for _, record in filter_by_polarity(records, transaction_type)]

    return jsonify({
        "status": "success",
        "billing_type": billing_type,
        "transaction_type": transaction_type,
        "result": result.to_dict(),
        "rows": number_records(view),
        "summary": summarize(records),
        "dominant_polarity": detect_dominant_polarity(records),
    })


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
