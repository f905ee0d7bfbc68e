"""Local development server exposing the Lambda routes through Flask."""
import base64
import logging
import os

from flask import Flask, Response, request, send_from_directory
from flask_cors import CORS

import lambda_function


app = Flask(__name__)
CORS(
    app,
    resources={r"/*": {"origins": "*"}},
    supports_credentials=False,
    expose_headers=["Content-Disposition", "X-Render-Warning"],
    allow_headers=["Content-Type", "Authorization"],
)

logger = logging.getLogger(__name__)

ARTIFACT_DIR = os.path.abspath(os.environ.get('ARTIFACT_DIR', 'uploads'))


def request_to_event() -> dict:
    """Translate the current Flask request into an API Gateway proxy event."""
    body = request.get_data() or b''
    return {
        'httpMethod': request.method,
        'path': request.path,
        'headers': dict(request.headers),
        'queryStringParameters': request.args.to_dict() or None,
        'body': base64.b64encode(body).decode('ascii') if body else '',
        'isBase64Encoded': bool(body),
    }


def event_response_to_flask(response: dict) -> Response:
    body = response.get('body') or ''
    if response.get('isBase64Encoded'):
        payload = base64.b64decode(body)
    else:
        payload = body.encode('utf-8') if isinstance(body, str) else body
    headers = dict(response.get('headers') or {})
    content_type = headers.pop('Content-Type', None)
    return Response(payload, status=response.get('statusCode', 200), headers=headers, content_type=content_type)


@app.route('/uploads/<path:filename>', methods=['GET'])
def serve_artifact(filename):
    return send_from_directory(ARTIFACT_DIR, filename, as_attachment=True)


@app.route('/api/<path:_subpath>', methods=['GET', 'POST', 'OPTIONS'])
def api(_subpath):
    event = request_to_event()
    response = lambda_function.lambda_handler(event, None)
    return event_response_to_flask(response)


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5002))
    logger.info("Starting document service on port %s", port)
    app.run(host='0.0.0.0', port=port, debug=False)
