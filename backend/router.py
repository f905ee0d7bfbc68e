import json
import logging
import re
from typing import Any, Callable, Dict, List, Pattern, Tuple

import psutil

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]


class LambdaRouter:
    """Simple router for API Gateway events.

    Routes are ``(method, path pattern)`` pairs; ``{name}`` segments are
    captured into ``event["pathParameters"]``.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.routes: List[Tuple[str, Pattern[str], Handler]] = []
        self.cors_headers = {
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Headers': 'Content-Type, Authorization',
            'Access-Control-Allow-Methods': 'OPTIONS, POST, GET',
            'Access-Control-Expose-Headers': 'Content-Disposition, X-Render-Warning',
        }

    @staticmethod
    def compile_path(path: str) -> Pattern[str]:
        pattern = re.sub(r"\{([A-Za-z_][A-Za-z0-9_]*)\}", r"(?P<\1>[^/]+)", path.rstrip('/'))
        return re.compile(f"^{pattern}/?$")

    def add(self, method: str, path: str, handler: Handler) -> None:
        self.routes.append((method.upper(), self.compile_path(path), handler))

    def match(self, method: str, path: str) -> Tuple[Handler, Dict[str, str]] | None:
        for route_method, pattern, handler in self.routes:
            if route_method != method:
                continue
            found = pattern.match(path)
            if found:
                return handler, found.groupdict()
        return None

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        try:
            memory_info = psutil.virtual_memory()
            self.logger.debug("Available memory: %.1f MB", memory_info.available / 1024 / 1024)

            path = event.get('path', '') or ''
            method = (event.get('httpMethod', '') or '').upper()

            if method == 'OPTIONS':
                return {'statusCode': 200, 'headers': dict(self.cors_headers), 'body': ''}

            self.logger.info("Processing request: %s %s", method, path)

            matched = self.match(method, path)
            if matched:
                handler, params = matched
                event = dict(event)
                event['pathParameters'] = {**(event.get('pathParameters') or {}), **params}
                response = handler(event)
            else:
                response = {
                    'statusCode': 404,
                    'headers': {'Content-Type': 'application/json'},
                    'body': json.dumps({'error': 'Not found'})
                }

            if 'headers' not in response:
                response['headers'] = {}
            response['headers'].update(self.cors_headers)
            return response

        except Exception as e:
            self.logger.error("Lambda handler error: %s", e)
            return {
                'statusCode': 500,
                'headers': {'Content-Type': 'application/json', **self.cors_headers},
                'body': json.dumps({'error': 'Internal server error'})
            }
