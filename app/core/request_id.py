import uuid

from app.core.errors import unhandled_error_response


class RequestIDMiddleware:
    """
    Stamp each request with an id (request.state.request_id) and echo it as X-Request-ID.

    Exceptions no handler claimed are answered here with the 500 envelope, so
    those responses carry the id too.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        response_started = False

        async def send_with_request_id(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                message.setdefault("headers", [])
                message["headers"].append((b"X-Request-ID", request_id.encode()))
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception as exc:
            if response_started:
                raise
            response = unhandled_error_response(request_id, exc)
            await response(scope, receive, send_with_request_id)
