from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from spotmap.services.cors import CorsGate

class CorsGateMiddleware(BaseHTTPMiddleware):
    """
    Applies the CorsGate decision to every response and answers preflight
    requests directly. Disallowed origins still get a normal response, just
    without any Access-Control-* headers.
    """
    async def dispatch(self, request: Request, call_next):
        gate: CorsGate = request.app.state.cors_gate
        origin = request.headers.get("origin")

        is_preflight = (
            request.method == "OPTIONS"
            and "access-control-request-method" in request.headers
        )
        if is_preflight:
            headers = gate.response_headers(origin, preflight=True)
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        for key, value in gate.response_headers(origin).items():
            response.headers[key] = value
        return response
