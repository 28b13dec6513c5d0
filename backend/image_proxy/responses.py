"""
Response Helpers

CORS and cache-lifetime headers, and the plain-text error responses
returned by the proxy.
"""

import time
from email.utils import formatdate

from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from .config import ProxyConfig
from .pipeline import NotFound, Outcome, Passthrough, Served


def add_cors_headers(response: Response) -> Response:
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


def add_expiration_headers(response: Response, seconds: int) -> Response:
    response.headers["Cache-Control"] = f"public, max-age={seconds}"
    response.headers["Expires"] = formatdate(time.time() + seconds, usegmt=True)
    return response


def preflight_response(config: ProxyConfig) -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": ", ".join(config.allowed_methods),
            "Access-Control-Max-Age": "86400",
            "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept",
        },
    )


def method_not_allowed() -> Response:
    return add_cors_headers(PlainTextResponse(
        "405. Method not allowed. Check if the request is correct", status_code=405,
    ))


def api_not_found() -> Response:
    return add_cors_headers(PlainTextResponse(
        "404. API not found. Check if the request is correct", status_code=404,
    ))


def wrong_size() -> Response:
    return add_cors_headers(PlainTextResponse(
        "404. Image size not found! Check if the request is correct", status_code=404,
    ))


def image_not_found(config: ProxyConfig) -> Response:
    response = PlainTextResponse(
        "404. Image not found! Check if the request is correct", status_code=404,
    )
    return add_cors_headers(add_expiration_headers(response, config.not_found_max_age))


def outcome_response(outcome: Outcome, config: ProxyConfig) -> Response:
    """Turn a pipeline outcome into the HTTP response."""
    if isinstance(outcome, Served):
        image = outcome.image
        if image.not_modified:
            return add_cors_headers(Response(status_code=304, headers=image.headers))
        response = StreamingResponse(
            image.body,
            status_code=image.status_code,
            headers=image.headers,
        )
        return add_cors_headers(add_expiration_headers(response, config.cache_max_age))

    if isinstance(outcome, Passthrough):
        response = StreamingResponse(outcome.body, media_type=outcome.content_type)
        return add_cors_headers(add_expiration_headers(response, config.cache_max_age))

    if isinstance(outcome, NotFound):
        return image_not_found(config)

    raise TypeError(f"Unknown pipeline outcome: {outcome!r}")
