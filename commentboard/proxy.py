import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from commentboard.errors import AuthError, StoreFault, WriteConflict
from commentboard.storage import CommentStore

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Custom-Auth-Key"


def cors_headers(origin: str = "*"):
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": f"Content-Type, {AUTH_HEADER}",
    }


def check_auth(request: Request, secret: str):
    if not secret or request.headers.get(AUTH_HEADER) != secret:
        raise AuthError()


class BadRequest(Exception):
    pass


class DeleteRequest(BaseModel):
    timestamp: str


async def _json_object(request: Request):
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequest("Body must be JSON") from e
    if not isinstance(body, dict):
        raise BadRequest("Body must be a JSON object")
    return body


def create_proxy_app(settings, comments: CommentStore):
    app = FastAPI(title="comments.json proxy")
    headers = cors_headers(settings.cors_allow_origin)

    def reply(data, status_code=200):
        return JSONResponse(data, status_code=status_code, headers=headers)

    async def handle(request: Request):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)

        try:
            check_auth(request, settings.auth_key_secret)
        except AuthError as e:
            logger.info("Rejected %s %s: bad or missing %s", request.method, request.url.path, AUTH_HEADER)
            return reply({"error": str(e)}, 403)

        try:
            if request.method == "GET":
                return reply(await run_in_threadpool(comments.list))

            if request.method == "PUT":
                entry = await _json_object(request)
                await run_in_threadpool(comments.create, entry)
                return reply({"success": True})

            if request.method == "DELETE":
                try:
                    body = DeleteRequest.model_validate(await _json_object(request))
                except PydanticValidationError as e:
                    raise BadRequest("timestamp is required") from e
                await run_in_threadpool(comments.delete, body.timestamp)
                return reply({"success": True})

            return reply({"error": "Method not allowed"}, 405)
        except BadRequest as e:
            return reply({"error": str(e)}, 400)
        except WriteConflict as e:
            logger.warning("Gave up writing %s: %s", comments.key, e)
            return reply({"error": str(e)}, 409)
        except StoreFault as e:
            logger.exception("Store fault")
            return reply({"error": str(e)}, 500)
        except Exception as e:
            logger.exception("Proxy error")
            return reply({"error": str(e)}, 500)

    # no method filter: every verb goes through handle
    class Endpoint:
        async def __call__(self, scope, receive, send):
            response = await handle(Request(scope, receive))
            await response(scope, receive, send)

    app.add_route("/", Endpoint(), include_in_schema=False)
    app.add_route("/{key}", Endpoint(), include_in_schema=False)
    return app
