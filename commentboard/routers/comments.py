import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse

from commentboard.client import fetch_public_comments
from commentboard.errors import StoreFault, ValidationError
from commentboard.routers import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comments", tags=["comments"])

MAX_LENGTH = 255


def is_verified(request: Request):
    return bool(request.session.get("verified"))


def validate_comment(name: str, comment: str):
    errors = {}
    for field, value in (("name", name), ("comment", comment)):
        label = field.capitalize()
        if not value:
            errors[field] = f"{label} is required"
        elif len(value) > MAX_LENGTH:
            errors[field] = f"{label} must be at most {MAX_LENGTH} characters"
    if errors:
        raise ValidationError(errors)


def load_comments(request: Request):
    """The list to display; never fails, an unavailable list shows as empty."""
    state = request.app.state
    try:
        if state.settings.public_read_url:
            return fetch_public_comments(state.settings.public_read_url, state.http)
        return state.proxy.list_comments()
    except Exception as e:
        logger.warning("Comment list unavailable, showing none: %s", e)
        return []


def render_board(request: Request, errors=None, status_code=200):
    return templates.TemplateResponse(
        request,
        "comments.html",
        {"comments": load_comments(request), "errors": errors or {}, "max_length": MAX_LENGTH},
        status_code=status_code,
    )


# --- Board ---
@router.get("")
def get_board(request: Request):
    if not is_verified(request):
        return RedirectResponse("/", status_code=303)
    return render_board(request)


# --- create / delete ---
@router.post("")
def post_board(
    request: Request,
    action: str = Form("create"),
    name: str = Form(""),
    comment: str = Form(""),
    timestamp: str = Form(""),
):
    if not is_verified(request):
        return templates.TemplateResponse(
            request, "gate.html",
            {"error": "Please complete the challenge first", "site_key": request.app.state.settings.turnstile_site_key},
            status_code=403,
        )

    proxy = request.app.state.proxy
    try:
        if action == "create":
            name, comment = name.strip(), comment.strip()
            validate_comment(name, comment)
            failure = {"comment": "Failed to save comment"}
            proxy.create_comment(name, comment)
        elif action == "delete":
            if not timestamp:
                raise ValidationError({"timestamp": "Timestamp is required"})
            failure = {"timestamp": "Failed to delete comment"}
            proxy.delete_comment(timestamp)
        else:
            raise ValidationError({"action": f"Unknown action: {action}"})
    except ValidationError as e:
        return render_board(request, e.errors, status_code=400)
    except StoreFault as e:
        logger.warning("Comment %s failed: %s", action, e)
        return render_board(request, failure, status_code=502)

    return RedirectResponse("/comments", status_code=303)
