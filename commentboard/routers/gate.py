from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse

from commentboard.errors import VerificationFailure
from commentboard.routers import templates
from commentboard.verifier import TOKEN_FIELD

router = APIRouter(tags=["gate"])


def client_ip(request: Request):
    return request.headers.get("CF-Connecting-IP") or (request.client.host if request.client else None)


def render_gate(request: Request, error=None, status_code=200):
    return templates.TemplateResponse(
        request,
        "gate.html",
        {"error": error, "site_key": request.app.state.settings.turnstile_site_key},
        status_code=status_code,
    )


@router.get("/")
def get_gate(request: Request):
    if request.session.get("verified"):
        return RedirectResponse("/comments", status_code=303)
    return render_gate(request)


@router.post("/verify")
def verify(request: Request, token: str = Form("", alias=TOKEN_FIELD)):
    try:
        request.app.state.verifier.verify(token, client_ip(request))
    except VerificationFailure as e:
        return render_gate(request, str(e), status_code=400)

    request.session["verified"] = True
    return RedirectResponse("/comments", status_code=303)
