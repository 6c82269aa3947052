import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import RelayConfig
from .errors import (
    AccessDenied,
    BadRequestBody,
    ConfigurationError,
    ExpiredTicket,
    IdentityMismatch,
    MalformedTicket,
    MissingParameter,
    RelayError,
    UntrustedSignal,
)
from .issuance import Rejection, RejectionKind, issue
from .logging_config import audit_log, set_request_id
from .models import TicketVerifyRequest
from .result_codes import describe, SUCCESS_CODE
from .security import check_caller_access
from .verification import Accepted, RejectReason, verify

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

MISSING_SIGNAL_TIP = (
    "Check the WAF rule: does it match this URI and method, "
    "and is result header injection enabled?"
)


def envelope(code: int, msg: str, data: Optional[Dict[str, Any]] = None, status: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status, content={"code": code, "msg": msg, "data": data})


def _rejection_error(rejection: Rejection, request: Request) -> RelayError:
    if rejection.kind == RejectionKind.MISSING_SIGNAL:
        data = {"tip": MISSING_SIGNAL_TIP}
        if rejection.received_headers is not None:
            data["received_headers"] = rejection.received_headers
            data["request_info"] = {"method": request.method, "path": request.url.path}
        return ConfigurationError(f"WAF verification result not found ({rejection.reason})", data)

    data = {"reason_code": rejection.reason_code}
    if rejection.received_headers is not None:
        data["received_headers"] = rejection.received_headers
    return UntrustedSignal(rejection.reason, data)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    return f"{field}: {error['msg']}" if field else error["msg"]


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """
    Build the relay application.

    Args:
        config: Relay configuration; read from the environment when omitted
    """
    if config is None:
        config = RelayConfig.from_env()

    app = FastAPI(title="Captcha Relay")
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=list(config.cors_methods),
        allow_headers=["*"],
    )

    if not config.secret:
        logger.error("SERVER_SECRET is not configured; ticket endpoints will return 500")

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER) or None)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError):
        return envelope(exc.code, exc.message, exc.data, status=exc.status_code)

    @app.get("/health")
    async def health():
        checks = config.validate()
        return envelope(0, "ok", {
            "status": "ready" if all(checks.values()) else "degraded",
            "issuer": config.issuer,
            "checks": checks,
        })

    @app.api_route(config.captcha_path, methods=list(config.captcha_methods))
    async def captcha(request: Request):
        try:
            check_caller_access(config, request.query_params.get("secret"), request.headers)
        except AccessDenied as exc:
            audit_log.security_event("caller_access_denied", reason=exc.message)
            raise

        headers = {k.lower(): v for k, v in request.headers.items()}
        try:
            result = await run_in_threadpool(issue, headers, config)
        except RelayError:
            raise
        except Exception as exc:
            logger.exception("Ticket signing failed")
            raise ConfigurationError(f"ticket could not be signed: {exc}") from exc

        if isinstance(result, Rejection):
            raise _rejection_error(result, request)

        return envelope(0, describe(SUCCESS_CODE), {
            "ticket": result.ticket,
            "expire_in": result.expire_in,
        })

    @app.post(config.verify_path)
    async def verify_ticket(request: Request):
        if not config.secret:
            raise ConfigurationError("SERVER_SECRET is not configured")

        try:
            body = TicketVerifyRequest.model_validate(await request.json())
        except ValidationError as exc:
            raise BadRequestBody(f"request body could not be parsed: {_first_error(exc)}") from exc
        except ValueError as exc:
            raise BadRequestBody(f"request body could not be parsed: {exc}") from exc

        result = await run_in_threadpool(verify, body.ticket, body.client_ip, config.secret)

        if isinstance(result, Accepted):
            audit_log.verification_decision(True, "ok", ticket=body.ticket, ticket_request_id=result.request_id)
            return envelope(0, "ticket verified", result.to_dict())

        audit_log.verification_decision(False, result.reason.value, ticket=body.ticket)

        if result.reason == RejectReason.MISSING_PARAMETER:
            raise MissingParameter("missing parameter: ticket and client_ip are required")
        if result.reason == RejectReason.INVALID_SIGNATURE:
            audit_log.security_event("invalid_ticket_signature", client_ip=body.client_ip)
            raise MalformedTicket("invalid signature")
        if result.reason == RejectReason.EXPIRED:
            raise ExpiredTicket("ticket expired")
        raise IdentityMismatch("ip mismatch", {
            "registeredIp": result.registered_ip,
            "currentIp": result.current_ip,
        })

    return app
