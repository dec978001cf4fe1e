from __future__ import annotations
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.identity import IdentityAdmin
from ...config import get_settings
from ...db import get_db
from ...domain.schemas.actions import SendOtp, VerifyOtp, parse_action
from ...errors import PhoneAuthError, RateLimited
from ...middleware.request_context import client_ip
from ...repos.otps import SqlOtpStore
from ...repos.profiles import SqlProfileStore
from ...services.phone_auth import PhoneAuthService
from ...services.rate_limit import OtpRateLimiter, get_rate_limiter
from ...services.sms import sms_service

router = APIRouter(tags=["phone-auth"])
log = logging.getLogger(__name__)

S = get_settings()

PATHS = ("/functions/v1/phone-auth", "/phone-auth")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def get_phone_auth_service(db: AsyncSession = Depends(get_db)) -> PhoneAuthService:
    return PhoneAuthService(
        otps=SqlOtpStore(db),
        profiles=SqlProfileStore(db),
        identity=IdentityAdmin(db),
        sms=sms_service,
        otp_ttl=timedelta(seconds=S.OTP_TTL_SECONDS),
    )


def _json(body: dict, status_code: int = status.HTTP_200_OK, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={**CORS_HEADERS, **(headers or {})})


async def preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)


async def phone_auth(
    request: Request,
    service: PhoneAuthService = Depends(get_phone_auth_service),
    limiter: OtpRateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    try:
        action = parse_action(await request.json())
        if isinstance(action, SendOtp):
            await limiter.limit_otp_request(client_ip(request))
        elif isinstance(action, VerifyOtp):
            await limiter.limit_otp_verify(client_ip(request))
        out = await service.handle(action)
    except RateLimited as e:
        return _json({"error": e.message}, e.status_code, headers={"Retry-After": str(e.retry_after)})
    except PhoneAuthError as e:
        return _json({"error": e.message}, e.status_code)
    except Exception as e:
        log.exception("Error processing request: %s", e)
        return _json({"error": "Internal server error"}, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return _json(out.model_dump(exclude_none=True))


for _path in PATHS:
    router.add_api_route(_path, preflight, methods=["OPTIONS"], include_in_schema=False)
    router.add_api_route(_path, phone_auth, methods=["POST"])
