"""
Scheduler-triggered jobs.

POST /v1/cron/account-cleanup runs one account cleanup pass. The caller
authenticates with the shared CRON_SECRET, sent either as ``x-cron-secret``
or as ``Authorization: Bearer <secret>``.
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.responses import JSONResponse

from ..config import Settings
from ..database import get_session_maker
from ..models.schemas import CleanupRunResponse, ErrorResponse
from ..services.billing_service import StripeBillingClient
from ..services.cleanup_service import CleanupPreconditionError, run_account_cleanup
from ..services.email_service import EmailTransport
from ..utils.trigger_auth import extract_trigger_secret
from ._deps import get_billing_client_factory, get_email_transport_dep, get_settings_dep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cron", tags=["Cron"])


@router.post(
    "/account-cleanup",
    response_model=CleanupRunResponse,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def account_cleanup(
    request: Request,
    session_maker: async_sessionmaker = Depends(get_session_maker),
    email_transport: Optional[EmailTransport] = Depends(get_email_transport_dep),
    billing_client_factory: Callable[[], Optional[StripeBillingClient]] = Depends(get_billing_client_factory),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Send pending deletion reminders and delete expired accounts.

    Partial failures still return 200 with a non-empty ``errors`` list.
    """
    try:
        report = await run_account_cleanup(
            session_maker,
            email_transport,
            provided_secret=extract_trigger_secret(request.headers),
            settings=settings,
            billing_client_factory=billing_client_factory,
        )
    except CleanupPreconditionError as e:
        logger.warning("Account cleanup refused: %s", e.message)
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception as e:
        logger.exception("Account cleanup failed")
        return JSONResponse(status_code=500, content={"error": f"Account cleanup failed: {e}"})

    return report.to_response()
