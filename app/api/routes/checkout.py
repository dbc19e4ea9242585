from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import datetime, timezone

from app.core.db import get_db
from app.schemas.checkout import CreatePreferenceResponse
from app.services.checkout import create_checkout
from app.services.errors import UpstreamError, ValidationError
from app.services.mercadopago import MercadoPagoClient, get_mercadopago_client

router = APIRouter()


def _log(*args):
    ts = datetime.now(timezone.utc).isoformat()
    print(f"[create_preference] {ts}", *args)


@router.post("/create_preference", response_model=CreatePreferenceResponse)
async def create_preference(
    request: Request,
    db: Session = Depends(get_db),
    mp: MercadoPagoClient = Depends(get_mercadopago_client),
):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    _log("body received:", body)

    try:
        result = await create_checkout(db, mp, body)
    except ValidationError as e:
        _log("validation failed:", str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})
    except UpstreamError as e:
        _log("mercado pago failed:", str(e))
        return JSONResponse(
            status_code=502,
            content={"error": "Error creating the preference", "message": str(e)},
        )
    except Exception as e:
        _log("unexpected error:", type(e).__name__, str(e))
        return JSONResponse(
            status_code=500,
            content={"error": "Error creating the preference", "message": f"{type(e).__name__}: {str(e)}"},
        )

    return CreatePreferenceResponse(
        paymentUrl=result.payment_url,
        preferenceId=result.preference_id,
        correlationToken=result.correlation_token,
        init_point=result.payment_url,
        preference_id=result.preference_id,
        external_reference=result.correlation_token,
    )
