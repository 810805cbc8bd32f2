"""eSewa payment confirmation routes."""
from fastapi import APIRouter

from elearn.dependencies import AdminIdentity, AppSettings, CurrentIdentity, DbSession, Payments
from elearn.schemas.payment import VerifyEsewaLegacySchema, VerifyEsewaV2Schema
from elearn.services.payments import reconcile_pending_payments

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/verify-esewa-v2")
async def verify_esewa_v2(body: VerifyEsewaV2Schema, identity: CurrentIdentity, payments: Payments):
    data = await payments.verify_v2(identity.id, body.payment_data, body.course_id)
    return {"success": True, "message": "Payment verified successfully", "data": data}


@router.post("/verify-esewa")
async def verify_esewa(body: VerifyEsewaLegacySchema, identity: CurrentIdentity, payments: Payments):
    data = await payments.verify_legacy(identity.id, body.oid, body.amt, body.ref_id)
    return {"success": True, "message": "Payment verified successfully", "data": data}


@router.post("/reconcile")
async def reconcile(_: AdminIdentity, db: DbSession):
    """Re-apply ledger entries whose enrollment update never completed."""
    applied = await reconcile_pending_payments(db)
    return {"success": True, "message": f"Reconciled {applied} payment(s)", "applied": applied}


@router.get("/health")
async def payments_health(settings: AppSettings):
    return {
        "success": True,
        "message": "Payment service is running",
        "merchantId": settings.esewa_merchant_id,
        "environment": settings.esewa_environment,
    }
