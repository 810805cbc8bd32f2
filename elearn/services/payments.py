"""Payment verifier: callback checks, gateway re-verification, ledger and enrollment update.

A confirmed transaction is written to the ``payments`` ledger before any
enrollment state changes. If applying the enrollment fails the ledger row
stays ``verified`` and :func:`reconcile_pending_payments` applies it later.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elearn.core.clock import utcnow
from elearn.core.config import Settings
from elearn.core.errors import (
    Conflict,
    GatewayUnavailable,
    NotFound,
    PartialPaymentFailure,
    PaymentRejected,
    ValidationFailed,
)
from elearn.models.course import Course
from elearn.models.payment import (
    GATEWAY_ESEWA_LEGACY,
    GATEWAY_ESEWA_V2,
    STATUS_APPLIED,
    STATUS_VERIFIED,
    Payment,
)
from elearn.models.user import ENROLLED, PREMIUM
from elearn.schemas.payment import EsewaPaymentDataSchema
from elearn.services.esewa import COMPLETE, EsewaClient, decode_callback_data, verify_signature
from elearn.services.progress import add_user_course, mark_enrolled, upsert_progress

logger = logging.getLogger(__name__)

REQUIRED_V2_FIELDS = ("transaction_code", "status", "total_amount", "transaction_uuid")


def _amount(value: str) -> float:
    # eSewa may echo amounts with thousands separators ("1,000.0")
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid payment amount")


async def apply_payment(db: AsyncSession, payment: Payment) -> None:
    """Grant premium access and enrollment for a verified payment; idempotent."""
    upserted = await upsert_progress(db, payment.user_id, payment.course_id)
    progress = upserted.progress
    now = utcnow()
    progress.is_premium = True
    progress.premium_purchased_at = now
    if await mark_enrolled(db, progress):
        logger.info("Payment %s enrolled user %s in course %s", payment.transaction_uuid, payment.user_id, payment.course_id)
    await add_user_course(db, payment.user_id, payment.course_id, PREMIUM)
    await add_user_course(db, payment.user_id, payment.course_id, ENROLLED)
    payment.status = STATUS_APPLIED
    payment.applied_at = now
    payment.last_error = None
    await db.commit()


async def reconcile_pending_payments(db: AsyncSession) -> int:
    """Apply every ledger entry the gateway confirmed but enrollment never caught up with."""
    result = await db.execute(select(Payment).where(Payment.status == STATUS_VERIFIED).order_by(Payment.id))
    pending = [(p.id, p.transaction_uuid) for p in result.scalars().all()]
    applied = 0
    for payment_id, txn in pending:
        try:
            payment = await db.get(Payment, payment_id)
            await apply_payment(db, payment)
        except Exception as exc:
            await db.rollback()
            await db.execute(update(Payment).where(Payment.id == payment_id).values(last_error=str(exc)))
            await db.commit()
            logger.error("Reconciling payment %s failed: %s", txn, exc)
            continue
        applied += 1
        logger.info("Reconciled payment %s", txn)
    return applied


class PaymentService:
    def __init__(self, db: AsyncSession, settings: Settings, gateway: EsewaClient):
        self.db = db
        self.settings = settings
        self.gateway = gateway

    async def _get_course(self, course_id: int) -> Course:
        course = await self.db.get(Course, course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    async def _find_payment(self, transaction_uuid: str) -> Payment | None:
        result = await self.db.execute(select(Payment).where(Payment.transaction_uuid == transaction_uuid))
        return result.scalar_one_or_none()

    def _check_owner(self, payment: Payment, user_id: int, course_id: int) -> None:
        if payment.user_id != user_id or payment.course_id != course_id:
            raise Conflict("This transaction has already been used")

    async def _confirm_with_gateway(self, amount: str, reference_id: str, product_id: str) -> None:
        try:
            result = await self.gateway.verify_transaction(amount, reference_id, product_id)
        except GatewayUnavailable as exc:
            raise PaymentRejected(error=str(exc))
        if not result.success:
            logger.warning("eSewa did not confirm %s: %s", product_id, result.error)
            raise PaymentRejected(error=result.error)
        if result.mock:
            logger.warning("Transaction %s accepted by mock verification", product_id)

    async def _record(
        self, user_id: int, course_id: int, transaction_uuid: str, transaction_code: str, amount: float, gateway: str
    ) -> Payment:
        payment = Payment(
            user_id=user_id,
            course_id=course_id,
            transaction_uuid=transaction_uuid,
            transaction_code=transaction_code,
            amount=amount,
            gateway=gateway,
            status=STATUS_VERIFIED,
        )
        self.db.add(payment)
        try:
            await self.db.commit()
        except IntegrityError:
            # a concurrent request recorded the same transaction first
            await self.db.rollback()
            payment = await self._find_payment(transaction_uuid)
            self._check_owner(payment, user_id, course_id)
            return payment
        logger.info("Recorded verified payment %s (%s)", transaction_uuid, gateway)
        return payment

    async def _apply(self, payment: Payment) -> None:
        payment_id, txn = payment.id, payment.transaction_uuid
        try:
            await apply_payment(self.db, payment)
        except Exception as exc:
            await self.db.rollback()
            await self.db.execute(update(Payment).where(Payment.id == payment_id).values(last_error=str(exc)))
            await self.db.commit()
            logger.error("Payment %s verified but enrollment update failed: %s", txn, exc)
            raise PartialPaymentFailure(error=str(exc))

    async def _settle(
        self,
        user_id: int,
        course: Course,
        transaction_uuid: str,
        transaction_code: str,
        amount: str,
        gateway: str,
        product_id: str,
    ) -> Payment:
        """Shared tail of both flows: price check, idempotency, gateway check, ledger, apply.

        ``amount`` is passed to the gateway exactly as received.
        """
        course_id = course.id
        amount_value = _amount(amount)
        if amount_value < course.premium_price:
            logger.warning(
                "Transaction %s paid %s for course %s priced %s", transaction_uuid, amount, course_id, course.premium_price
            )
            raise PaymentRejected(
                "Payment amount does not match course price", expected=course.premium_price, received=amount_value
            )
        payment = await self._find_payment(transaction_uuid)
        if payment is not None:
            self._check_owner(payment, user_id, course_id)
            if payment.status == STATUS_APPLIED:
                logger.info("Payment %s already applied", transaction_uuid)
                return payment
        else:
            await self._confirm_with_gateway(amount, transaction_code, product_id)
            payment = await self._record(user_id, course_id, transaction_uuid, transaction_code, amount_value, gateway)
            if payment.status == STATUS_APPLIED:
                return payment
        await self._apply(payment)
        return payment

    async def verify_v2(self, user_id: int, payment_data: EsewaPaymentDataSchema | str, course_id: int) -> dict:
        if isinstance(payment_data, str):
            try:
                payment_data = EsewaPaymentDataSchema.model_validate(decode_callback_data(payment_data))
            except ValueError:
                raise ValidationFailed("Invalid payment data")
        fields = payment_data.model_dump()

        missing = [name for name in REQUIRED_V2_FIELDS if not fields.get(name)]
        if missing:
            raise ValidationFailed("Missing required payment parameters", missing=missing)
        if fields["status"] != COMPLETE:
            raise PaymentRejected("Payment not completed", status=fields["status"])
        course = await self._get_course(course_id)

        if not verify_signature(fields, self.settings.esewa_secret_key):
            logger.warning("eSewa signature mismatch for transaction %s", fields["transaction_uuid"])
            if self.settings.esewa_enforce_signature:
                raise PaymentRejected("Invalid payment signature")

        payment = await self._settle(
            user_id,
            course,
            transaction_uuid=fields["transaction_uuid"],
            transaction_code=fields["transaction_code"],
            amount=fields["total_amount"],
            gateway=GATEWAY_ESEWA_V2,
            product_id=fields["transaction_uuid"],
        )
        return {
            "courseId": course_id,
            "isPremium": True,
            "premiumPurchasedAt": payment.applied_at,
            "transactionId": payment.transaction_code,
            "transactionUuid": payment.transaction_uuid,
        }

    async def verify_legacy(self, user_id: int, oid: str | None, amt: str | None, ref_id: str | None) -> dict:
        if not oid or not amt or not ref_id:
            raise ValidationFailed("Missing required payment parameters")

        # order id format: course_<courseId>_<timestamp>
        parts = oid.split("_")
        if len(parts) < 3 or parts[0] != "course" or not parts[1].isdigit():
            raise ValidationFailed("Invalid order ID format")
        course_id = int(parts[1])
        course = await self._get_course(course_id)

        payment = await self._settle(
            user_id,
            course,
            transaction_uuid=oid,
            transaction_code=ref_id,
            amount=amt,
            gateway=GATEWAY_ESEWA_LEGACY,
            product_id=oid,
        )
        return {
            "courseId": course_id,
            "isPremium": True,
            "premiumPurchasedAt": payment.applied_at,
            "orderId": oid,
        }
