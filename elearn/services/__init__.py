from elearn.services.accounts import AccountService
from elearn.services.courses import CourseService
from elearn.services.esewa import EsewaClient
from elearn.services.mailer import Mailer
from elearn.services.payments import PaymentService, reconcile_pending_payments
from elearn.services.progress import ProgressService

__all__ = [
    "AccountService",
    "CourseService",
    "EsewaClient",
    "Mailer",
    "PaymentService",
    "ProgressService",
    "reconcile_pending_payments",
]
