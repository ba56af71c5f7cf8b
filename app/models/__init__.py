from app.models.audit_log import AuditLog
from app.models.bank_details import BankDetails
from app.models.guarantor import Guarantor
from app.models.identity_verification import IdentityVerification
from app.models.loan import Loan
from app.models.repayment import Repayment
from app.models.transaction import Transaction
from app.models.user import User
from app.models.wallet import Wallet

__all__ = [
    "AuditLog",
    "BankDetails",
    "Guarantor",
    "IdentityVerification",
    "Loan",
    "Repayment",
    "Transaction",
    "User",
    "Wallet",
]
