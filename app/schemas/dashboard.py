from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from app.schemas.auth import UserOut
from app.schemas.loan import LoanDTO, RepaymentDTO
from app.schemas.payments import TransactionDTO, WalletDTO


class LoanSummary(BaseModel):
    loan: LoanDTO
    total_repaid: Decimal
    outstanding: Decimal
    repayments: list[RepaymentDTO]


class DashboardResponse(BaseModel):
    user: UserOut
    wallet: Optional[WalletDTO] = None
    loan_summary: Optional[LoanSummary] = None
    recent_transactions: list[TransactionDTO] = []
