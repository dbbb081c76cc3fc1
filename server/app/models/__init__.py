from .role import Role  # noqa: F401
from .member import Member  # noqa: F401
from .user import User  # noqa: F401
from .bank_transaction import BankTransaction  # noqa: F401
from .transaction import FinancialTransaction  # noqa: F401
from .ledger_entry import LedgerEntry  # noqa: F401
from .memo_match import MemoMatch  # noqa: F401
from .member_payment import YearlyPaymentSnapshot  # noqa: F401
