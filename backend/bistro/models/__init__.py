from .accounts import Account
from .journal import JournalEntry, JournalPosting
from .partners import Partner
from .pos import Product, Order, OrderItem
from .billing import Invoice, Expense, DocumentSequence
from .payroll import Employee, PayrollRun, PayrollItem
from .auth import User, UserPermission, SessionToken, SecurityEvent
from .settings import Setting
from .fiscal import FiscalYear, FiscalYearActivity

__all__ = [
    'Account',
    'JournalEntry', 'JournalPosting',
    'Partner',
    'Product', 'Order', 'OrderItem',
    'Invoice', 'Expense', 'DocumentSequence',
    'Employee', 'PayrollRun', 'PayrollItem',
    'User', 'UserPermission', 'SessionToken', 'SecurityEvent',
    'Setting',
    'FiscalYear', 'FiscalYearActivity',
]
