from .base import Base
from .agent import Agent, AgentStatus
from .agent_application import AgentApplication, AgentApplicationStatus
from .catalog import AgentMsp, CardDesign, CardDesignStatus
from .customer import Customer
from .order import Order, OrderStatus, PaymentStatus
from .audit import OrderStatusEvent
from .commission_ledger import CommissionEntry, CommissionKind
from .payout import Expense, ExpenseCategory, PaymentMethod, Payout, PayoutStatus
