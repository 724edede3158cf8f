import uuid
from dataclasses import dataclass
from decimal import Decimal

from api.models import Agent
from services.errors import ValidationError
from utils.money import to_money

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CommissionBreakdown:
    commission_amount: Decimal
    override_commission: Decimal
    override_agent_id: uuid.UUID | None
    is_below_msp: bool


class CommissionCalculator:
    """Freezes what an order pays its agent and that agent's recruiter.

    The agent earns its flat ``base_commission`` per card regardless of markup.
    The recruiter earns ``override_percent`` of this order's sale price, one
    level up only.
    """

    def __init__(self, override_percent: Decimal = Decimal("2")):
        if override_percent < 0 or override_percent > 100:
            raise ValueError("override_percent must be between 0 and 100")
        self.override_percent = Decimal(override_percent)

    def calculate(
        self,
        sale_price: Decimal,
        msp_at_order: Decimal,
        agent: Agent | None,
        parent: Agent | None = None,
    ) -> CommissionBreakdown:
        sale_price = to_money(sale_price)
        msp_at_order = to_money(msp_at_order)
        if sale_price <= 0:
            raise ValidationError("Sale price must be greater than zero")

        is_below_msp = sale_price < msp_at_order
        if agent is None:
            return CommissionBreakdown(ZERO, ZERO, None, is_below_msp)

        commission = to_money(agent.base_commission)
        if parent is None:
            return CommissionBreakdown(commission, ZERO, None, is_below_msp)

        override = to_money(sale_price * self.override_percent / 100)
        return CommissionBreakdown(commission, override, parent.id, is_below_msp)
