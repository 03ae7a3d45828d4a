"""
FINANCE App - Driver Pay Calculator for OTW

Pure function: trip & driver attributes in, itemized pay breakdown out.
No database access; safe to call from any request thread.

Formula (all amounts in cents):
    total = milePay + waitBonus + cashBonus + businessBonus + bonusPay + tips

    milePay       = serviceMiles * rate[tier]
    waitBonus     = max(0, waitMiles - 2) * 50
    cashBonus     = 750 if cash handling
    businessBonus = 500 for business accounts
    bonusPay      = bonus5Star if bonus eligible

When a trip carries no Service Miles, milePay is replaced by hourly pay:
    hourlyPay = round(activeMinutes * hourlyRate / 60)
"""

import math
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Dict, Optional

from core.numbers import non_negative_int, round_half_up_int

logger = logging.getLogger(__name__)


# ============================================
# PAY CONFIGURATION
# ============================================

DEFAULT_RATE_CENTS_PER_MILE: Dict[str, int] = {
    'PROBATION': 150,
    'STANDARD': 175,
    'ELITE': 200,
    'CONCIERGE': 225,
}
FALLBACK_TIER = 'STANDARD'

WAIT_GRACE_MILES = 2           # First two wait-miles are unpaid
WAIT_RATE_CENTS_PER_MILE = 50
CASH_HANDLING_BONUS_CENTS = 750
BUSINESS_ACCOUNT_BONUS_CENTS = 500


@dataclass(frozen=True)
class PayBreakdown:
    """Itemized driver pay. Every field is a non-negative integer of cents."""

    service_miles: int
    active_minutes: int
    rate_cents_per_service_mile: int
    hourly_rate_cents: int
    mile_pay_cents: int
    hourly_pay_cents: int
    wait_bonus_cents: int
    cash_bonus_cents: int
    business_bonus_cents: int
    bonus_pay_cents: int
    tips_cents: int
    total_pay_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


def resolve_rate(driver_tier: Optional[str], rate_table: Optional[Dict[str, int]] = None) -> int:
    """
    Cents per Service Mile for a tier.

    Unknown tiers are paid at the STANDARD rate.
    """
    table = rate_table or DEFAULT_RATE_CENTS_PER_MILE
    tier = str(driver_tier or '').upper()
    rate = table.get(tier)
    if rate is None:
        rate = table.get(FALLBACK_TIER, DEFAULT_RATE_CENTS_PER_MILE[FALLBACK_TIER])
    return non_negative_int(rate)


def calculate_driver_pay(
    service_miles=0,
    driver_tier: Optional[str] = FALLBACK_TIER,
    tips_cents=0,
    bonus_eligible: bool = False,
    bonus_5star_cents=0,
    wait_miles=0,
    cash_handling: bool = False,
    business_account: bool = False,
    active_minutes=0,
    hourly_rate_cents=0,
    rate_table: Optional[Dict[str, int]] = None,
) -> PayBreakdown:
    """
    Compute a driver's compensation for one completed trip.

    Never raises: negative, missing or malformed numbers count as zero.

    Args:
        service_miles: Billable Service Miles of the trip
        driver_tier: PROBATION / STANDARD / ELITE / CONCIERGE
        tips_cents: Customer tip
        bonus_eligible: 5-star rating, no complaint, bonus enabled
        bonus_5star_cents: Driver's configured 5-star bonus
        wait_miles: Wait-time adders expressed in Service Miles
        cash_handling: Driver handled cash for the customer
        business_account: Customer is on a business plan
        active_minutes: Closed time-log minutes (hourly fallback)
        hourly_rate_cents: Driver's hourly rate (hourly fallback)
        rate_table: Optional tier -> cents/mile override

    Returns:
        PayBreakdown with every line item and the total
    """
    miles = non_negative_int(service_miles)
    minutes = non_negative_int(active_minutes)
    hourly_rate = non_negative_int(hourly_rate_cents)
    tips = non_negative_int(tips_cents)
    bonus_5star = non_negative_int(bonus_5star_cents)
    waited = non_negative_int(wait_miles)

    rate = resolve_rate(driver_tier, rate_table)

    mile_pay = miles * rate
    hourly_pay = 0
    if miles == 0:
        hourly_pay = round_half_up_int(Decimal(minutes * hourly_rate) / 60)

    wait_bonus = max(0, waited - WAIT_GRACE_MILES) * WAIT_RATE_CENTS_PER_MILE
    cash_bonus = CASH_HANDLING_BONUS_CENTS if cash_handling else 0
    business_bonus = BUSINESS_ACCOUNT_BONUS_CENTS if business_account else 0
    bonus_pay = bonus_5star if bonus_eligible else 0

    total = mile_pay + hourly_pay + wait_bonus + cash_bonus + business_bonus + bonus_pay + tips

    logger.debug(
        f"[PAY] {miles} SM x {rate}¢ | hourly {hourly_pay}¢ ({minutes} min) | "
        f"adders {wait_bonus + cash_bonus + business_bonus}¢ | bonus {bonus_pay}¢ | total {total}¢"
    )

    return PayBreakdown(
        service_miles=miles,
        active_minutes=minutes,
        rate_cents_per_service_mile=rate,
        hourly_rate_cents=hourly_rate,
        mile_pay_cents=mile_pay,
        hourly_pay_cents=hourly_pay,
        wait_bonus_cents=wait_bonus,
        cash_bonus_cents=cash_bonus,
        business_bonus_cents=business_bonus,
        bonus_pay_cents=bonus_pay,
        tips_cents=tips,
        total_pay_cents=total,
    )


def active_minutes_between(start_time, end_time) -> int:
    """Whole minutes of a time log, rounded up (61s -> 2 min)."""
    seconds = (end_time - start_time).total_seconds()
    return max(0, math.ceil(seconds / 60))
