"""
Subscription plan catalogue. Prices come from the settings table, then the
environment, then the defaults below.
"""
from decimal import Decimal, InvalidOperation

from utils.settings_helper import resolve_config

CURRENCY = 'ETB'

PLANS = (
    {
        'name': 'Free',
        'default_price': '0',
        'env_var': None,
        'features': ['Post 1 ad per month', 'Basic visibility', 'Standard support'],
    },
    {
        'name': 'Standard',
        'default_price': '100',
        'env_var': 'STANDARD_PLAN_PRICE',
        'features': ['Post 10 ads', 'Featured priority', 'Chat access'],
    },
    {
        'name': 'Premium',
        'default_price': '200',
        'env_var': 'PREMIUM_PLAN_PRICE',
        'features': ['Unlimited posts', 'Top placement', '24/7 support'],
    },
)


def price_setting_key(plan_name):
    return f"{plan_name.lower()}_plan_price"


def _find_plan(plan_name):
    if not plan_name:
        return None
    for plan in PLANS:
        if plan['name'].lower() == str(plan_name).strip().lower():
            return plan
    return None


def get_plan_price(plan):
    raw = resolve_config(price_setting_key(plan['name']), plan['env_var'], default=plan['default_price'])
    try:
        return Decimal(str(raw)).quantize(Decimal('0.01'))
    except InvalidOperation:
        return Decimal(plan['default_price']).quantize(Decimal('0.01'))


def get_plan(plan_name):
    """Plan dict with its current price, or None for unknown names"""
    plan = _find_plan(plan_name)
    if plan is None:
        return None
    price = get_plan_price(plan)
    return {
        'name': plan['name'],
        'price': price,
        'currency': CURRENCY,
        'price_label': f"{CURRENCY} {price.normalize():f} / month",
        'features': list(plan['features']),
        'is_paid': price > 0,
    }


def get_plans():
    return [get_plan(plan['name']) for plan in PLANS]


def plan_to_dict(plan):
    data = dict(plan)
    data['price'] = float(plan['price'])
    return data
