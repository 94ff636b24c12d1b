"""Default scenario inputs and the built-in rate table payload."""

from __future__ import annotations


DEFAULTS = {
    "product": "both",
    "imob_plan": "k",
    "loc_plan": "k",
    "addons": {
        "leads": True,
        "inteligencia": False,
        "assinatura": True,
        "pay": False,
        "seguros": False,
        "cash": False,
    },
    "frequency": "annual",
    "imob_users": 7,
    "closings_per_month": 10,
    "leads_per_month": 100,
    "contracts_under_management": 150,
    "new_contracts_per_month": 10,
    "wants_whatsapp": False,
    "vip_support": False,
    "dedicated_cs": False,
    "training": False,
    "charges_boleto_to_tenant": False,
    "boleto_charge_amount": 0.0,
    "charges_split_to_owner": False,
    "split_charge_amount": 0.0,
}


def _flat(price: float) -> list[dict]:
    return [{"start": 1, "end": None, "price": price}]


_LEADS_TIERS = [
    {"start": 1, "end": 200, "price": 1.50},
    {"start": 201, "end": 350, "price": 1.30},
    {"start": 351, "end": 1000, "price": 1.10},
    {"start": 1001, "end": None, "price": 0.90},
]

_SIGNATURE_TIERS = [
    {"start": 1, "end": 20, "price": 1.80},
    {"start": 21, "end": 40, "price": 1.70},
    {"start": 41, "end": None, "price": 1.50},
]

_PAY_TIERS = {
    "prime": _flat(4.00),
    "k": [
        {"start": 1, "end": 250, "price": 4.00},
        {"start": 251, "end": None, "price": 3.50},
    ],
    "k2": [
        {"start": 1, "end": 250, "price": 4.00},
        {"start": 251, "end": 500, "price": 3.50},
        {"start": 501, "end": None, "price": 3.00},
    ],
}


DEFAULT_RATE_TABLE = {
    "version": "2026.02",
    "frequency_multipliers": {
        "monthly": 1.25,
        "semiannual": 1.111,
        "annual": 1.0,
        "biennial": 0.75,
    },
    "cycle_months": {"monthly": 1, "semiannual": 6, "annual": 12, "biennial": 24},
    "rounding_digit": 7,
    "prepaid_discount_multiplier": 0.90,
    "prepaid_frequencies": ["annual", "biennial"],
    "training_annual_price": 166,
    "seguros_revenue_per_contract": 10.0,
    "products": {
        "imob": {
            "name": "Imob",
            "implementation_fee": 1497,
            "plans": {
                "prime": {
                    "name": "Prime",
                    "annual_price": 247,
                    "included_units": 2,
                    "includes_premium_services": False,
                },
                "k": {
                    "name": "K",
                    "annual_price": 497,
                    "included_units": 7,
                    "includes_premium_services": True,
                },
                "k2": {
                    "name": "K2",
                    "annual_price": 1197,
                    "included_units": 15,
                    "includes_premium_services": True,
                    "training_online": 2,
                    "training_in_person": 1,
                },
            },
        },
        "loc": {
            "name": "Locação",
            "implementation_fee": 1497,
            "plans": {
                "prime": {
                    "name": "Prime",
                    "annual_price": 247,
                    "included_units": 100,
                    "includes_premium_services": False,
                    "extra_allowances": {"boletos": 2, "splits": 2},
                },
                "k": {
                    "name": "K",
                    "annual_price": 497,
                    "included_units": 150,
                    "includes_premium_services": True,
                    "extra_allowances": {"boletos": 5, "splits": 5},
                },
                "k2": {
                    "name": "K2",
                    "annual_price": 1197,
                    "included_units": 500,
                    "includes_premium_services": True,
                    "training_online": 2,
                    "training_in_person": 1,
                    "extra_allowances": {"boletos": 15, "splits": 15},
                },
            },
        },
    },
    "addons": {
        "leads": {
            "name": "Leads",
            "annual_price": 497,
            "implementation_fee": 497,
            "included_units": 100,
            "available_for": ["imob"],
            "shared": False,
        },
        "inteligencia": {
            "name": "Inteligência",
            "annual_price": 297,
            "implementation_fee": 497,
            "available_for": ["imob", "loc"],
            "shared": True,
        },
        "assinatura": {
            "name": "Assinatura",
            "annual_price": 37,
            "implementation_fee": 0,
            "included_units": 15,
            "available_for": ["imob", "loc"],
            "shared": True,
        },
        "pay": {
            "name": "Pay",
            "annual_price": 0,
            "available_for": ["loc"],
            "recurring_label": "post_paid",
        },
        "seguros": {
            "name": "Seguros",
            "annual_price": 0,
            "available_for": ["loc"],
            "recurring_label": "post_paid",
        },
        "cash": {
            "name": "Cash",
            "annual_price": 0,
            "available_for": ["loc"],
            "recurring_label": "free",
        },
    },
    "premium_services": {
        "vip_support": {"name": "Suporte VIP", "monthly_price": 97},
        "dedicated_cs": {"name": "CS Dedicado", "monthly_price": 297},
    },
    "bundles": {
        "imob_start": {
            "name": "Kombo Imob Start",
            "discount": 0.10,
            "products": ["imob"],
            "included_addons": ["leads", "assinatura"],
            "includes_premium_services": False,
            "includes_training": False,
            "free_implementations": ["leads"],
        },
        "imob_pro": {
            "name": "Kombo Imob Pro",
            "discount": 0.15,
            "products": ["imob"],
            "included_addons": ["leads", "inteligencia", "assinatura"],
            "includes_premium_services": True,
            "includes_training": True,
            "free_implementations": ["leads", "inteligencia"],
        },
        "locacao_pro": {
            "name": "Kombo Locação Pro",
            "discount": 0.10,
            "products": ["loc"],
            "included_addons": ["inteligencia", "assinatura"],
            "includes_premium_services": True,
            "includes_training": True,
            "free_implementations": ["inteligencia"],
        },
        "core_gestao": {
            "name": "Kombo Core Gestão",
            "discount": 0.0,
            "products": ["imob", "loc"],
            "included_addons": [],
            "includes_premium_services": True,
            "includes_training": False,
            "free_implementations": ["imob"],
        },
        "elite": {
            "name": "Kombo Elite",
            "discount": 0.20,
            "products": ["imob", "loc"],
            "included_addons": ["leads", "inteligencia", "assinatura", "pay", "seguros", "cash"],
            "includes_premium_services": True,
            "includes_training": True,
            "free_implementations": ["imob", "leads", "inteligencia"],
        },
    },
    "usage": {
        "users": {
            "tier_source": "imob",
            "tiers": {
                "prime": _flat(57),
                "k": [
                    {"start": 1, "end": 5, "price": 47},
                    {"start": 6, "end": None, "price": 37},
                ],
                "k2": [
                    {"start": 1, "end": 10, "price": 37},
                    {"start": 11, "end": 100, "price": 27},
                    {"start": 101, "end": None, "price": 17},
                ],
            },
        },
        "contracts": {
            "tier_source": "loc",
            "tiers": {
                "prime": _flat(3.00),
                "k": [
                    {"start": 1, "end": 250, "price": 3.00},
                    {"start": 251, "end": None, "price": 2.50},
                ],
                "k2": [
                    {"start": 1, "end": 250, "price": 3.00},
                    {"start": 251, "end": 500, "price": 2.50},
                    {"start": 501, "end": None, "price": 2.00},
                ],
            },
        },
        "whatsapp_leads": {
            "tier_source": "imob",
            "tiers": {"prime": _LEADS_TIERS, "k": _LEADS_TIERS, "k2": _LEADS_TIERS},
        },
        "signatures": {
            "tier_source": "any",
            "tiers": {"prime": _SIGNATURE_TIERS, "k": _SIGNATURE_TIERS, "k2": _SIGNATURE_TIERS},
        },
        "boletos": {"tier_source": "loc", "tiers": _PAY_TIERS},
        "splits": {"tier_source": "loc", "tiers": _PAY_TIERS},
    },
}
