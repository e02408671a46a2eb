from __future__ import annotations

SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


def currency_symbol(currency: str = "INR") -> str:
    return SYMBOLS.get(currency.upper(), currency.upper() + " ")


def format_currency(value: float, currency: str = "INR", digits: int = 2) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(value):,.{digits}f}"
