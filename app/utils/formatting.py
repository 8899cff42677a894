from app.core.config import settings

CURRENCY_SYMBOLS = {"COP": "$", "USD": "US$", "EUR": "€"}


def format_amount(amount: int, currency: str = None) -> str:
    """Render an integer amount for display, es-CO style: ``$ 100.000``."""
    currency = currency or settings.CURRENCY
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    sign = "-" if amount < 0 else ""
    digits = f"{abs(int(amount)):,}".replace(",", ".")
    return f"{sign}{symbol} {digits}"
