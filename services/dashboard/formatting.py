"""Display helpers shared by dashboard views."""

from urllib.parse import urlencode

DASHBOARD_PATH = "/dashboard"
INVOICES_PATH = "/dashboard/invoices"
CUSTOMERS_PATH = "/dashboard/customers"


def format_currency(amount: float) -> str:
    """Render an amount in minor units (cents) as a US dollar string.

    >>> format_currency(123456)
    '$1,234.56'
    """
    value = amount / 100
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def build_search_location(pathname: str, params: dict[str, str], term: str) -> str:
    """Build the location a search box navigates to.

    A new search always starts on page 1; an empty term drops the ``query``
    parameter entirely. Other parameters are kept.

    Args:
        pathname: Current path, e.g. ``/dashboard/invoices``
        params: Current query parameters
        term: Search term typed by the user

    Returns:
        Path with the updated query string
    """
    updated = dict(params)
    updated["page"] = "1"
    if term:
        updated["query"] = term
    else:
        updated.pop("query", None)
    return f"{pathname}?{urlencode(updated)}"
