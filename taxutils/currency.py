# taxutils/currency.py
from typing import Union


def clean_currency(val) -> float:
    """
    Cleans a currency string (e.g., "$140,000.00") into a float (140000.0).
    Accounting negatives such as "($3,000)" are returned as -3000.0.
    """
    if val is None or val == "":
        return 0.0
    if isinstance(val, (int, float)):
        return float(val)

    cleaned_val = str(val).replace('$', '').replace(',', '').strip()
    negative = cleaned_val.startswith('(') and cleaned_val.endswith(')')
    cleaned_val = cleaned_val.strip('()').strip()
    if not cleaned_val:
        return 0.0
    try:
        number = float(cleaned_val)
    except ValueError:
        return 0.0
    return -number if negative else number


def clean_percent(raw_input: Union[str, float, int, None]) -> Union[float, None]:
    """
    Cleans raw input (e.g., '0.23', '23%', '23') and converts it to a float
    where 1.0 represents 100%.
    """
    if raw_input is None:
        return None

    if isinstance(raw_input, (float, int)):
        # A number between 1 and 100 is a percentage, e.g. 23 -> 0.23
        if 1.0 <= float(raw_input) <= 100.0:
            return float(raw_input) / 100.0
        return float(raw_input)

    s = str(raw_input).strip()
    if not s:
        return None

    s = s.replace('%', '').replace(',', '').replace(' ', '').strip()
    try:
        numeric_val = float(s)
    except ValueError:
        return None

    if 1.0 <= numeric_val <= 100.0:
        return numeric_val / 100.0
    return numeric_val


def format_percent_output(value: Union[float, None], decimal_places: int = 1) -> str:
    """Formats a float (0.23) to a display string ('23.0%')."""
    if value is None:
        return ""
    return f"{float(value) * 100:.{decimal_places}f}%"


def format_currency_output(val, decimals=0):
    """
    Formats a float/int into a clean currency string ($1,234,567).

    Args:
        val (float): The numerical value to format.
        decimals (int): Number of decimal places.
    """
    if val is None:
        val = 0.0
    if val < 0:
        return f"-${-val:,.{decimals}f}"
    return f"${val:,.{decimals}f}"
