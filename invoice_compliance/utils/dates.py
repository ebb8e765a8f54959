"""Date parsing helpers for extracted invoice fields"""

import re
from datetime import date, datetime
from typing import Optional

DATE_FORMATS = [
    '%Y-%m-%d',              # 2024-03-04
    '%d-%m-%Y',              # 04-03-2024
    '%m/%d/%Y',              # 03/04/2024
    '%d/%m/%Y',              # 04/03/2024
    '%Y/%m/%d',              # 2024/03/04
    '%d-%b-%Y',              # 04-Mar-2024
    '%d-%B-%Y',              # 04-March-2024
    '%b %d, %Y',             # Mar 04, 2024
    '%B %d, %Y',             # March 04, 2024
    '%d %b %Y',              # 04 Mar 2024
    '%d %B %Y',              # 04 March 2024
    '%Y-%m-%dT%H:%M:%S',     # ISO with time
    '%Y-%m-%dT%H:%M:%SZ',    # ISO with time and Z
    '%Y-%m-%dT%H:%M:%S.%f',  # ISO with fractional seconds
    '%Y-%m-%dT%H:%M:%S.%fZ',
]

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12
}


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """
    Parse an extracted date string into a date object.

    Accepts the formats the extraction model and printed invoices commonly
    produce ('2024-03-04', '04-Mar-2024', 'March 04, 2024', ISO timestamps).
    Returns None when the value is empty or not recognisable as a date.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    date_str = date_str.strip()
    if not date_str or date_str.lower() in ('null', 'none'):
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).date()
        except (ValueError, TypeError):
            continue

    # DD-MMM-YYYY / DD/Month/YYYY with loose month spelling
    match = re.match(r'(\d{1,2})[-/](\w{3,9})[-/](\d{4})$', date_str, re.IGNORECASE)
    if match:
        month = MONTHS.get(match.group(2).lower()[:3])
        if month:
            try:
                return date(int(match.group(3)), month, int(match.group(1)))
            except ValueError:
                return None

    return None


def one_year_before(day: date) -> date:
    """Same calendar day one year earlier (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        return day.replace(year=day.year - 1, day=28)
