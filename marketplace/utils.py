import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import bleach


def round_amount(value) -> Decimal:
    """Money is stored rounded half-up to 2 decimals."""
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Sanitize user-supplied free text (review bodies, store descriptions).

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Removes NULL bytes and collapses runs of blank lines
    - Trims whitespace; an empty result becomes None
    """
    if value is None:
        return None
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=[], strip=True)
    val = re.sub(r"\n{3,}", "\n\n", val)
    val = val.strip()
    return val or None


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return slug.strip("-")
