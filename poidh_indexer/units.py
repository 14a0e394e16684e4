"""Native currency unit helpers"""
from decimal import Decimal, localcontext
from typing import Union

WEI_PER_ETHER = 10 ** 18

def to_ether(wei: Union[int, str]) -> Decimal:
    """Exact conversion of a wei amount to whole native units"""
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(int(wei)) / WEI_PER_ETHER

def format_ether(wei: Union[int, str]) -> str:
    """Render wei as a plain decimal string without trailing zeros, e.g. 1500000000000000000 -> '1.5'"""
    value = int(wei)
    sign = '-' if value < 0 else ''
    whole, fraction = divmod(abs(value), WEI_PER_ETHER)
    if not fraction:
        return f"{sign}{whole}"
    return f"{sign}{whole}." + f"{fraction:018d}".rstrip('0')

def to_usd(wei: Union[int, str], price: Decimal) -> float:
    """USD value of a wei amount at the given native price"""
    with localcontext() as ctx:
        ctx.prec = 80
        return float(to_ether(wei) * Decimal(price))
