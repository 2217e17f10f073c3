from decimal import Decimal, ROUND_HALF_UP, ROUND_HALF_DOWN


def round_half_up(value, digits: int = 0):
    """
    Round halves towards positive infinity (2.5 -> 3, -2.5 -> -2), the
    convention the clinical tables were built with.
    Returns int when digits == 0, float otherwise.
    """
    quant = Decimal(1).scaleb(-digits)
    d = Decimal(str(value))
    if d < 0:
        rounded = -((-d).quantize(quant, rounding=ROUND_HALF_DOWN))
    else:
        rounded = d.quantize(quant, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    return float(rounded)
