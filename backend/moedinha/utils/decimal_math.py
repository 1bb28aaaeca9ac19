from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP


MONEY_QUANT = Decimal("0.01")
PCT_QUANT = Decimal("0.000001")
HALF = Decimal("0.5")


def money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def pct(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal | int | float | str) -> int:
    # Ties go toward +infinity, so -2.5 rounds to -2.
    return int((Decimal(str(value)) + HALF).to_integral_value(rounding=ROUND_FLOOR))


def as_json_number(value: Decimal | int | float | None) -> float | None:
    if value is None:
        return None
    return float(value)
