from decimal import Decimal

from tortoise import fields

from launchpad.core.constants import AMOUNT_DIGITS


class AmountField(fields.DecimalField):
    """
    Unsigned integer amount wider than BIGINT.

    Stored as NUMERIC(40, 0) and surfaced as a Python ``int``. Only compare
    amounts in Python: on SQLite the column is text, so ordering and range
    filters on it are lexical.

    Conversions never go through ``Decimal.quantize``, whose default context
    keeps only 28 significant digits.
    """

    skip_to_python_if_native = False

    def __init__(self, **kwargs):
        kwargs.setdefault("default", 0)
        super().__init__(max_digits=AMOUNT_DIGITS, decimal_places=0, **kwargs)

    def to_db_value(self, value, instance):
        if value is None:
            return None
        value = Decimal(int(value))
        self.validate(value)
        return value

    def to_python_value(self, value):
        if value is None:
            return None
        if isinstance(value, (int, Decimal)):
            return int(value)
        return int(Decimal(str(value)))
