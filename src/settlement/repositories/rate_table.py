"""Directed exchange rates with reciprocal maintenance."""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from settlement.core.exceptions import RateNotFoundError, ValidationError
from settlement.repositories.ledger_store import LedgerStore
from settlement.schemas.rate import RateTableSnapshot

logger = logging.getLogger(__name__)


def reciprocal(rate: Decimal, precision: int) -> Decimal:
    """Return ``1 / rate`` rounded half-up to ``precision`` fractional digits.

    The division runs with enough working precision to hold every integer
    digit of the result, so very small rates do not overflow the context.

    Raises:
        ValidationError: If the reciprocal cannot be represented at all
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, abs(rate.adjusted()) + precision + 2)
        try:
            return (Decimal(1) / rate).quantize(
                Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP
            )
        except InvalidOperation:
            raise ValidationError(f"Rate {rate} has no representable reciprocal") from None


def lookup_rate(rates: RateTableSnapshot, base: str, counter: str) -> Decimal:
    """Resolve the rate for ``base -> counter`` in a rate table snapshot.

    Raises:
        RateNotFoundError: If the ordered pair has no entry
    """
    try:
        return rates[base][counter]
    except KeyError:
        raise RateNotFoundError(f"No exchange rate defined for {base}->{counter}") from None


class RateTable:
    """View over the ledger's rate record.

    Every read goes back to storage; nothing is cached between calls.

    Args:
        ledger: Ledger store owning the rate record
        precision: Fractional digits kept on the derived reverse rate
    """

    def __init__(self, ledger: LedgerStore, *, precision: int = 5) -> None:
        self._ledger = ledger
        self._precision = precision

    async def snapshot(self) -> RateTableSnapshot:
        return await self._ledger.get_rates()

    async def get_rate(self, base: str, counter: str) -> Decimal:
        return lookup_rate(await self._ledger.get_rates(), base, counter)

    async def set_rate(self, base: str, counter: str, rate: Decimal) -> Decimal:
        """Set ``base -> counter`` to ``rate`` and the reverse pair to its reciprocal.

        Both entries are written in one update of the rate record. The reverse
        entry is only approximately the inverse: it is rounded to the table's
        precision.

        Args:
            base: Base currency code
            counter: Counter currency code
            rate: Units of counter per unit of base, must be positive

        Returns:
            The reverse rate that was stored

        Raises:
            ValidationError: If ``rate`` is not positive or the pair is not
                two distinct currencies
        """
        if rate <= 0:
            raise ValidationError(f"Rate for {base}->{counter} must be positive, got {rate}")
        if base == counter:
            raise ValidationError(f"Cannot set a rate from {base} to itself")

        reverse = reciprocal(rate, self._precision)
        if reverse == 0:
            logger.warning(
                f"Reverse rate {counter}->{base} rounds to zero at {self._precision} digits; "
                f"exchanges from {counter} to {base} will pay out nothing"
            )

        def apply(rates: RateTableSnapshot) -> None:
            rates.setdefault(base, {})[counter] = rate
            rates.setdefault(counter, {})[base] = reverse

        await self._ledger.update_rates(apply)
        logger.info(f"Set rate {base}->{counter} = {rate} (reverse {counter}->{base} = {reverse})")
        return reverse
