import pandas as pd
import QuantLib as ql


def to_ql_date(d):
    """Convert common Python date representations into QuantLib.Date."""
    if isinstance(d, ql.Date):
        return d
    if isinstance(d, str):
        d = pd.to_datetime(d).date()
    return ql.Date(d.day, d.month, d.year)


class QuantLibForwardCurve:
    """Forward curve view of a QuantLib yield term structure.

    ``forward(time)`` is the simply compounded forward rate over
    ``[time, time + period_length]`` (year fractions from the curve's
    reference date). This is the capability the blended local volatility
    model uses for its reference level.

    Parameters
    ----------
    term_structure : ql.YieldTermStructure or ql.YieldTermStructureHandle
        Discount curve. A bare curve is wrapped into a handle.
    period_length : float
        Length of the forward period in years.
    """

    def __init__(self, term_structure, period_length=0.5):
        if isinstance(term_structure, ql.YieldTermStructureHandle):
            self.handle = term_structure
        else:
            self.handle = ql.YieldTermStructureHandle(term_structure)
        self.period_length = float(period_length)
        if self.period_length <= 0.0:
            raise ValueError("period_length must be positive, got %r" % self.period_length)

    @classmethod
    def flat(cls, rate, period_length=0.5):
        """Flat continuously compounded curve at ``rate`` (Act/365 fixed)."""
        curve = ql.FlatForward(0, ql.NullCalendar(), float(rate), ql.Actual365Fixed())
        curve.enableExtrapolation()
        return cls(curve, period_length)

    @classmethod
    def from_discount_factors(cls, dates, discount_factors, period_length=0.5, day_count=None, calendar=None):
        """Curve interpolating discount factors; the first date is the reference date.

        The first discount factor is expected to be 1.0.
        """
        day_count = day_count or ql.Actual365Fixed()
        calendar = calendar or ql.NullCalendar()

        dates = [to_ql_date(d) for d in dates]
        dfs = [float(x) for x in discount_factors]
        if len(dates) != len(dfs):
            raise ValueError("Got %d dates and %d discount factors." % (len(dates), len(dfs)))
        if len(dates) < 2:
            raise ValueError("A discount curve needs at least two nodes.")

        curve = ql.DiscountCurve(dates, dfs, day_count, calendar)
        curve.enableExtrapolation()
        return cls(curve, period_length)

    def discount_factor(self, time):
        return float(self.handle.currentLink().discount(float(time), True))

    def forward(self, time):
        t = max(float(time), 0.0)
        rate = self.handle.currentLink().forwardRate(t, t + self.period_length, ql.Simple, ql.Annual, True)
        return float(rate.rate())
