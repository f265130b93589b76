"""Price comparison and threshold logic."""

from price_monitor.models import AlertDecision, TrackedItem


def meets_threshold(item: TrackedItem, previous_price: float, new_price: float) -> bool:
    """
    Return True if a price drop is big enough to report.

    Either the absolute drop or the percentage drop reaching its minimum is
    enough. Unset minimums are 0, so any drop passes.
    """
    thresholds = item.thresholds
    if thresholds is None:
        return True
    drop = abs(new_price - previous_price)
    percent = (drop / previous_price) * 100 if previous_price else 100.0
    return drop >= (thresholds.min_amount or 0) or percent >= (thresholds.min_percent or 0)


def evaluate(item: TrackedItem, previous_price: float | None, new_price: float) -> AlertDecision:
    """
    Decide whether a newly scraped price merits an alert.

    Thresholds only dampen drops; any increase alerts.
    """
    if previous_price is None:
        return AlertDecision.BASELINE
    if new_price == previous_price:
        return AlertDecision.NO_CHANGE
    if new_price > previous_price:
        return AlertDecision.ALERT
    if meets_threshold(item, previous_price, new_price):
        return AlertDecision.ALERT
    return AlertDecision.BELOW_THRESHOLD
