"""stackforge reviewer -- specialist review checks and finding aggregation."""

from stackforge.reviewer.aggregator import aggregate, print_report
from stackforge.reviewer.models import Location, ReviewFinding, ReviewReport, Severity

__all__ = [
    "Location",
    "ReviewFinding",
    "ReviewReport",
    "Severity",
    "aggregate",
    "print_report",
]
