"""tally: net-worth tracking, loan amortization and portfolio risk analytics."""

__version__ = "0.1.0"
