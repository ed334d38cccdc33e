"""HTTP adapter for the paystub engine."""
