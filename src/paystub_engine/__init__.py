"""Pay stub calculation engine for company payrolls."""

__version__ = "1.0.0"
