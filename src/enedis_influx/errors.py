"""Error kinds raised by the pricing engine."""


class PricingError(Exception):
    """Base exception for pricing engine errors."""
    pass


class ConfigurationError(PricingError):
    """Malformed or missing tariff/period configuration. Always fatal."""
    pass


class InvalidReading(PricingError):
    """A reading with a negative or non-finite energy value."""
    pass


class PointConstructionError(PricingError):
    """An output point failed schema validation. The reading is skipped."""
    pass


class AggregationError(PricingError):
    """Summation produced a non-finite total. Always fatal."""
    pass
