"""Custom exceptions for the consumption planner"""

class ConsumptionPlannerError(Exception):
    """Base exception for all consumption planner errors"""
    pass


class ConfigurationError(ConsumptionPlannerError):
    """Raised when configuration is invalid"""
    pass


class ValidationError(ConsumptionPlannerError):
    """Raised when input validation fails"""
    pass


class NotFoundError(ConsumptionPlannerError):
    """Raised when a requested record does not exist"""
    pass


class InsufficientDataError(ConsumptionPlannerError):
    """Raised when there is not enough history to compute a result"""
    pass


class ConstraintConflictError(ConsumptionPlannerError):
    """Raised when constraints eliminate every candidate scenario"""
    pass


class PricingError(ConsumptionPlannerError):
    """Raised when a rate cannot be resolved for an instance type"""
    def __init__(self, instance_type: str, message: str = "no rate available"):
        self.instance_type = instance_type
        super().__init__(f"[{instance_type}] {message}")
