"""
Custom exception hierarchy for the soilflow system.
Provides clear error categories and rich error information.
"""
from typing import Optional, Any, Dict
from dataclasses import dataclass


@dataclass
class ErrorContext:
    """Context information for errors"""
    cell_id: Optional[str] = None
    timestep: Optional[int] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class SoilFlowError(Exception):
    """Base exception for all soilflow errors"""

    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()

    def __str__(self) -> str:
        context_str = ""
        if self.context.cell_id is not None:
            context_str += f" [Cell: {self.context.cell_id}]"
        if self.context.timestep is not None:
            context_str += f" [Step: {self.context.timestep}]"
        if self.context.component:
            context_str += f" [Component: {self.context.component}]"

        return f"{self.__class__.__name__}: {self.message}{context_str}"


# Physics model errors
class PhysicsModelError(SoilFlowError):
    """Base class for physics model errors"""
    pass


class WaterBalanceError(PhysicsModelError):
    """Water balance violation"""
    pass


class ParameterError(PhysicsModelError):
    """Invalid model parameters"""
    pass


class ColumnPreconditionError(ParameterError):
    """
    Soil column inputs violate a precondition of the flow routines.

    Carries the name of the violated precondition so the caller can report
    which check failed for which cell.
    """

    def __init__(
        self,
        message: str,
        precondition: str,
        context: Optional[ErrorContext] = None
    ):
        super().__init__(message, context)
        self.precondition = precondition


class SaturatedFlowRemainderError(PhysicsModelError):
    """
    Saturated-zone flow left a negative remainder after redistribution.

    Fatal: the column could not supply the requested extraction, which
    points at inconsistent upstream data (storage parameters, table depth,
    basal areas) rather than at a recoverable condition.
    """

    def __init__(
        self,
        message: str,
        remainder: float,
        context: Optional[ErrorContext] = None
    ):
        super().__init__(message, context)
        self.remainder = remainder


# Configuration errors
class ConfigurationError(SoilFlowError):
    """Configuration error"""
    pass
