"""Exceptions raised by the CFD solver."""


class CFDError(Exception):
    """Base class for all solver errors."""


class GeometryError(CFDError, ValueError):
    """Grid or obstacle parameters that do not describe a valid domain."""


class ReynoldsStabilityError(CFDError, ValueError):
    """Rescaled Reynolds number outside [0, limit), or not finite."""

    def __init__(self, re_scaled: float, limit: float):
        self.re_scaled = re_scaled
        self.limit = limit
        super().__init__(
            f"Rescaled Reynolds number {re_scaled:g} must be finite, non-negative "
            f"and below {limit:g}; "
            "the vorticity relaxation diverges otherwise"
        )


class NonFiniteResidualError(CFDError, ArithmeticError):
    """Residual became NaN or infinite during the iteration loop."""

    def __init__(self, iteration: int, error: float):
        self.iteration = iteration
        self.error = error
        super().__init__(f"Non-finite residual ({error}) at iteration {iteration}")
