"""Error taxonomy for symbolic matrices.

Shape and index errors are raised while a graph is being built and leave the
operand matrices untouched. Numeric failures (a singular inverse, NaN) cannot be
detected until the graph is evaluated, so they only surface from
:func:`symmat.symbolic.lower.evaluate`.
"""


class SymmatError(Exception):
    """Base class for all errors raised by symmat."""


class ShapeMismatch(SymmatError, ValueError):
    """Operand shapes are incompatible for the requested operation."""


class InvalidAccess(SymmatError, IndexError):
    """Row/column index or block extent outside the current matrix bounds."""


class StaleViewError(InvalidAccess):
    """A view was used after a later access call on the same matrix."""


class EvaluationError(SymmatError, ArithmeticError):
    """Numeric evaluation of an expression graph failed."""


class UnboundSymbolError(EvaluationError, KeyError):
    """A free symbol had no value bound at evaluation time."""

    def __str__(self):
        # KeyError quotes its argument, keep the message readable
        return str(self.args[0]) if self.args else ""
