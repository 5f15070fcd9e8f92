from .expr import Constant, Expr, Shape, to_expr


class Abs(Expr):
    """Elementwise absolute value.

    Attributes:
        operand: Expression to take the absolute value of
    """

    def __init__(self, operand):
        self.operand = to_expr(operand)
        self._shape = self.operand.shape

    def children(self):
        return [self.operand]

    def _canonicalize(self) -> "Expr":
        operand = self.operand.canonicalize()
        if isinstance(operand, Constant):
            return Constant(abs(operand.value))
        if isinstance(operand, Abs):
            return operand
        return Abs(operand)

    def check_shape(self) -> Shape:
        return self.operand.shape

    def __repr__(self):
        return f"abs({self.operand!r})"
