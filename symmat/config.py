from dataclasses import dataclass


@dataclass
class EvaluationConfig:

    def __init__(self, enable_x64: bool = True, jit: bool = False, check_finite: bool = False):
        """
        Configuration class for numeric evaluation of expression graphs.

        Main arguments:
        These are the arguments most commonly used day-to-day.

        Args:
            enable_x64 (bool): Switches JAX to double precision before lowering. Rigid-body
                quantities routinely mix scales that single precision cannot hold. Defaults to True.
            jit (bool): Wrap lowered functions with `jax.jit`. Worth it when the same graph is
                evaluated many times, wasteful for one-shot evaluation. Defaults to False.

        Other arguments:
        These arguments are less frequently used, and for most purposes you shouldn't need to understand these.

        Args:
            check_finite (bool): Raise `EvaluationError` when a result contains NaN or inf, e.g.
                after inverting a singular matrix. Defaults to False.
        """
        self.enable_x64 = enable_x64
        self.jit = jit
        self.check_finite = check_finite


DEFAULT_CONFIG = EvaluationConfig()
