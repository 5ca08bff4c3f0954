
from .math_tools import MathTools
from .interval_math import IntervalMath

__all__ = ["MathTools", "IntervalMath"]
