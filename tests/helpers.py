from typing import List

import numpy as np


def is_non_decreasing(values: List[float]) -> bool:
    return all(a <= b for a, b in zip(values, values[1:]))


class ScriptedRng:
    """Stands in for numpy's Generator, replaying fixed uniforms."""

    def __init__(self, values):
        self.values = list(values)

    def random(self, size):
        count = int(np.prod(size))
        out = np.array(self.values[:count], dtype=float).reshape(size)
        del self.values[:count]
        return out
