from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple

import numpy as np

from app.schemas.transcript import DisplayMode, RankedItem

RADIUS_BY_MODE = {
    DisplayMode.word: 10.0,
    DisplayMode.sentence: 8.0,
}


class SphereLayout:
    """Places ranked items at uniform random points on a sphere.

    Placement is stateless per item. Pass a seeded `numpy.random.Generator`
    (or `seed`) to make it reproducible.
    """

    def __init__(
        self,
        radius: float = 10.0,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.radius = float(radius)
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    @classmethod
    def for_mode(cls, mode: DisplayMode, rng: Optional[np.random.Generator] = None) -> "SphereLayout":
        return cls(radius=RADIUS_BY_MODE[DisplayMode(mode)], rng=rng)

    def sample_point(self) -> Tuple[float, float, float]:
        u, v = self._rng.random(2)
        theta = 2.0 * math.pi * u
        phi = math.acos(2.0 * v - 1.0)
        x = self.radius * math.sin(phi) * math.cos(theta)
        y = self.radius * math.sin(phi) * math.sin(theta)
        z = self.radius * math.cos(phi)
        return (float(x), float(y), float(z))

    def place(self, items: Iterable[RankedItem]) -> List[RankedItem]:
        return [item.model_copy(update={"position": self.sample_point()}) for item in items]
