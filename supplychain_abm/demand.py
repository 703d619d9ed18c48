"""
Demand model for the supply chain ABM.

Each consumer carries a hidden willingness-to-buy curve drawn from one of
five families. The curve is a tagged variant (``DemandCurve``) evaluated by
one function per family, looked up in ``CURVE_EVALUATORS``:

========  =======================================
linear    ``a - b p``
log       ``a - b ln(1 + max(0, p))``
exp       ``a e^{-b p}``
poly      ``a - b p - c p^2``, ``c = max(0.001, 0.01 b)``
logistic  ``2a / (1 + e^{b p})`` (so that ``q(0) = a``)
========  =======================================

All curves are floored at zero. Observed (hidden) demand multiplies the
curve by a uniform noise factor; the oracle demand used for regret and
welfare is the noise-free curve.

Planners never see the hidden curves. Final-tier firms plan against the
*perceived* demand: either a noisy multiple of the realised aggregate or an
externally supplied function, isolated so that a faulty override counts as
zero demand instead of aborting the tick.
"""

from __future__ import annotations

import math
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.integrate import trapezoid

from .config import SupplyChainConfig
from .models import Consumer, DemandCurve, DemandFamily
from .random_source import RandomSource


EXPONENT_CAP = 50.0

FAMILY_ORDER: Tuple[DemandFamily, ...] = tuple(DemandFamily)
FAMILY_INDEX: Dict[DemandFamily, int] = {family: i for i, family in enumerate(FAMILY_ORDER)}


def _linear(a, b, c, p):
    return a - b * p


def _log(a, b, c, p):
    return a - b * np.log1p(np.maximum(0.0, p))


def _exp(a, b, c, p):
    return a * np.exp(np.minimum(-b * p, EXPONENT_CAP))


def _poly(a, b, c, p):
    return a - b * p - c * p * p


def _logistic(a, b, c, p):
    return 2.0 * a / (1.0 + np.exp(np.clip(b * p, -EXPONENT_CAP, 700.0)))


CURVE_EVALUATORS: Dict[DemandFamily, Callable] = {
    DemandFamily.LINEAR: _linear,
    DemandFamily.LOG: _log,
    DemandFamily.EXP: _exp,
    DemandFamily.POLY: _poly,
    DemandFamily.LOGISTIC: _logistic,
}


def derived_quadratic(b):
    """Quadratic coefficient of a polynomial curve without an explicit ``c``."""
    return np.maximum(0.001, 0.01 * b)


def evaluate_curve(curve: DemandCurve, price):
    """Noise-free ``q(price)`` for a single curve, floored at zero."""
    c = curve.c if curve.c is not None else derived_quadratic(curve.b)
    value = np.maximum(0.0, CURVE_EVALUATORS[curve.family](curve.a, curve.b, c, price))
    if np.ndim(value) == 0:
        return float(value)
    return value


def evaluate_population(codes: np.ndarray, a: np.ndarray, b: np.ndarray, price: float) -> np.ndarray:
    """Vectorised noise-free demand of many consumers at one price."""
    out = np.zeros(a.shape, dtype=float)
    for family, evaluator in CURVE_EVALUATORS.items():
        mask = codes == FAMILY_INDEX[family]
        if not np.any(mask):
            continue
        b_masked = b[mask]
        out[mask] = evaluator(a[mask], b_masked, derived_quadratic(b_masked), price)
    return np.maximum(0.0, out)


class DemandModel:
    """Hidden consumer population plus the perceived-demand estimator."""

    def __init__(self, config: SupplyChainConfig, rng: RandomSource):
        self.config = config
        self.rng = rng
        self.consumers: List[Consumer] = []
        self.override: Optional[Callable[[float], float]] = None
        self.override_faults = 0
        self.last_fault: Optional[str] = None
        self.feedback_strength = float(config.FEEDBACK_STRENGTH)
        self.observations: List[Tuple[float, float]] = []
        weights = config.CONSUMER_FAMILY_WEIGHTS
        self._family_weights = [
            (DemandFamily(name), float(weight)) for name, weight in weights.items() if float(weight) > 0.0
        ]

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------
    def spawn_consumers(self) -> List[Consumer]:
        cfg = self.config
        for i in range(int(cfg.N_CONSUMERS)):
            family = self._draw_family()
            a, b = self._draw_coefficients()
            next_update = self.rng.integer_range(cfg.CONSUMER_UPDATE_RANGE)
            next_change = self.rng.integer_range(cfg.REGIME_SWITCH_RANGE) if cfg.REGIME_SWITCHING else None
            self.consumers.append(
                Consumer(
                    id=f"C{i}",
                    family=family,
                    a=a,
                    b=b,
                    next_update_at=next_update,
                    next_change=next_change,
                )
            )
        return self.consumers

    def _draw_family(self) -> DemandFamily:
        total = sum(weight for _, weight in self._family_weights)
        remaining = self.rng.random() * total
        for family, weight in self._family_weights:
            remaining -= weight
            if remaining <= 0:
                return family
        return self._family_weights[-1][0]

    def _draw_coefficients(self) -> Tuple[float, float]:
        cfg = self.config
        a = self.rng.uniform_range(cfg.CONSUMER_A_RANGE)
        sign_roll = self.rng.random()
        positive_prob = 1.0 - cfg.CONSUMER_B_ZERO_PROB - cfg.CONSUMER_B_NEGATIVE_PROB
        if sign_roll < positive_prob:
            b = self.rng.uniform_range(cfg.CONSUMER_B_RANGE)
        elif sign_roll < positive_prob + cfg.CONSUMER_B_ZERO_PROB:
            b = 0.0
        else:
            b = -self.rng.uniform_range(cfg.CONSUMER_B_NEGATIVE_RANGE)
        return a, b

    def update_consumers(self, tick: int, price: float, previous_price: float) -> int:
        """Apply jitter, scheduled updates, regime switches and feedback.

        Returns the number of consumers whose scheduled update fired.
        """
        cfg = self.config
        updated = 0
        for consumer in self.consumers:
            consumer.a *= self.rng.centered(2.0 * cfg.CONSUMER_JITTER)
            consumer.b *= self.rng.centered(2.0 * cfg.CONSUMER_JITTER)
            if tick >= consumer.next_update_at:
                self._scheduled_update(consumer, tick)
                updated += 1
            if cfg.REGIME_SWITCHING and consumer.next_change is not None and tick >= consumer.next_change:
                self._switch_regime(consumer, tick)
            if self.feedback_strength:
                consumer.a = max(0.0, consumer.a + self.feedback_strength * (previous_price - price))
        return updated

    def _scheduled_update(self, consumer: Consumer, tick: int) -> None:
        cfg = self.config
        if self.rng.random() < cfg.CONSUMER_RESAMPLE_PROB:
            consumer.a, consumer.b = self._draw_coefficients()
        else:
            consumer.a *= self.rng.centered(cfg.CONSUMER_DRIFT_A)
            consumer.b *= self.rng.centered(cfg.CONSUMER_DRIFT_B)
        if self.rng.random() < cfg.CONSUMER_SHOCK_PROB:
            consumer.a *= self.rng.uniform_range(cfg.CONSUMER_SHOCK_RANGE)
        consumer.next_update_at = tick + self.rng.integer_range(cfg.CONSUMER_UPDATE_RANGE)
        consumer.last_update = tick

    def _switch_regime(self, consumer: Consumer, tick: int) -> None:
        cfg = self.config
        family = self._draw_family()
        ranges = cfg.REGIME_COEFFICIENT_RANGES.get(family.value)
        consumer.family = family
        if ranges:
            consumer.a = self.rng.uniform_range(ranges["a"])
            consumer.b = self.rng.uniform_range(ranges["b"])
        else:
            consumer.a, consumer.b = self._draw_coefficients()
        consumer.next_change = tick + self.rng.integer_range(cfg.REGIME_SWITCH_RANGE)

    # ------------------------------------------------------------------
    # Demand evaluation
    # ------------------------------------------------------------------
    def _arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        codes = np.fromiter((FAMILY_INDEX[c.family] for c in self.consumers), dtype=np.int8, count=len(self.consumers))
        a = np.fromiter((c.a for c in self.consumers), dtype=float, count=len(self.consumers))
        b = np.fromiter((c.b for c in self.consumers), dtype=float, count=len(self.consumers))
        return codes, a, b

    def _noise(self, size: int) -> np.ndarray:
        return 1.0 + (self.rng.random_array(size) - 0.5) * 2.0 * self.config.DEMAND_NOISE

    def hidden_demand(self, consumer: Consumer, price: float) -> float:
        """One noisy draw of a single consumer's demand at ``price``."""
        base = evaluate_curve(consumer.curve, price)
        noise = 1.0 + (self.rng.random() - 0.5) * 2.0 * self.config.DEMAND_NOISE
        return max(0.0, base * noise)

    def aggregate_demand(self, price: float) -> float:
        """Noisy total demand, one noise draw per consumer in population order."""
        if not self.consumers:
            return 0.0
        codes, a, b = self._arrays()
        base = evaluate_population(codes, a, b, price)
        return float(np.maximum(0.0, base * self._noise(base.size)).sum())

    def oracle_demand(self, price: float) -> float:
        """Noise-free total demand; consumes no random draws."""
        if not self.consumers:
            return 0.0
        codes, a, b = self._arrays()
        return float(evaluate_population(codes, a, b, price).sum())

    def consumer_surplus(self, price: float) -> float:
        """Trapezoid integral of oracle demand over ``[0, k * price]``.

        The upper bound ``k`` is ``WELFARE_PRICE_MULTIPLIER``; expenditure is
        subtracted later, when welfare is summarised.
        """
        cfg = self.config
        upper = price * float(cfg.WELFARE_PRICE_MULTIPLIER)
        if not self.consumers or upper <= 0.0:
            return 0.0
        grid = np.linspace(0.0, upper, int(cfg.WELFARE_GRID_POINTS))
        codes, a, b = self._arrays()
        values = np.array([evaluate_population(codes, a, b, p).sum() for p in grid])
        return float(trapezoid(values, grid))

    def perceived_demand(self, price: float, realised_total: float) -> float:
        """Demand estimate Final-tier firms plan against.

        With an override installed the override is evaluated; an exception,
        a non-finite or a negative value counts as zero demand and is
        remembered in ``last_fault``. Otherwise a noisy multiple of the
        realised aggregate is drawn from ``PERCEIVED_DEMAND_BAND``.
        """
        self.last_fault = None
        if self.override is not None:
            try:
                value = float(self.override(price))
            except Exception as exc:
                return self._fault(f"{type(exc).__name__}: {exc}")
            if not math.isfinite(value):
                return self._fault(f"non-finite value {value!r}")
            if value < 0.0:
                return self._fault(f"negative value {value!r}")
            return value
        return realised_total * self.rng.uniform_range(self.config.PERCEIVED_DEMAND_BAND)

    def _fault(self, message: str) -> float:
        self.override_faults += 1
        self.last_fault = message
        return 0.0

    def observe(self, price: float) -> List[Tuple[float, float]]:
        """Noisy ``(price, quantity)`` observations of the first consumers."""
        cfg = self.config
        sample = []
        for consumer in self.consumers[: int(cfg.OBSERVATION_SAMPLE_SIZE)]:
            quantity = self.hidden_demand(consumer, price)
            observed = max(0.0, quantity * self.rng.centered(cfg.OBSERVATION_NOISE))
            observed_price = price * self.rng.centered(cfg.OBSERVATION_PRICE_JITTER)
            sample.append((observed_price, observed))
        self.observations = sample
        return sample

    def survey(self, price: float, sample_size: int) -> Tuple[np.ndarray, np.ndarray]:
        """Sample consumers with replacement at jittered prices."""
        cfg = self.config
        prices = np.zeros(sample_size)
        quantities = np.zeros(sample_size)
        if not self.consumers:
            return prices, quantities
        for i in range(sample_size):
            consumer = self.consumers[self.rng.index(len(self.consumers))]
            p = price * self.rng.centered(cfg.SURVEY_PRICE_JITTER)
            q = self.hidden_demand(consumer, p) * self.rng.centered(cfg.SURVEY_RESPONSE_NOISE)
            prices[i] = p
            quantities[i] = max(0.0, q)
        return prices, quantities


def ols_line(x: Sequence[float], y: Sequence[float]) -> Tuple[float, float]:
    """Ordinary least squares ``y = intercept + slope * x``.

    A degenerate sample (empty or constant ``x``) yields a zero slope.
    """
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    if xs.size == 0:
        return 0.0, 0.0
    mean_x = float(xs.mean())
    mean_y = float(ys.mean())
    den = float(((xs - mean_x) ** 2).sum())
    slope = 0.0 if den == 0.0 else float(((xs - mean_x) * (ys - mean_y)).sum() / den)
    return mean_y - slope * mean_x, slope


# ----------------------------------------------------------------------
# Free-text demand equations
# ----------------------------------------------------------------------
class DemandParseError(ValueError):
    """Raised when a demand equation matches no supported curve family."""


_NUM = r"(?:\d+(?:\.\d*)?|\.\d+)"
_RESERVED = {"p", "q", "e", "ln", "exp"}
_TERM_PATTERNS = {
    "const": re.compile(rf"^({_NUM})$"),
    "p": re.compile(rf"^({_NUM})?p$"),
    "p2": re.compile(rf"^({_NUM})?p\^\(?2\)?$"),
    "ln": re.compile(rf"^({_NUM})?ln\((?:1\+p|p\+1)\)$"),
    "exp": re.compile(rf"^({_NUM})?exp\(([+-]?)({_NUM})?p\)$"),
    "logistic": re.compile(rf"^({_NUM})/\(1\+exp\(({_NUM})?p\)\)$"),
}


def _format_number(value: float) -> str:
    if not math.isfinite(float(value)):
        raise DemandParseError(f"Parameter value {value!r} is not finite.")
    return np.format_float_positional(float(value), trim="-")


def _normalize_equation(text: str, params: Dict[str, float]) -> str:
    expr = re.sub(r"^\s*q\s*(?:\(\s*p\s*\))?\s*=", "", text.strip())
    for token, replacement in (
        ("\\left", ""), ("\\right", ""), ("\\cdot", "*"), ("\\times", "*"),
        ("\\ln", "ln"), ("\\log", "ln"), ("\\exp", "exp"),
    ):
        expr = expr.replace(token, replacement)
    expr = re.sub(r"\\frac\{([^{}]+)\}\{([^{}]+)\}", r"(\1)/(\2)", expr)
    # Parameters are substituted while tokens are still space separated ("b p")
    for name in sorted(params, key=len, reverse=True):
        if not re.fullmatch(r"[A-Za-z_][A-Za-z_0-9]*", name) or name in _RESERVED:
            raise DemandParseError(f"Invalid parameter name '{name}'.")
        expr = re.sub(
            rf"(?<![A-Za-z_]){re.escape(name)}(?![A-Za-z_0-9])",
            _format_number(params[name]),
            expr,
        )
    expr = re.sub(r"\s+", "", expr)
    expr = re.sub(r"e\^\{([^{}]+)\}", r"exp(\1)", expr)
    expr = re.sub(r"e\^\(([^()]+)\)", r"exp(\1)", expr)
    expr = expr.replace("{", "(").replace("}", ")").replace("*", "")
    # Collapse sign pairs introduced by negative parameter values
    previous = None
    while previous != expr:
        previous = expr
        expr = expr.replace("+-", "-").replace("--", "+").replace("-+", "-").replace("++", "+")
    # Strip a single pair of redundant outer parentheses, e.g. "(100-5p)"
    if expr.startswith("(") and expr.endswith(")") and _split_terms(expr[1:-1]) is not None:
        inner = expr[1:-1]
        if inner.count("(") == inner.count(")"):
            expr = inner
    return expr


def _split_terms(expr: str) -> Optional[List[str]]:
    terms: List[str] = []
    depth = 0
    current = ""
    for char in expr:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return None
        if char in "+-" and depth == 0 and current not in ("", "+", "-"):
            terms.append(current)
            current = char
        else:
            current += char
    if depth != 0:
        return None
    if current:
        terms.append(current)
    return terms


def _coefficient(raw: Optional[str]) -> float:
    return 1.0 if raw in (None, "") else float(raw)


def parse_demand_equation(text: str, params: Optional[Dict[str, float]] = None) -> DemandCurve:
    """Parse a LaTeX-like demand equation into a ``DemandCurve``.

    Supported shapes (parameters may be named and supplied in ``params``)::

        q = a - b p
        q = a - b \\ln(1 + p)
        q = a e^{-b p}
        q = a - b p - c p^2
        q = a / (1 + e^{b p})

    No code is evaluated; anything else raises ``DemandParseError``.
    """
    if not isinstance(text, str) or not text.strip():
        raise DemandParseError("Demand equation is empty.")
    expr = _normalize_equation(text, dict(params or {}))
    terms = _split_terms(expr)
    if not terms:
        raise DemandParseError(f"Cannot parse demand equation '{text}'.")

    collected: Dict[str, float] = {}
    inner: Dict[str, float] = {}
    for term in terms:
        sign = -1.0 if term.startswith("-") else 1.0
        body = term.lstrip("+-")
        for kind, pattern in _TERM_PATTERNS.items():
            match = pattern.match(body)
            if match is None:
                continue
            if kind in collected:
                raise DemandParseError(f"Repeated '{kind}' term in '{text}'.")
            if kind == "exp":
                inner_sign = -1.0 if match.group(2) == "-" else 1.0
                inner["exp"] = inner_sign * _coefficient(match.group(3))
            elif kind == "logistic":
                inner["logistic"] = _coefficient(match.group(2))
            collected[kind] = sign * _coefficient(match.group(1))
            break
        else:
            raise DemandParseError(f"Unsupported term '{term}' in demand equation '{text}'.")

    kinds = set(collected)
    const = collected.get("const", 0.0)
    if kinds == {"exp"}:
        return DemandCurve(DemandFamily.EXP, collected["exp"], -inner["exp"])
    if kinds == {"logistic"}:
        return DemandCurve(DemandFamily.LOGISTIC, collected["logistic"] / 2.0, inner["logistic"])
    if "ln" in kinds and kinds <= {"const", "ln"}:
        return DemandCurve(DemandFamily.LOG, const, -collected["ln"])
    if "p2" in kinds and kinds <= {"const", "p", "p2"}:
        return DemandCurve(DemandFamily.POLY, const, -collected.get("p", 0.0), -collected["p2"])
    if kinds and kinds <= {"const", "p"}:
        return DemandCurve(DemandFamily.LINEAR, const, -collected.get("p", 0.0))
    raise DemandParseError(f"Demand equation '{text}' mixes unsupported terms: {', '.join(sorted(kinds))}.")
