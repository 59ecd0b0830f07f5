"""Deterministic correction of classifier output before it is reported.

Species selection runs an ordered table of ``(condition, action)`` rules over
the ranked species scores; each rule may replace the previous choice. The
displayed confidence is calibrated last and never changes the chosen label.
The disease verdict flags a class only when it crosses its own threshold;
otherwise the verdict is healthy with the arg-max score as confidence.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Protocol

import numpy as np

from fishnet.config.models import ArbiterConfig, CalibrationConfig, ClassifierConfig
from fishnet.types import ClassifierOutputs, DiseaseVerdict, FreshnessVerdict, SpeciesVerdict

RULESET_VERSION = "3"


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class RankedLabel:
    index: int
    label: str
    score: float


@dataclass
class ArbitrationState:
    ranked: list[RankedLabel]
    choice: RankedLabel
    applied: list[str] = field(default_factory=list)

    def at_rank(self, rank: int) -> RankedLabel | None:
        return self.ranked[rank] if rank < len(self.ranked) else None


@dataclass(frozen=True)
class ArbitrationRule:
    name: str
    condition: Callable[[ArbitrationState, ArbiterConfig], bool]
    action: Callable[[ArbitrationState, ArbiterConfig], RankedLabel]


@dataclass(frozen=True)
class Arbitration:
    species: SpeciesVerdict
    freshness: FreshnessVerdict
    disease: DiseaseVerdict
    raw_species_score: float
    applied_rules: tuple[str, ...]
    ruleset_version: str = RULESET_VERSION


def rank_labels(vector: np.ndarray, labels: tuple[str, ...]) -> list[RankedLabel]:
    ranked = [
        RankedLabel(index=idx, label=labels[idx], score=float(score))
        for idx, score in enumerate(np.asarray(vector, dtype=np.float32).reshape(-1))
    ]
    # Stable sort keeps schema order among equal scores.
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked


def _runner_up_beats_background(state: ArbitrationState, cfg: ArbiterConfig) -> bool:
    runner_up = state.at_rank(1)
    return (
        state.choice.label == cfg.background_label
        and runner_up is not None
        and runner_up.score > cfg.background_override_threshold
    )


def _third_place_rescue(state: ArbitrationState, cfg: ArbiterConfig) -> bool:
    third = state.at_rank(2)
    return (
        cfg.strict_background_rescue
        and state.choice.label == cfg.background_label
        and third is not None
        and state.ranked[1].score <= cfg.background_override_threshold
        and third.label in cfg.rescue_labels
        and third.score > cfg.rescue_min_score
    )


def _best_confusable_alternative(state: ArbitrationState, cfg: ArbiterConfig) -> RankedLabel | None:
    for item in state.ranked:
        if item.label in cfg.confusable_alternatives and item.label != state.choice.label:
            return item
    return None


def _confusable_needs_swap(state: ArbitrationState, cfg: ArbiterConfig) -> bool:
    if state.choice.label not in cfg.confusable_labels:
        return False
    if state.choice.score >= cfg.confusable_max_score:
        return False
    alternative = _best_confusable_alternative(state, cfg)
    return alternative is not None and alternative.score > cfg.confusable_min_alternative_score


def _take_runner_up(state: ArbitrationState, cfg: ArbiterConfig) -> RankedLabel:
    return state.ranked[1]


def _take_third(state: ArbitrationState, cfg: ArbiterConfig) -> RankedLabel:
    return state.ranked[2]


def _take_confusable_alternative(state: ArbitrationState, cfg: ArbiterConfig) -> RankedLabel:
    alternative = _best_confusable_alternative(state, cfg)
    assert alternative is not None
    return alternative


SPECIES_RULES: tuple[ArbitrationRule, ...] = (
    ArbitrationRule("anti_background", _runner_up_beats_background, _take_runner_up),
    ArbitrationRule("background_rescue", _third_place_rescue, _take_third),
    ArbitrationRule("confusable_pair", _confusable_needs_swap, _take_confusable_alternative),
)


def calibrate(raw_score: float, rng: RandomSource, config: CalibrationConfig | None = None) -> float:
    """Map a raw score to the score shown to users.

    Scores below ``low_floor`` land in ``low_band`` and scores above
    ``high_ceiling`` land in ``high_band``; ``rng`` places them inside the band.
    """
    cfg = config or CalibrationConfig()
    raw = float(raw_score)
    if not cfg.enabled:
        return raw
    if raw < cfg.low_floor:
        low, high = cfg.low_band
    elif raw > cfg.high_ceiling:
        low, high = cfg.high_band
    else:
        return raw
    return low + rng.random() * (high - low)


def disease_verdict(
    vector: np.ndarray,
    labels: tuple[str, ...],
    config: ArbiterConfig,
) -> DiseaseVerdict:
    scores = np.asarray(vector, dtype=np.float32).reshape(-1)
    top = int(np.argmax(scores))
    confidence = min(100.0, max(0.0, float(scores[top]) * 100.0))

    def score_of(label: str) -> float | None:
        return float(scores[labels.index(label)]) if label in labels else None

    # Class B takes precedence over class A.
    class_b = score_of(config.class_b_label)
    class_a = score_of(config.class_a_label)
    if class_b is not None and class_b > config.class_b_threshold:
        label, flagged = config.class_b_label, True
    elif class_a is not None and class_a > config.class_a_threshold:
        label, flagged = config.class_a_label, True
    else:
        label, flagged = config.healthy_label, False

    return DiseaseVerdict(
        name=config.disease_display_names.get(label, label),
        has_disease=flagged,
        confidence=confidence,
    )


def freshness_verdict(value: float | None, config: ClassifierConfig) -> FreshnessVerdict:
    if value is None:
        return FreshnessVerdict(
            score=config.default_freshness_score,
            label=config.default_freshness_label,
        )
    score = min(1.0, max(0.0, float(value)))
    return FreshnessVerdict(
        score=score,
        label="Fresh" if score > config.freshness_threshold else "Stale",
    )


class DecisionArbiter:
    def __init__(
        self,
        config: ArbiterConfig,
        classifier_config: ClassifierConfig,
        *,
        species_labels: tuple[str, ...],
        disease_labels: tuple[str, ...],
        rng: RandomSource | None = None,
        rules: tuple[ArbitrationRule, ...] = SPECIES_RULES,
    ) -> None:
        self._config = config
        self._classifier_config = classifier_config
        self._species_labels = species_labels
        self._disease_labels = disease_labels
        self._rng = rng or random.Random()
        self._rules = rules
        self._logger = logging.getLogger("fishnet.arbiter")

    def select_species(self, vector: np.ndarray) -> ArbitrationState:
        ranked = rank_labels(vector, self._species_labels)
        if not ranked:
            raise ValueError("species vector is empty")
        state = ArbitrationState(ranked=ranked, choice=ranked[0])
        for rule in self._rules:
            if not rule.condition(state, self._config):
                continue
            previous = state.choice
            state.choice = rule.action(state, self._config)
            state.applied.append(rule.name)
            self._logger.debug(
                "rule=%s %s(%.3f) -> %s(%.3f)",
                rule.name,
                previous.label,
                previous.score,
                state.choice.label,
                state.choice.score,
            )
        return state

    def arbitrate(self, outputs: ClassifierOutputs) -> Arbitration:
        state = self.select_species(outputs.species)
        shown = calibrate(state.choice.score, self._rng, self._config.calibration)
        species = SpeciesVerdict(
            name=state.choice.label,
            confidence=min(100.0, max(0.0, shown * 100.0)),
        )
        return Arbitration(
            species=species,
            freshness=freshness_verdict(outputs.freshness, self._classifier_config),
            disease=disease_verdict(outputs.disease, self._disease_labels, self._config),
            raw_species_score=state.choice.score,
            applied_rules=tuple(state.applied),
        )
