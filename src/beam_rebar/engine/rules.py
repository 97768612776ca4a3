from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from beam_rebar.domain.context import SolutionContext

log = logging.getLogger(__name__)


class Severity(Enum):
    PASS = 0
    INFO = 1
    WARNING = 2
    CRITICAL = 3


@dataclass(frozen=True)
class ValidationResult:
    rule_name: str
    severity: Severity
    message: str = ""
    penalty: float = 0.0
    bonus: float = 0.0

    @classmethod
    def passed(cls, rule_name: str) -> "ValidationResult":
        return cls(rule_name, Severity.PASS)

    @classmethod
    def info(cls, rule_name: str, message: str, bonus: float = 0.0) -> "ValidationResult":
        return cls(rule_name, Severity.INFO, message, bonus=bonus)

    @classmethod
    def warning(cls, rule_name: str, message: str, penalty: float = 0.0) -> "ValidationResult":
        return cls(rule_name, Severity.WARNING, message, penalty=penalty)

    @classmethod
    def critical(cls, rule_name: str, message: str) -> "ValidationResult":
        return cls(rule_name, Severity.CRITICAL, message)


class PyramidRule:
    """Ninguna capa interior puede tener más barras que la anterior."""

    name = "Pyramid"
    priority = 1

    def validate(self, ctx: SolutionContext) -> ValidationResult:
        sol = ctx.current_solution
        if sol is None:
            return ValidationResult.passed(self.name)
        for key in sorted(sol.reinforcements):
            layers = sol.reinforcements[key].layer_breakdown
            for i in range(1, len(layers)):
                if layers[i] > layers[i - 1]:
                    return ValidationResult.critical(
                        self.name, f"{key}: capa {i + 1} ({layers[i]}) > capa {i} ({layers[i - 1]})"
                    )
        return ValidationResult.passed(self.name)


class SymmetryRule:
    """Cantidades impares en la corrida penalizan si se prefiere simetría."""

    name = "Symmetry"
    priority = 5
    points_per_face = 2.0

    def validate(self, ctx: SolutionContext) -> ValidationResult:
        sol = ctx.current_solution
        if sol is None or not ctx.settings.beam_cfg().prefer_symmetric:
            return ValidationResult.passed(self.name)
        odd = [n for n in (sol.backbone_count_top, sol.backbone_count_bot) if n % 2]
        if not odd:
            return ValidationResult.passed(self.name)
        return ValidationResult.warning(
            self.name, f"Corrida asimétrica ({len(odd)} caras impares)", penalty=self.points_per_face * len(odd)
        )


class PreferredDiameterRule:
    """Bonifica la corrida que coincide con el diámetro preferido del proyecto."""

    name = "PreferredDiameter"
    priority = 10

    def validate(self, ctx: SolutionContext) -> ValidationResult:
        sol = ctx.current_solution
        gc = ctx.global_constraints
        if sol is None or gc is None or not gc.preferred_main_diameter:
            return ValidationResult.passed(self.name)
        pref = gc.preferred_main_diameter
        hits = [d == pref for d in (sol.backbone_diameter_top, sol.backbone_diameter_bot)]
        if all(hits):
            return ValidationResult.info(self.name, f"Corrida D{pref} en ambas caras", bonus=gc.neighbor_match_bonus)
        if any(hits):
            return ValidationResult.info(self.name, f"Corrida D{pref} en una cara", bonus=gc.neighbor_match_bonus / 2.0)
        return ValidationResult.passed(self.name)


class RuleEngine:
    """Reglas ordenadas por prioridad; una crítica corta la evaluación."""

    def __init__(self, rules: Optional[List] = None):
        self.rules: List = []
        for r in rules if rules is not None else [PyramidRule(), SymmetryRule(), PreferredDiameterRule()]:
            self.add_rule(r)

    def add_rule(self, rule) -> None:
        self.rules.append(rule)
        self.rules.sort(key=lambda r: r.priority)

    def remove_rule(self, name: str) -> bool:
        n = len(self.rules)
        self.rules = [r for r in self.rules if r.name != name]
        return len(self.rules) != n

    def rule_names(self) -> List[str]:
        return [r.name for r in self.rules]

    def validate_all(self, ctx: SolutionContext) -> SolutionContext:
        for rule in self.rules:
            res = rule.validate(ctx)
            ctx.validation_results.append(res)
            if res.severity is Severity.CRITICAL:
                ctx.fail(f"Rule:{rule.name}", res.message)
                log.info("%s descartado por %s: %s", ctx.scenario_id, rule.name, res.message)
                break
            if res.severity is Severity.WARNING:
                ctx.total_penalty += res.penalty
            elif res.severity is Severity.INFO:
                ctx.preferred_diameter_bonus += res.bonus
        return ctx
