"""
Configuración del motor de horarios.

Restricciones duras/blandas con sus pesos y parámetros de generación
(estrategia, AG, límites), con un cargador desde YAML para dejar las
corridas reproducibles y configurables.
"""
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

APPROACHES = ("constraint", "genetic", "hybrid")


@dataclass
class HardConstraints:
    no_teacher_conflict: bool = True
    no_room_conflict: bool = True
    no_student_conflict: bool = True
    respect_session_room_type: bool = True
    max_teacher_hours_per_day: int = 0  # 0 = sin tope


@dataclass
class SoftConstraints:
    lunch_break_mandatory: bool = True
    avoid_back_to_back_labs: bool = True
    morning_theory_preference: bool = True
    teacher_workload_balance: bool = True
    minimize_gaps: bool = True


@dataclass
class SoftWeights:
    lunch_break: float = 10.0
    back_to_back_labs: float = 5.0
    morning_theory: float = 2.0
    workload_balance: float = 3.0
    gaps: float = 1.0


@dataclass(frozen=True)
class LunchBreak:
    start_time: str = "12:00"
    end_time: str = "13:00"


def _merge(cls, data: Optional[Dict[str, Any]]):
    if not data:
        return cls()
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Constraints:
    hard: HardConstraints = field(default_factory=HardConstraints)
    soft: SoftConstraints = field(default_factory=SoftConstraints)
    weights: SoftWeights = field(default_factory=SoftWeights)
    lunch_break: Optional[LunchBreak] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Constraints":
        lunch = data.get("lunch_break")
        return cls(
            hard=_merge(HardConstraints, data.get("hard")),
            soft=_merge(SoftConstraints, data.get("soft")),
            weights=_merge(SoftWeights, data.get("weights")),
            lunch_break=_merge(LunchBreak, lunch) if lunch else None,
        )


@dataclass
class GenerationConfig:
    approach: str = "hybrid"

    # Solver de restricciones
    max_iterations: int = 10000

    # Algoritmo genético
    population_size: int = 100
    generations: int = 500
    mutation_rate: float = 0.1
    crossover_rate: float = 0.8
    elitism_count: int = 2
    tournament_size: int = 3
    max_stagnation: int = 100
    mutation_fraction: float = 0.1   # fracción de genes tocados por mutación

    # Reparación
    repair_probability: float = 0.7
    seeding_attempts: int = 5

    # Híbrido
    hybrid_max_iterations: int = 5000
    hybrid_generations: int = 300

    seed: Optional[int] = None
    time_limit_seconds: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k in merged:
                merged[k] = v
        return cls(**merged)

    def validate(self) -> None:
        if self.approach not in APPROACHES:
            raise ValueError(f"Unknown approach: {self.approach}")
        if self.population_size < 1:
            raise ValueError("population_size must be at least 1")
        if self.tournament_size < 1:
            raise ValueError("tournament_size must be at least 1")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def load_config(path: str = "config.yaml") -> GenerationConfig:
    """Parámetros de generación; la sección `generation` si existe, si no la raíz."""
    data = _load_yaml(Path(path))
    section = data.get("generation", data)
    if not isinstance(section, dict):
        raise ValueError("generation section must be a mapping")
    cfg = GenerationConfig.from_dict(section)
    cfg.validate()
    return cfg


def load_constraints(path: str = "config.yaml") -> Constraints:
    data = _load_yaml(Path(path))
    section = data.get("constraints", {})
    if not isinstance(section, dict):
        raise ValueError("constraints section must be a mapping")
    return Constraints.from_dict(section)
