"""Carer model and competency data."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class CompetencyLevel(str, Enum):
    """Assessed competency of a carer for one task, lowest first."""
    NOT_ASSESSED = "NOT_ASSESSED"
    NOT_COMPETENT = "NOT_COMPETENT"
    ADVANCED_BEGINNER = "ADVANCED_BEGINNER"
    COMPETENT = "COMPETENT"
    PROFICIENT = "PROFICIENT"
    EXPERT = "EXPERT"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    @property
    def is_competent(self) -> bool:
        """True for COMPETENT and above."""
        return self.rank >= CompetencyLevel.COMPETENT.rank

    @classmethod
    def from_string(cls, s: str) -> "CompetencyLevel":
        key = str(s).strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            return cls.NOT_ASSESSED


_LEVEL_ORDER = list(CompetencyLevel)


@dataclass(frozen=True)
class CompetencyRating:
    task_id: str
    level: CompetencyLevel

    def to_dict(self) -> dict:
        return {"taskId": self.task_id, "level": self.level.value}

    @classmethod
    def from_dict(cls, d: dict) -> "CompetencyRating":
        return cls(
            task_id=str(d.get("taskId", "")),
            level=CompetencyLevel.from_string(d.get("level", "NOT_ASSESSED")),
        )


@dataclass(frozen=True)
class PackageCompetency:
    """Competency summary of one carer for one care package."""
    competent_task_count: int = 0
    total_task_count: int = 0
    is_package_competent: bool = False
    has_no_tasks: bool = False

    def to_dict(self) -> dict:
        return {
            "competentTaskCount": self.competent_task_count,
            "totalTaskCount": self.total_task_count,
            "isPackageCompetent": self.is_package_competent,
            "hasNoTasks": self.has_no_tasks,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PackageCompetency":
        return cls(
            competent_task_count=int(d.get("competentTaskCount", 0)),
            total_task_count=int(d.get("totalTaskCount", 0)),
            is_package_competent=bool(d.get("isPackageCompetent", False)),
            has_no_tasks=bool(d.get("hasNoTasks", False)),
        )


@dataclass
class Carer:
    """A staff member eligible to work. Owned by user management; read-only here."""

    id: str
    name: str
    email: str = ""
    competency_ratings: List[CompetencyRating] = field(default_factory=list)
    package_competency: Optional[PackageCompetency] = None

    def __post_init__(self):
        self.id = str(self.id).strip()
        self.name = str(self.name).strip()

    @property
    def ratings_by_task(self) -> Dict[str, CompetencyLevel]:
        return {r.task_id: r.level for r in self.competency_ratings}

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "competencyRatings": [r.to_dict() for r in self.competency_ratings],
        }
        if self.package_competency is not None:
            d["packageCompetency"] = self.package_competency.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Carer":
        pc = d.get("packageCompetency")
        return cls(
            id=d.get("id", ""),
            name=d.get("name", ""),
            email=d.get("email", "") or "",
            competency_ratings=[CompetencyRating.from_dict(r) for r in d.get("competencyRatings") or []],
            package_competency=PackageCompetency.from_dict(pc) if pc else None,
        )
