"""
다단계 변경 파이프라인

각 단계는 critical(실패 시 중단·재발생) 또는 best_effort(실패 시 경고 기록 후 계속).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List

from loguru import logger


class StepKind(str, Enum):
    critical = "critical"
    best_effort = "best_effort"


@dataclass
class StepWarning:
    """best_effort 단계 실패 기록"""
    step: str
    error: str

    def to_dict(self) -> dict:
        return {"step": self.step, "error": self.error}


@dataclass
class _Step:
    name: str
    kind: StepKind
    action: Callable[[], Awaitable[Any]]


@dataclass
class MutationPipeline:
    """순서대로 실행되는 변경 단계 묶음"""
    label: str
    steps: List[_Step] = field(default_factory=list)
    warnings: List[StepWarning] = field(default_factory=list)

    def critical(self, name: str, action: Callable[[], Awaitable[Any]]) -> "MutationPipeline":
        self.steps.append(_Step(name, StepKind.critical, action))
        return self

    def best_effort(self, name: str, action: Callable[[], Awaitable[Any]]) -> "MutationPipeline":
        self.steps.append(_Step(name, StepKind.best_effort, action))
        return self

    async def run(self) -> List[StepWarning]:
        for step in self.steps:
            logger.debug(f"[{self.label}] {step.name} 시작")
            try:
                await step.action()
            except Exception as e:
                if step.kind == StepKind.critical:
                    logger.error(f"[{self.label}] {step.name} 실패 (중단): {e}")
                    raise
                logger.warning(f"[{self.label}] {step.name} 실패 (계속 진행): {e}")
                self.warnings.append(StepWarning(step.name, str(e)))
                continue
            logger.debug(f"[{self.label}] {step.name} 완료")
        return self.warnings
