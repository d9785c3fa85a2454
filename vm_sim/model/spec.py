"""Scenario configuration models and semantic validation."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ActionType(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
    MIGRATE = "migrate"


class SchedulerSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = "time_shared"
    params: dict = Field(default_factory=dict)


class VmSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    pe_mips: list[float] = Field(min_length=1)
    scheduler: SchedulerSpec = Field(default_factory=SchedulerSpec)

    @model_validator(mode="after")
    def validate_capacity(self) -> "VmSpec":
        for idx, mips in enumerate(self.pe_mips):
            if mips < 0:
                raise ValueError(f"vm '{self.id}' pe_mips[{idx}] must be >= 0")
        return self

    @property
    def pe_count(self) -> int:
        return len(self.pe_mips)


class UtilizationSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    model: str = "full"
    params: dict = Field(default_factory=dict)


class TaskUtilizationSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cpu: UtilizationSpec = Field(default_factory=UtilizationSpec)
    ram: UtilizationSpec = Field(default_factory=UtilizationSpec)
    bw: UtilizationSpec = Field(default_factory=UtilizationSpec)


class TaskSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    vm_id: str
    length: float = Field(gt=0)
    pe_count: int = Field(default=1, ge=1)
    arrival: float = Field(default=0, ge=0)
    transfer_time: float = Field(default=0, ge=0)
    utilization: TaskUtilizationSpec = Field(default_factory=TaskUtilizationSpec)


class ActionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    time: float = Field(ge=0)
    type: ActionType
    task_id: Optional[int] = None
    vm_id: Optional[str] = None
    target_vm_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_targets(self) -> "ActionSpec":
        if self.type == ActionType.MIGRATE:
            if self.vm_id is None or self.target_vm_id is None:
                raise ValueError("migrate action must define vm_id and target_vm_id")
            if self.vm_id == self.target_vm_id:
                raise ValueError("migrate action target_vm_id must differ from vm_id")
        elif self.task_id is None:
            raise ValueError(f"{self.type.value} action must define task_id")
        return self


class SimSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration: float = Field(gt=0)
    min_time_between_events: float = Field(default=0.1, gt=0)


class ScenarioSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: str
    vms: list[VmSpec] = Field(min_length=1)
    tasks: list[TaskSpec] = Field(default_factory=list)
    actions: list[ActionSpec] = Field(default_factory=list)
    sim: SimSpec

    @model_validator(mode="after")
    def validate_semantics(self) -> "ScenarioSpec":
        vm_ids = [vm.id for vm in self.vms]
        if len(vm_ids) != len(set(vm_ids)):
            raise ValueError("duplicate vms.id")
        vm_pes = {vm.id: vm.pe_count for vm in self.vms}

        task_ids = [task.id for task in self.tasks]
        if len(task_ids) != len(set(task_ids)):
            raise ValueError("duplicate tasks.id")
        for task in self.tasks:
            if task.vm_id not in vm_pes:
                raise ValueError(f"task {task.id} references unknown vm '{task.vm_id}'")
            if task.pe_count > vm_pes[task.vm_id]:
                raise ValueError(
                    f"task {task.id} requires {task.pe_count} PEs but vm '{task.vm_id}' "
                    f"has {vm_pes[task.vm_id]}"
                )

        task_set = set(task_ids)
        for idx, action in enumerate(self.actions):
            if action.task_id is not None and action.task_id not in task_set:
                raise ValueError(f"actions[{idx}] references unknown task {action.task_id}")
            for vm_ref in (action.vm_id, action.target_vm_id):
                if vm_ref is not None and vm_ref not in vm_pes:
                    raise ValueError(f"actions[{idx}] references unknown vm '{vm_ref}'")
        return self
