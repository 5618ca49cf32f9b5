from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TypeVar

from pydantic import BaseModel, Field, field_validator


TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")

DEFAULT_VERSION = "0.3.1"
DEFAULT_ARTIFACT_ROOT = "public/sandbox/ts_result@{version}"


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump()

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


class ModuleSpec(BaseSchema):
    name: str
    pattern: str | None = None
    code_url: str
    types_url: str | None = None
    binding_name: str | None = None

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                _ = re.compile(value)
            except re.error as exc:
                raise ValueError(f"Invalid module pattern {value!r}: {exc}") from exc
        return value


class FetchSettings(BaseSchema):
    timeout_seconds: int = Field(default=30, gt=0)
    max_retries: int = Field(default=3, ge=0)
    user_agent: str = "docs-sandbox/0.1"
    base_dir: str | None = None
    cache_path: str | None = None
    cache_ttl_seconds: float | None = None


class ConsoleSettings(BaseSchema):
    preview_length: int = Field(default=75, ge=4)
    debounce_ms: int = Field(default=100, ge=0)
    separator: str = " "


def _default_modules() -> list[ModuleSpec]:
    return [
        ModuleSpec(
            name="ts_result",
            pattern=r"^ts_result(\.(?!fn).+)?$",
            code_url=f"{DEFAULT_ARTIFACT_ROOT}/result.py",
            types_url=f"{DEFAULT_ARTIFACT_ROOT}/result.pyi",
            binding_name="Result",
        ),
        ModuleSpec(
            name="ts_result.fn",
            pattern=r"^ts_result\.fn$",
            code_url=f"{DEFAULT_ARTIFACT_ROOT}/fn.py",
            types_url=f"{DEFAULT_ARTIFACT_ROOT}/fn.pyi",
            binding_name="ResultFn",
        ),
    ]


class SandboxConfig(BaseSchema):
    version: str = DEFAULT_VERSION
    modules: list[ModuleSpec] = Field(default_factory=_default_modules)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    console: ConsoleSettings = Field(default_factory=ConsoleSettings)
    stub_dir: str | None = None
