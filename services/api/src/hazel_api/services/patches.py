"""实体局部更新结构。

每个 Patch 的字段默认为 `UNSET`，表示请求中未携带该字段；显式传入 `None`
表示清空可空字段。`apply_patch` 只写入携带的字段并返回实际发生变化的字段名。
"""

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any


class _Unset:
    """未携带字段的占位值。"""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET


@dataclass(frozen=True)
class UserPatch:
    """用户资料局部更新。口令单独处理，不经 `apply_patch` 写入。"""

    name: str = UNSET
    profile_photo: str | None = UNSET
    password: str = UNSET


@dataclass(frozen=True)
class WorkspacePatch:
    name: str = UNSET
    description: str | None = UNSET


@dataclass(frozen=True)
class ProjectPatch:
    name: str = UNSET
    description: str | None = UNSET
    start_date: date | None = UNSET
    end_date: date | None = UNSET
    status: str = UNSET


@dataclass(frozen=True)
class TaskPatch:
    title: str = UNSET
    description: str | None = UNSET
    status: str = UNSET
    priority: str = UNSET
    due: datetime | None = UNSET


def patch_changes(patch: Any, *, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """返回 Patch 中携带的字段（含显式清空的字段）。"""
    return {
        item.name: value
        for item in fields(patch)
        if item.name not in exclude and is_set(value := getattr(patch, item.name))
    }


def apply_patch(entity: Any, patch: Any, *, exclude: tuple[str, ...] = ()) -> list[str]:
    """将 Patch 合并到实体上，返回值发生变化的字段名。"""
    changed: list[str] = []
    for name, value in patch_changes(patch, exclude=exclude).items():
        if getattr(entity, name) != value:
            setattr(entity, name, value)
            changed.append(name)
    return changed
