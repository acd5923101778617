"""全局通用结构。

定义统一响应包裹结构与对象映射基类。
"""

from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BaseSchema(BaseModel):
    """基础结构，开启对象映射能力。"""

    model_config = ConfigDict(from_attributes=True)


class ErrorPayload(BaseSchema):
    """错误主体。"""

    code: str = Field(description="机器可识别错误码。")
    message: str = Field(description="人类可读错误信息。")
    details: dict[str, Any] = Field(default_factory=dict, description="可选扩展错误细节。")


class ErrorResponse(BaseSchema):
    """统一错误响应。"""

    request_id: str = Field(description="服务端生成的请求追踪 ID。")
    error: ErrorPayload = Field(description="错误主体。")


T = TypeVar("T")


class SuccessResponse(BaseSchema, Generic[T]):
    """统一成功响应。"""

    request_id: str = Field(description="服务端生成的请求追踪 ID。")
    data: T = Field(description="业务返回数据主体。")
    meta: dict[str, Any] = Field(default_factory=dict, description="可选扩展元信息。")


class DeletedData(BaseSchema):
    """删除类接口的返回结构。"""

    deleted: bool = Field(description="是否实际删除了记录（幂等删除时可能为 false）。")


class AcceptedData(BaseSchema):
    """异步受理类接口的返回结构。"""

    accepted: bool = Field(default=True, description="请求已受理，后续处理异步进行。")


class PatchRequest(BaseModel):
    """局部更新请求基类。

    省略字段表示不修改；显式 null 表示清空，仅允许用于可空字段。
    """

    non_nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required_fields(self) -> "PatchRequest":
        for name in sorted(self.non_nullable_fields & self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self
