"""探针类接口 `data` 字段结构定义。

业务实体的返回结构与其请求结构放在同一模块中（见 `user`、`workspace`、`project`）。
"""

from pydantic import Field

from hazel_api.schemas.common import BaseSchema


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值，常见为 ok 或 ready。")
