"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from mentionbot.core.store import StoreGroup

from .services.container import GatewayServices


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_services(request: Request) -> GatewayServices:
    """从 app.state 获取 GatewayServices 实例"""
    return request.app.state.services
