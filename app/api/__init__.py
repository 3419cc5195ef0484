# app/api/__init__.py
"""
API 层：依赖（身份 / Session）、业务异常、响应信封、路由。

这里不做重导出，路由挂载在 app.main.create_app。
"""

__all__ = []
