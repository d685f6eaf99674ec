"""
pms_core - 领域无关的框架层

包含：
- security: 模块权限三元组、OR 聚合、统一权限评估器
- realtime: 服务端连接注册表与广播通道
- sync: 客户端同步运行时（查询缓存、自动重连的实时连接、同步控制器）
- engine: 进程内事件总线

酒店/餐厅相关的模块目录、内置角色表、缓存键映射由 pms 包提供。
"""
