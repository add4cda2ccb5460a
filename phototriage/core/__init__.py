"""Core module exports

PhotoTriage 项目的核心功能模块，提供文件名解析、外部接口定义和本地平台适配等基础能力。

主要模块：
- filename: 扩展名 / 基础名 / 版本号解析
- ports: 文件系统、权限、媒体索引、记录存储接口
- fileops: 本地同步文件操作
- platform: 本地宿主平台适配器
- models: SQLModel 数据模型定义
"""
