"""
autotable 通用模块：异常、配置选项、日志
"""
