"""外部服务客户端"""
