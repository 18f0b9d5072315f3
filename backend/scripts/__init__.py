"""运维脚本"""
