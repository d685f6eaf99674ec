"""
Branch PMS - 多分店酒店/餐厅管理后端与同步客户端
"""
