"""HotelOps - 酒店运营状态服务"""

__version__ = "1.0.0"
