"""
HTTP 传输层常量配置模块

定义客户端使用的常量、默认配置等
"""

import ssl

# HTTP 方法常量
HTTP_METHOD_GET = "GET"
HTTP_METHOD_POST = "POST"
HTTP_METHOD_PUT = "PUT"
HTTP_METHOD_DELETE = "DELETE"
HTTP_METHOD_PATCH = "PATCH"

# 媒体类型
MEDIA_TYPE_TEXT = "text/html"  # 通用文本类型，未指定时的默认值
MEDIA_TYPE_JSON = "application/json"  # REST 预设使用的结构化数据类型

# 请求体编码
DEFAULT_BODY_ENCODING = "utf-8"

# 默认配置
DEFAULT_TIMEOUT = 3.0  # 默认总请求超时时间（秒），即 3000 毫秒
DEFAULT_MAX_CONNECTIONS_PER_SERVER = 1500  # 单个主机的最大并发连接数
DEFAULT_MAX_AUTOMATIC_REDIRECTIONS = 3  # 默认自动跟随的最大重定向次数
DEFAULT_MAX_WORKERS = None  # 非阻塞请求线程池大小，None 表示与单主机连接池大小一致

# 单主机连接池大小的上限，max_connections_per_server 超过该值时被截断
GLOBAL_CONNECTION_LIMIT = 15000

# 连接池配置
POOL_CONNECTIONS = 100  # 缓存的主机连接池数量

# 响应压缩：透明解码 gzip 和 deflate
ACCEPT_ENCODING = "gzip, deflate"

# 安全协议
SECURE_SCHEME = "https"
SUPPORTED_SCHEMES = {"http", "https"}

# 安全连接允许的 TLS 协议版本
DEFAULT_TLS_VERSIONS = (
    ssl.TLSVersion.TLSv1,
    ssl.TLSVersion.TLSv1_1,
    ssl.TLSVersion.TLSv1_2,
)

# 请求 ID 前缀
REQUEST_ID_PREFIX = "REQ"
