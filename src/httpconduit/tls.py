"""
TLS 信任策略模块

提供可插拔的服务器证书校验策略：
    - StrictCertificateValidator: 默认策略，校验证书链和主机名
    - PermissiveCertificateValidator: 接受任意证书，仅在显式开启时使用

策略同时决定 requests 的 verify 参数和 SSLContext 的校验模式，两者必须一致，
否则 urllib3 在 CERT_NONE 与 check_hostname 同时生效时会拒绝建立连接。
"""

from __future__ import annotations

import logging
import ssl
from abc import ABC, abstractmethod
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class CertificateValidator(ABC):
    """证书校验策略基类，子类需实现 verify 和 configure"""

    @property
    @abstractmethod
    def verify(self) -> bool | str:
        """传给 requests 的 verify 参数：True、CA 证书路径或 False"""

    @abstractmethod
    def configure(self, context: ssl.SSLContext) -> None:
        """
        在 SSLContext 上安装证书校验策略

        参数:
            context: 待配置的 SSLContext
        """


class StrictCertificateValidator(CertificateValidator):
    """
    严格证书校验

    参数:
        ca_bundle: 自定义 CA 证书文件路径，None 时使用系统默认证书
    """

    def __init__(self, ca_bundle: str | None = None):
        self.ca_bundle = ca_bundle

    @property
    def verify(self) -> bool | str:
        return self.ca_bundle or True

    def configure(self, context: ssl.SSLContext) -> None:
        context.check_hostname = True
        context.verify_mode = ssl.CERT_REQUIRED
        if self.ca_bundle:
            context.load_verify_locations(cafile=self.ca_bundle)


class PermissiveCertificateValidator(CertificateValidator):
    """接受任意服务器证书，不校验证书链和主机名"""

    @property
    def verify(self) -> bool:
        return False

    def configure(self, context: ssl.SSLContext) -> None:
        logger.warning("Server certificate validation is disabled, any certificate will be accepted")
        # 必须先关闭主机名校验，再降低校验模式
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE


def resolve_certificate_validator(
    certificate_validator: CertificateValidator | None,
    allow_untrusted_certificates: bool,
) -> CertificateValidator:
    """自定义策略优先；否则仅在显式开启时使用宽松策略，默认严格校验"""
    if certificate_validator is not None:
        return certificate_validator
    if allow_untrusted_certificates:
        return PermissiveCertificateValidator()
    return StrictCertificateValidator()


def build_ssl_context(
    tls_versions: Iterable[ssl.TLSVersion],
    validator: CertificateValidator,
) -> ssl.SSLContext:
    """
    构建安全连接使用的 SSLContext

    参数:
        tls_versions: 允许的 TLS 协议版本
        validator: 证书校验策略

    返回:
        协议版本限制在允许范围内、并安装了校验策略的 SSLContext

    执行步骤:
        1. 创建加载系统证书的默认上下文
        2. 将最低/最高协议版本收窄到允许列表的范围
        3. 交由校验策略设置 verify_mode 和 check_hostname
    """
    versions = sorted(tls_versions)
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.minimum_version = versions[0]
    context.maximum_version = versions[-1]
    validator.configure(context)
    return context
