"""社交平台 API 异常"""


class SocialAPIError(Exception):
    """社交平台 API 调用失败

    recoverable 由状态码推导：网络错误（无状态码）、429、5xx 可重试，
    其余 4xx 视为请求本身有问题，重试无意义。
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def recoverable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class TokenRefreshError(SocialAPIError):
    """OAuth2 刷新 access token 失败"""
