"""
Dispatch Configuration
======================
Proxy, TLS and gateway settings, loaded from the environment.

All values are threaded through explicit config objects passed to the
dispatcher and gateways at construction time.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Union

DEFAULT_PROXY_HOST = "10.194.81.45"
DEFAULT_PROXY_PORT = 8080
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_JSON_GATEWAY_URL = "https://amritsarovar.gov.in/EmailSmsServer/api/sendotp"
DEFAULT_GOV_GATEWAY_URL = "https://msdgweb.mgov.gov.in/esms/sendsmsrequestDLT"

TLS_VERSIONS = ("TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_tls_version(environ: Mapping[str, str], name: str) -> Optional[str]:
    raw = environ.get(name, "").strip()
    if not raw:
        return None
    if raw not in TLS_VERSIONS:
        raise ValueError(f"{name} must be one of {', '.join(TLS_VERSIONS)}, got {raw!r}")
    return raw


@dataclass(frozen=True)
class ProxyConfig:
    """Forward proxy the outbound call is routed through."""
    host: str = DEFAULT_PROXY_HOST
    port: int = DEFAULT_PROXY_PORT
    protocol: str = "http"

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


@dataclass(frozen=True)
class TlsPolicy:
    """
    TLS trust and version pinning for the gateway connection.

    ``reject_unauthorized=False`` disables certificate validation. It exists
    for networks with an intercepting proxy and for legacy gateways only.
    """
    reject_unauthorized: bool = True
    min_version: Optional[str] = None
    max_version: Optional[str] = None

    def __post_init__(self):
        for version in (self.min_version, self.max_version):
            if version is not None and version not in TLS_VERSIONS:
                raise ValueError(f"Unsupported TLS version: {version!r}")


@dataclass(frozen=True)
class RequestSettings:
    """Fully resolved settings for a single outbound request."""
    proxy: Optional[ProxyConfig]
    tls: TlsPolicy
    timeout_ms: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class DispatchOptions:
    """Per-call overrides. ``None`` means "use the configured default"."""
    proxy_host: Optional[str] = None
    proxy_port: Optional[int] = None
    use_proxy: Optional[bool] = None
    timeout_ms: Optional[int] = None
    reject_unauthorized: Optional[bool] = None
    headers: Optional[Dict[str, str]] = None

    @classmethod
    def coerce(cls, options: Union["DispatchOptions", Mapping[str, Any], None]) -> "DispatchOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls(**dict(options))

    def with_headers(self, extra: Mapping[str, str]) -> "DispatchOptions":
        """Return a copy with ``extra`` merged over the existing headers."""
        return replace(self, headers={**(self.headers or {}), **extra})


@dataclass(frozen=True)
class DispatchConfig:
    """Defaults for every dispatch made by one dispatcher."""
    proxy: Optional[ProxyConfig] = field(default_factory=ProxyConfig)
    tls: TlsPolicy = field(default_factory=TlsPolicy)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    headers: Dict[str, str] = field(default_factory=dict)
    log_full_code: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DispatchConfig":
        """
        Build config from environment variables.

        An empty ``OTP_PROXY_HOST`` disables the proxy (direct connection).
        """
        env = os.environ if environ is None else environ

        proxy_host = env.get("OTP_PROXY_HOST", DEFAULT_PROXY_HOST).strip()
        proxy = None
        if proxy_host:
            proxy = ProxyConfig(
                host=proxy_host,
                port=int(env.get("OTP_PROXY_PORT", DEFAULT_PROXY_PORT)),
            )

        return cls(
            proxy=proxy,
            tls=TlsPolicy(
                reject_unauthorized=_env_bool(env, "OTP_REJECT_UNAUTHORIZED", True),
                min_version=_env_tls_version(env, "OTP_TLS_MIN_VERSION"),
                max_version=_env_tls_version(env, "OTP_TLS_MAX_VERSION"),
            ),
            timeout_ms=int(env.get("OTP_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)),
            log_full_code=_env_bool(env, "OTP_LOG_FULL_CODE", False),
        )

    def resolve(
        self,
        options: Optional[DispatchOptions] = None,
        tls: Optional[TlsPolicy] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> RequestSettings:
        """
        Merge per-call options over these defaults.

        Precedence, lowest first: config, gateway (``tls``/``headers``),
        caller ``options``. Caller headers win on key collision.
        """
        options = options or DispatchOptions()

        proxy = self.proxy
        if options.use_proxy is False:
            proxy = None
        elif options.proxy_host or options.proxy_port:
            base = proxy or ProxyConfig()
            proxy = replace(
                base,
                host=options.proxy_host or base.host,
                port=int(options.proxy_port or base.port),
            )

        policy = tls or self.tls
        if options.reject_unauthorized is not None:
            policy = replace(policy, reject_unauthorized=options.reject_unauthorized)

        timeout_ms = options.timeout_ms if options.timeout_ms is not None else self.timeout_ms
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

        return RequestSettings(
            proxy=proxy,
            tls=policy,
            timeout_ms=int(timeout_ms),
            headers={**self.headers, **(headers or {}), **(options.headers or {})},
        )


@dataclass(frozen=True)
class GovGatewayConfig:
    """Credentials and message template for the signed government gateway."""
    username: str = ""
    password: str = field(default="", repr=False)
    sender_id: str = ""
    secure_key: str = field(default="", repr=False)
    template_id: str = ""
    api_url: str = DEFAULT_GOV_GATEWAY_URL
    message_prefix: str = "Your OTP is"
    message_suffix: str = "- Digital India Corporation"
    # The legacy gateway rejects modern-only negotiation and serves a
    # certificate chain that does not validate.
    tls: TlsPolicy = field(
        default_factory=lambda: TlsPolicy(
            reject_unauthorized=False,
            min_version="TLSv1.2",
            max_version="TLSv1.2",
        )
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GovGatewayConfig":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            username=env.get("GOV_SMS_USERNAME", ""),
            password=env.get("GOV_SMS_PASSWORD", ""),
            sender_id=env.get("GOV_SMS_SENDER_ID", ""),
            secure_key=env.get("GOV_SMS_SECURE_KEY", ""),
            template_id=env.get("GOV_SMS_TEMPLATE_ID", ""),
            api_url=env.get("GOV_SMS_API_URL", defaults.api_url),
            message_prefix=env.get("GOV_SMS_MESSAGE_PREFIX", defaults.message_prefix),
            message_suffix=env.get("GOV_SMS_MESSAGE_SUFFIX", defaults.message_suffix),
            tls=TlsPolicy(
                reject_unauthorized=_env_bool(env, "GOV_SMS_REJECT_UNAUTHORIZED", False),
                min_version=_env_tls_version(env, "GOV_SMS_TLS_MIN_VERSION") or "TLSv1.2",
                max_version=_env_tls_version(env, "GOV_SMS_TLS_MAX_VERSION") or "TLSv1.2",
            ),
        )
