"""
XBRL Validator Gateway.

All outbound HTTP calls to the remote XBRL rule engine go through this class.

  - POST {XBRL_VALIDATOR_URL}/validate  {"xbrl_content": "<xml>"}
  - GET  {XBRL_VALIDATOR_URL}/health    {"status": "ok"}

Retry: up to XBRL_VALIDATOR_RETRIES extra attempts (default 2), backoff
1 s → 4 s, only on 502/503/504, timeouts and connection errors. Any other
status is returned as-is on the first attempt.

Timeout: (XBRL_VALIDATOR_OPEN_TIMEOUT, XBRL_VALIDATOR_READ_TIMEOUT), 5 s / 30 s.

The gateway never raises for transport problems: callers always get a
GatewayResult and check ``.ok`` / ``.status_code``.

Testability: pass a mock ``session`` to ValidatorGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time

import requests
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [1, 4]
_TRANSIENT_STATUSES = {502, 503, 504}

# ── Defaults (overridden by app config) ────────────────────────────────────
_DEFAULT_URL = "http://localhost:8000"
_DEFAULT_OPEN_TIMEOUT = 5
_DEFAULT_READ_TIMEOUT = 30


class GatewayResult:
    """Structured return value from ValidatorGateway calls.

    Attributes:
        ok:           True for HTTP 2xx with a JSON body.
        status_code:  HTTP status code (None if network-level failure).
        data:         Parsed JSON response body, else None.
        error:        Human-readable error message or None.
        duration_ms:  Round-trip latency of the last attempt.
        attempts:     Number of HTTP attempts made.
    """

    def __init__(
        self,
        ok: bool,
        status_code: int | None,
        data: dict | list | None,
        error: str | None,
        duration_ms: int,
        attempts: int = 1,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms
        self.attempts = attempts

    def __repr__(self):
        return f"<GatewayResult ok={self.ok} status={self.status_code} attempts={self.attempts}>"


class ValidatorGateway:
    """Remote XBRL validator client.

    Instantiate once at module level (module-level singleton pattern).
    Settings not given to the constructor are read from the Flask app
    config on every call.

    Usage:
        from amsf_filing.integrations.validator_gateway import validator_gateway
        result = validator_gateway.validate(xml)
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str | None = None,
        open_timeout: float | None = None,
        read_timeout: float | None = None,
        retries: int | None = None,
    ) -> None:
        self._session: requests.Session | None = session
        self._base_url = base_url
        self._open_timeout = open_timeout
        self._read_timeout = read_timeout
        self._retries = retries

    # ── Settings ─────────────────────────────────────────────────────────────

    @staticmethod
    def _config(key, default):
        if has_app_context():
            return current_app.config.get(key, default)
        return default

    @property
    def base_url(self) -> str:
        url = self._base_url or self._config("XBRL_VALIDATOR_URL", _DEFAULT_URL)
        return url.rstrip("/")

    @property
    def timeout(self) -> tuple[float, float]:
        open_timeout = self._open_timeout
        if open_timeout is None:
            open_timeout = self._config("XBRL_VALIDATOR_OPEN_TIMEOUT", _DEFAULT_OPEN_TIMEOUT)
        read_timeout = self._read_timeout
        if read_timeout is None:
            read_timeout = self._config("XBRL_VALIDATOR_READ_TIMEOUT", _DEFAULT_READ_TIMEOUT)
        return (float(open_timeout), float(read_timeout))

    @property
    def retries(self) -> int:
        retries = self._retries
        if retries is None:
            retries = self._config("XBRL_VALIDATOR_RETRIES", _RETRY_MAX)
        return max(int(retries), 0)

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Core request dispatcher ──────────────────────────────────────────────

    def request(
        self, method: str, path: str, *, json_body: dict | None = None, retries: int | None = None,
    ) -> GatewayResult:
        """Execute a request with bounded retries. Never raises.

        ``retries`` overrides the configured retry count for this call.

        Returns:
            GatewayResult. ``data`` is populated for any response carrying a
            JSON body (including 422), so callers can read structured errors.
        """
        url = f"{self.base_url}{path}"
        timeout = self.timeout
        max_retries = self.retries if retries is None else max(int(retries), 0)
        last_error = "Unknown error"
        last_status: int | None = None
        duration_ms = 0

        for attempt in range(max_retries + 1):
            try:
                t0 = time.perf_counter()
                resp = self.session.request(
                    method, url,
                    json=json_body,
                    headers={"Accept": "application/json"},
                    timeout=timeout,
                )
                duration_ms = int((time.perf_counter() - t0) * 1000)
                last_status = resp.status_code

                try:
                    data = resp.json() if resp.content else None
                except ValueError:
                    data = None

                if resp.ok:
                    if not isinstance(data, dict):
                        return GatewayResult(
                            ok=False, status_code=resp.status_code, data=None,
                            error="Malformed JSON response from validator",
                            duration_ms=duration_ms, attempts=attempt + 1,
                        )
                    return GatewayResult(
                        ok=True, status_code=resp.status_code, data=data, error=None,
                        duration_ms=duration_ms, attempts=attempt + 1,
                    )

                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code not in _TRANSIENT_STATUSES:
                    return GatewayResult(
                        ok=False, status_code=resp.status_code,
                        data=data if isinstance(data, dict) else None,
                        error=last_error, duration_ms=duration_ms, attempts=attempt + 1,
                    )
                logger.warning(
                    "Validator request failed attempt=%d/%d status=%d url=%s",
                    attempt + 1, max_retries + 1, resp.status_code, url,
                )

            except requests.Timeout:
                last_status = None
                last_error = f"Request timed out after {timeout[1]}s"
                logger.warning(
                    "Validator request timed out attempt=%d/%d url=%s",
                    attempt + 1, max_retries + 1, url,
                )

            except requests.RequestException as exc:
                last_status = None
                last_error = str(exc)[:500]
                logger.warning(
                    "Validator network error attempt=%d/%d url=%s error=%s",
                    attempt + 1, max_retries + 1, url, last_error,
                )

            if attempt < max_retries:
                sleep_s = _RETRY_BACKOFF_SECONDS[min(attempt, len(_RETRY_BACKOFF_SECONDS) - 1)]
                logger.info("Retrying validator request in %ss (attempt %d)", sleep_s, attempt + 2)
                time.sleep(sleep_s)

        logger.error("Validator unavailable after %d attempts: %s", max_retries + 1, last_error)
        return GatewayResult(
            ok=False, status_code=last_status, data=None, error=last_error,
            duration_ms=duration_ms, attempts=max_retries + 1,
        )

    # ── Validator operations ─────────────────────────────────────────────────

    def validate(self, xbrl_content: str) -> GatewayResult:
        return self.request("POST", "/validate", json_body={"xbrl_content": xbrl_content})

    def health_check(self, retries: int = 0) -> bool:
        """True when GET /health answers {"status": "ok"}. Single attempt by default."""
        result = self.request("GET", "/health", retries=retries)
        return bool(result.ok and result.data.get("status") == "ok")


# Module-level singleton
validator_gateway = ValidatorGateway()
