"""Failure modes of the resolution engine."""

from __future__ import annotations


class CatastroError(RuntimeError):
    code = "catastro_error"

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": str(self)}


class InputError(CatastroError, ValueError):
    """Required input missing or malformed; raised before any network call."""

    code = "input_error"


class UpstreamUnreachable(CatastroError):
    """Transport failed on every attempt. Never reinterpreted as not found."""

    code = "upstream_unreachable"

    def __init__(self, url: str, attempts: int, cause: Exception | None = None):
        super().__init__(f"Upstream unreachable after {attempts} attempt(s): {url} ({cause})")
        self.url = url
        self.attempts = attempts
        self.cause = cause


class UpstreamBadResponse(CatastroError):
    """Non-2xx status or unusable body for a single step."""

    code = "upstream_bad_response"

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class EnrichmentFailed(CatastroError):
    code = "enrichment_failed"
