"""HTTP clients for the hosted backend API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter, ValidationError
from pydantic.alias_generators import to_snake

from gigbook.config import get_service_config
from gigbook.models import (
    AnalysisResult,
    DuplicateCheckResult,
    SupplierData,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gigbook.config import ServiceConfig
    from gigbook.models import DuplicateCandidate, SupplierMapping

logger = logging.getLogger(__name__)

_mapping_adapter = TypeAdapter(dict[str, SupplierData])


class ServiceError(RuntimeError):
    """The backend answered with an error or an unexpected payload."""


def _snake_keys(value: Any) -> Any:
    """Recursively convert camelCase keys to snake_case.

    Not applied to supplier mappings, whose keys are supplier names.
    """
    if isinstance(value, dict):
        return {to_snake(k): _snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


class _ApiClient:
    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or get_service_config()
        headers = {}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        self.client = client or httpx.Client(
            base_url=self.config.base_url,
            headers=headers,
            timeout=self.config.timeout,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc}"
            raise ServiceError(msg) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            detail = payload.get("error") if isinstance(payload, dict) else None
            reason = detail or response.reason_phrase
            msg = f"{method} {path} returned {response.status_code}: {reason}"
            raise ServiceError(msg)
        return payload


class DuplicateCheckClient(_ApiClient):
    """Batch duplicate check against the user's stored expenses."""

    path = "/api/expenses/check-duplicate"

    def check(
        self, candidates: Sequence[DuplicateCandidate]
    ) -> list[DuplicateCheckResult]:
        body = {
            "expenses": [
                {
                    "date": c.date.isoformat(),
                    "supplier": c.supplier,
                    "amount": float(c.amount),
                }
                for c in candidates
            ]
        }
        payload = self._request("PUT", self.path, json=body)
        try:
            return [
                DuplicateCheckResult.model_validate(_snake_keys(item))
                for item in payload.get("results", [])
            ]
        except ValidationError as exc:
            msg = f"Unexpected duplicate check response: {exc}"
            raise ServiceError(msg) from exc


class ExtractionClient(_ApiClient):
    """AI document classification and field extraction."""

    path = "/api/import/analyze"

    def analyze(self, filename: str, content_type: str, data: bytes) -> AnalysisResult:
        payload = self._request(
            "POST", self.path, files={"file": (filename, data, content_type)}
        )
        payload = _snake_keys(payload)
        document = {k: v for k, v in (payload.get("data") or {}).items() if v is not None}
        document["type"] = payload.get("type")
        try:
            return AnalysisResult.model_validate(
                {
                    "confidence": payload.get("confidence", 0),
                    "document": document,
                    "suggested_filename": payload.get("suggested_filename") or "",
                    "client_match": payload.get("client_match"),
                }
            )
        except ValidationError as exc:
            msg = f"Unexpected analysis response for {filename}: {exc}"
            raise ServiceError(msg) from exc


class SupplierMappingClient(_ApiClient):
    """Historical supplier -> category mapping for the current user."""

    path = "/api/expenses/supplier-categories"

    def load(self) -> SupplierMapping:
        payload = self._request("GET", self.path)
        try:
            mapping = _mapping_adapter.validate_python(payload.get("mapping") or {})
        except ValidationError as exc:
            msg = f"Unexpected supplier mapping response: {exc}"
            raise ServiceError(msg) from exc
        logger.debug("Loaded %d supplier mappings", len(mapping))
        return mapping
