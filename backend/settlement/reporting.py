"""Signing and submission boundary.

The encoded payload is handed to a signer together with its encoder, signing
and hashing identifiers. The signed report is opaque to this service and is
forwarded untouched to the submitter, whose answer is surfaced verbatim.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from loguru import logger

from app.core.config import Settings
from app.domain import ReportSubmissionError, SignedReport, SubmissionResult

ENCODER_NAME = "evm"
SIGNING_ALGO = "ecdsa"
HASHING_ALGO = "keccak256"


@dataclass(slots=True, frozen=True)
class ReportRequest:
    encoded_payload: str
    encoder_name: str = ENCODER_NAME
    signing_algo: str = SIGNING_ALGO
    hashing_algo: str = HASHING_ALGO

    def to_dict(self) -> dict[str, Any]:
        return {
            "encodedPayload": self.encoded_payload,
            "encoderName": self.encoder_name,
            "signingAlgo": self.signing_algo,
            "hashingAlgo": self.hashing_algo,
        }


class ReportGateway(Protocol):
    def generate_report(self, request: ReportRequest) -> SignedReport:
        raise NotImplementedError

    def submit(self, report: SignedReport, *, receiver: str, gas_limit: str) -> SubmissionResult:
        raise NotImplementedError


class DryRunReportGateway:
    """Builds the report request but never broadcasts it."""

    def generate_report(self, request: ReportRequest) -> SignedReport:
        return SignedReport(request=request.to_dict(), artifact={"dryRun": True})

    def submit(self, report: SignedReport, *, receiver: str, gas_limit: str) -> SubmissionResult:
        logger.info("Dry run: report for receiver {} not written onchain (gasLimit={})", receiver, gas_limit)
        return SubmissionResult(tx_status="DRY_RUN")


def _submission_from_payload(payload: Any) -> SubmissionResult:
    if not isinstance(payload, dict):
        raise ReportSubmissionError("Submission service returned a non-object response")

    def _text(key: str) -> str | None:
        # strings pass through untouched; anything else keeps its JSON form
        value = payload.get(key)
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    return SubmissionResult(
        tx_hash=_text("txHash"),
        tx_status=_text("txStatus"),
        receiver_execution_status=_text("receiverExecutionStatus"),
        transaction_fee_wei=_text("transactionFeeWei"),
        error_message=_text("errorMessage"),
    )


class HttpReportGateway:
    """Report service client; failures are surfaced, never retried."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def _post(self, path: str, body: dict[str, Any]) -> Any:
        try:
            response = self.client.post(path, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise ReportSubmissionError(
                f"{path} returned HTTP {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ReportSubmissionError(f"{path} request failed: {exc}") from exc

    def generate_report(self, request: ReportRequest) -> SignedReport:
        artifact = self._post("/reports", request.to_dict())
        if not isinstance(artifact, dict):
            raise ReportSubmissionError("Report service returned a non-object report")
        return SignedReport(request=request.to_dict(), artifact=artifact)

    def submit(self, report: SignedReport, *, receiver: str, gas_limit: str) -> SubmissionResult:
        payload = self._post(
            "/submissions",
            {"receiver": receiver, "gasLimit": gas_limit, "report": report.artifact},
        )
        return _submission_from_payload(payload)

    def close(self) -> None:
        self.client.close()


def build_report_gateway(settings: Settings) -> ReportGateway:
    if settings.submission_mode == "http":
        return HttpReportGateway(
            str(settings.report_service_url),
            timeout=settings.report_timeout_seconds,
        )
    return DryRunReportGateway()


__all__ = [
    "DryRunReportGateway",
    "HttpReportGateway",
    "ReportGateway",
    "ReportRequest",
    "build_report_gateway",
]
