"""HTTP implementation of the search gateway.

Translates the search service's reply shapes into domain values and folds
every failure into the TransportError / ApplicationError / ProtocolError
taxonomy. Resource references leave this module already resolved against the
configured base URL.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import ValidationError

from esf.core.config import GatewayConfig
from esf.core.exceptions import ApplicationError, ProtocolError, TransportError
from esf.core.interfaces.http_client import HttpClientPort
from esf.core.interfaces.retry import RetryPort
from esf.core.interfaces.search_gateway import SearchGatewayPort, SubmitOutcome
from esf.core.models.query import SearchQuery
from esf.core.models.result import ResultBundle, SubmissionPending
from esf.core.settings import logger
from esf.core.utils.link_resolver import resolve_bundle_references

COMPLETED_RESULT_STATUS = "completed"
FAILED_RESULT_STATUS = "failed"


class HttpSearchGateway(SearchGatewayPort):
    def __init__(
        self,
        http_client: HttpClientPort,
        config: GatewayConfig,
        retry_port: Optional[RetryPort] = None,
    ) -> None:
        self._http = http_client
        self.config = config
        self._retry = retry_port

    async def submit(self, query: SearchQuery) -> SubmitOutcome:
        url = self.config.url_for(self.config.submit_path)
        logger.debug(
            f"[gateway:submit] POST url={url} mode={query.search_mode} database={query.database} "
            f"sequence_len={len(query.sequence)}"
        )
        resp = await self._http.post(
            url,
            json=query.to_submission_payload(),
            timeout=self.config.submit_timeout,
        )
        status = resp.get("status") or 0
        body = resp.get("body")
        logger.debug(f"[gateway:submit] reply status={status} body_type={type(body).__name__}")

        if status in self.config.transient_statuses:
            raise TransportError(
                "The submission did not get through; the search may still be running.",
                diagnostic=f"POST {url} answered {status}",
            )
        if status >= 400:
            raise ApplicationError(
                self._error_message(body, status),
                upstream_status=status,
                diagnostic=str(body)[:200],
            )
        if self._is_pending(status, body):
            label = body.get("status") if isinstance(body, dict) else None
            return SubmissionPending(status_label=label if isinstance(label, str) else None)
        return self._parse_bundle(body, status)

    async def fetch_status(self) -> Optional[str]:
        url = self.config.url_for(self.config.status_path)
        try:
            resp = await self._http.get(url, timeout=self.config.request_timeout)
        except (TransportError, ProtocolError) as exc:
            logger.warning(f"[gateway:status] no status this round url={url} error={exc.message}")
            return None

        status = resp.get("status") or 0
        body = resp.get("body")
        if status >= 400:
            logger.warning(f"[gateway:status] status endpoint answered {status}")
            return None
        label = body.get("status") if isinstance(body, dict) else None
        if not isinstance(label, str):
            logger.warning(f"[gateway:status] reply without status label body_type={type(body).__name__}")
            return None
        return label

    async def fetch_result(self) -> Optional[ResultBundle]:
        url = self.config.url_for(self.config.result_path)

        async def fetch() -> Dict[str, Any]:
            return await self._http.get(url, timeout=self.config.request_timeout)

        try:
            if self._retry:
                resp = await self._retry.execute(
                    fetch,
                    attempts=self.config.result_fetch_attempts,
                    wait_initial=self.config.result_retry_base_wait,
                    wait_max=self.config.result_retry_max_wait,
                    exception_types=(TransportError,),
                )
            else:
                resp = await fetch()
        except TransportError as exc:
            logger.warning(f"[gateway:result] result fetch did not complete url={url} error={exc.message}")
            return None
        except ProtocolError as exc:
            # Without a readable reply we cannot tell whether the search finished
            logger.warning(f"[gateway:result] unreadable result reply url={url} diagnostic={exc.diagnostic}")
            return None

        status = resp.get("status") or 0
        body = resp.get("body")
        if not isinstance(body, dict):
            logger.warning(f"[gateway:result] non-object result reply status={status}")
            return None

        if status in self.config.transient_statuses:
            logger.warning(f"[gateway:result] result endpoint answered {status}; trying again next tick")
            return None

        label = str(body.get("status") or "").strip().lower()
        error = body.get("error")
        if label == FAILED_RESULT_STATUS or (status >= 400 and isinstance(error, str) and error):
            raise ApplicationError(
                error if isinstance(error, str) and error else "The search failed on the remote service",
                upstream_status=status,
            )
        if status >= 400:
            logger.debug(f"[gateway:result] result endpoint answered {status}; not ready")
            return None
        if label != COMPLETED_RESULT_STATUS:
            logger.debug(f"[gateway:result] not ready label={label or None}")
            return None

        return self._parse_bundle(body.get("results"), status)

    # ----------------- Helpers -----------------
    def _is_pending(self, status: int, body: Any) -> bool:
        if status == 202:
            return True
        # A success reply without the summary text carries no result yet
        return isinstance(body, dict) and "response" not in body and "summary_text" not in body and "status" in body

    def _error_message(self, body: Any, status: int) -> str:
        if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
            return body["error"]
        return f"The search service answered HTTP {status}"

    def _parse_bundle(self, body: Any, status: int) -> ResultBundle:
        if not isinstance(body, dict):
            raise ProtocolError(
                diagnostic=f"expected result object, got {type(body).__name__}",
                upstream_status=status,
            )
        try:
            bundle = ResultBundle.model_validate(body)
        except ValidationError as exc:
            raise ProtocolError(diagnostic=str(exc)[:500], upstream_status=status) from exc
        return resolve_bundle_references(str(self.config.base_url), bundle)
