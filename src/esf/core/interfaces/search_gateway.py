"""SearchGatewayPort: the three calls the job tracker makes to the search service."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Union

from esf.core.models.query import SearchQuery
from esf.core.models.result import ResultBundle, SubmissionPending

SubmitOutcome = Union[ResultBundle, SubmissionPending]


class SearchGatewayPort(ABC):
	"""Port abstraction over the remote search service."""

	@abstractmethod
	async def submit(self, query: SearchQuery) -> SubmitOutcome:
		"""Send the job parameters.

		Returns the bundle when the service answered with a finished search,
		otherwise a SubmissionPending marker. Raises TransportError when the
		call itself did not complete, ApplicationError (or its ProtocolError
		subclass) when the service reported failure or answered off-shape.
		"""
		raise NotImplementedError

	@abstractmethod
	async def fetch_status(self) -> Optional[str]:
		"""Return the latest coarse status label, or None for "no new information".

		Never raises for transport or protocol failures.
		"""
		raise NotImplementedError

	@abstractmethod
	async def fetch_result(self) -> Optional[ResultBundle]:
		"""Return the bundle once the service reports completion, else None.

		Idempotent. Raises ApplicationError when the service reports the search
		failed, ProtocolError when a completed reply is malformed.
		"""
		raise NotImplementedError
