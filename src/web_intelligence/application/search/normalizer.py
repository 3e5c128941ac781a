"""
Result Normalizer - runs a provider's normalize function behind one boundary.

Every provider payload crosses into the common schema here. Whatever goes
wrong inside a provider-specific normalize function is reported as that
provider's ``ProviderMalformedResponseError``; no provider-specific shape
leaves this module.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from web_intelligence.domain.entities import NormalizedPayload
from web_intelligence.shared.exceptions import ProviderMalformedResponseError

if TYPE_CHECKING:
    from web_intelligence.domain.entities import ProviderCapability, RawProviderResult

logger = logging.getLogger(__name__)


class ResultNormalizer:
    """Apply ``capability.normalize`` and tidy the outcome."""

    def normalize(self, raw: RawProviderResult, capability: ProviderCapability) -> NormalizedPayload:
        """
        Normalize one raw payload.

        Raises:
            ProviderMalformedResponseError: the payload does not have the expected shape
        """
        if raw.provider != capability.name:
            raise ProviderMalformedResponseError(
                capability.name, f"payload belongs to '{raw.provider}'"
            )
        try:
            payload = capability.normalize(raw)
        except ProviderMalformedResponseError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"{capability.name}: cannot normalize payload: {e}")
            raise ProviderMalformedResponseError(capability.name, f"cannot normalize payload: {e}") from e

        answer = payload.answer.strip() if payload.answer else None
        if not capability.supplies_answer:
            answer = None
        return NormalizedPayload(
            results=payload.results,
            answer=answer or None,
            follow_up_questions=payload.follow_up_questions,
        )
