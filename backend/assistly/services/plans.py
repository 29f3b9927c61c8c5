"""
Plan storage client

Service plans live in the questionnaire store as SERVICE_PLAN entries
(title -> question, description -> answer).
"""
import logging
from typing import List
from pydantic import ValidationError

from ..core.exceptions import ApiError
from ..models.plan import Plan, QuestionnaireType
from .http import HttpService

logger = logging.getLogger(__name__)


class PlanService(HttpService):
    """List/upsert operations for the plans of an app"""

    def _endpoint(self, app_id: str) -> str:
        return f"/questionnaire/apps/{app_id}"

    async def list(self, app_id: str) -> List[Plan]:
        res = await self.request(
            "GET",
            self._endpoint(app_id),
            params={"type": int(QuestionnaireType.SERVICE_PLAN)}
        )
        items = self.data_field(res, "faqs") or []
        if not isinstance(items, list):
            raise ApiError("Invalid plan list from server", 502, items)
        try:
            return [
                Plan.from_questionnaire(item) for item in items
                if isinstance(item, dict)
                and item.get("type", QuestionnaireType.FAQ) == QuestionnaireType.SERVICE_PLAN
            ]
        except ValidationError as e:
            logger.error(f"Invalid plan list: {e}")
            raise ApiError("Invalid plan list from server", 502, items)

    async def upsert(self, app_id: str, plans: List[Plan]) -> None:
        payload = {
            "type": int(QuestionnaireType.SERVICE_PLAN),
            "items": [plan.to_payload() for plan in plans],
        }
        logger.info(f"Saving {len(plans)} plans for app {app_id}")
        await self.request("PUT", self._endpoint(app_id), json=payload)
