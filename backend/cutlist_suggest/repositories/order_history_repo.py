"""Historical order records — raw ratio samples for the smart-apply fallback.

Read-only. Scans stored cutting lists for items matching a
product/size/profile/measurement and turns each historical work order into
one ``RatioSample``.
"""

from typing import Dict, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from cutlist_suggest.domain.normalization import (
    normalize,
    normalize_measurement,
    normalize_profile,
)
from cutlist_suggest.logging_config import get_logger
from cutlist_suggest.models.cutting_list import CuttingListItemModel, CuttingListModel
from cutlist_suggest.repositories.base import BaseRepository
from cutlist_suggest.schemas.pattern import RatioSample

logger = get_logger(__name__)


def _section_products(sections) -> List[str]:
    names = []
    for section in sections or []:
        if isinstance(section, dict):
            names.append(normalize(section.get("product_name") or section.get("productName")))
    return names


class OrderHistoryRepository(BaseRepository[CuttingListModel]):
    def __init__(self, db: Session):
        super().__init__(db, CuttingListModel)

    def add_cutting_list(self, cutting_list: CuttingListModel) -> CuttingListModel:
        """Persist a cutting list with its items (caller must commit)."""
        return self.add_row(cutting_list)

    def find_ratio_samples(
        self,
        product_name: str,
        size: str,
        profile: str,
        measurement: str,
    ) -> List[RatioSample]:
        """One ratio sample per historical work order for this exact profile/measurement.

        Lists qualify when a section's product name contains ``product_name``;
        items qualify when their size contains ``size``, their profile equals
        ``profile`` and their length rounds to ``measurement``, all compared
        normalized. Items without a positive quantity and order quantity are
        skipped. Failures are logged and yield an empty list.
        """
        product = normalize(product_name)
        wanted_size = normalize(size)
        wanted_profile = normalize_profile(profile)
        wanted_measurement = normalize_measurement(measurement)

        try:
            lists = (
                self._query()
                .options(selectinload(CuttingListModel.items))
                .order_by(CuttingListModel.id)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error(
                "order_history_scan_failed",
                product_name=product_name,
                size=size,
                profile=profile,
                measurement=measurement,
                error=str(exc),
            )
            return []

        samples: Dict[Tuple[str, str, str], RatioSample] = {}
        for cutting_list in lists:
            if not any(product in name for name in _section_products(cutting_list.sections)):
                continue
            for item in cutting_list.items:
                if not self._item_matches(item, wanted_size, wanted_profile, wanted_measurement):
                    continue
                key = (item.work_order_id, wanted_profile, wanted_measurement)
                if key in samples:
                    continue
                samples[key] = RatioSample(
                    order_qty=item.order_quantity,
                    profile_qty=item.quantity,
                    ratio=item.quantity / item.order_quantity,
                )

        logger.debug(
            "order_history_scanned",
            product_name=product,
            size=wanted_size,
            profile=wanted_profile,
            measurement=wanted_measurement,
            lists=len(lists),
            samples=len(samples),
        )
        return list(samples.values())

    @staticmethod
    def _item_matches(
        item: CuttingListItemModel,
        size: str,
        profile: str,
        measurement: str,
    ) -> bool:
        if not item.quantity or item.quantity <= 0:
            return False
        if not item.order_quantity or item.order_quantity <= 0:
            return False
        if size not in normalize(item.size):
            return False
        if normalize_profile(item.profile_type) != profile:
            return False
        return normalize_measurement(f"{item.length}mm") == measurement
