import logging
from typing import Dict, NamedTuple

import pyspark.sql.functions as F
from pyspark.sql import DataFrame

from schema_registry.observations_schema import OBSERVATION_COLUMNS
from transformations.country_normalizer import CountryNormalizer
from transformations.duplicate_resolver import GROUP_KEY_COLUMNS, DuplicateResolver
from transformations.outlier_detector import OutlierDetector

logger = logging.getLogger(__name__)

CLEANED_SORT_COLUMNS = ["country", "location_name", "last_updated"]


class ReconciliationResult(NamedTuple):
    """Cleaned observations plus every exclusion set that was applied to build them"""

    cleaned: DataFrame
    outliers: DataFrame
    duplicate_keys: DataFrame
    averaged: DataFrame
    overlaps: DataFrame

    def summary(self) -> Dict[str, int]:
        return {
            "cleaned_rows": self.cleaned.count(),
            "wind_outliers": self.outliers.count(),
            "duplicate_groups": self.duplicate_keys.count(),
            "averaged_rows": self.averaged.count(),
            "duplicate_outlier_overlaps": self.overlaps.count(),
        }


class CleaningReconciler:
    """
    Merges kept originals, averaged duplicates and excluded outliers into the cleaned table.

    Wind outliers and duplicate groups are computed as two explicit sets. When an outlier row
    belongs to a duplicate group the outlier exclusion wins: the row is reported in `overlaps`,
    removed, and the group is resolved from its remaining rows only. A group left with a single
    row keeps that row unchanged, a group left empty disappears. Consequently no averaged row
    ever contains an outlier and (location_name, date) stays unique.
    """

    def __init__(self, outlier_detector: OutlierDetector, country_normalizer: CountryNormalizer) -> None:
        self.outlier_detector = outlier_detector
        self.country_normalizer = country_normalizer

    def _find_overlaps(self, observations: DataFrame, outliers: DataFrame) -> DataFrame:
        """Outlier rows that are members of a duplicate group of the unfiltered observations"""
        raw_duplicate_keys = DuplicateResolver.find_duplicate_keys(observations).select(*GROUP_KEY_COLUMNS)

        return DuplicateResolver.with_group_key(outliers).join(
            raw_duplicate_keys, on=GROUP_KEY_COLUMNS, how="left_semi"
        )

    def reconcile(self, df: DataFrame) -> ReconciliationResult:
        """
        Build the cleaned observation table

        :param df: Validated observations (typed `last_updated`, required fields present)
        :return: ReconciliationResult with the cleaned table and the exclusion sets
        """
        logger.info("Start reconciling observations")

        observations = df.select(*OBSERVATION_COLUMNS)

        kept, outliers = self.outlier_detector.split(observations)
        overlaps = self._find_overlaps(observations, outliers)

        duplicate_keys, averaged = DuplicateResolver.resolve(kept)

        originals = (
            DuplicateResolver.with_group_key(kept)
            .join(duplicate_keys.select(*GROUP_KEY_COLUMNS), on=GROUP_KEY_COLUMNS, how="left_anti")
            .select(*OBSERVATION_COLUMNS)
        )

        cleaned = self.country_normalizer.normalize(originals.unionByName(averaged))
        cleaned = cleaned.orderBy(*[F.col(c).asc() for c in CLEANED_SORT_COLUMNS])

        logger.info("Reconciliation complete")

        return ReconciliationResult(
            cleaned=cleaned,
            outliers=outliers,
            duplicate_keys=duplicate_keys,
            averaged=averaged,
            overlaps=overlaps,
        )
