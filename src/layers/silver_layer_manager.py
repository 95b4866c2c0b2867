import logging
from typing import Dict, List, Optional, Tuple

import pyspark.sql.functions as F
from pyspark.sql import Column, DataFrame, SparkSession

from core.configuration_manager import ConfigurationManager
from schema_registry.schema_registry import SCHEMAS, conform_to_schema
from sinks.delta_sink import DeltaSink
from transformations.cleaning_reconciler import CleaningReconciler, ReconciliationResult
from transformations.country_normalizer import CountryNormalizer
from transformations.outlier_detector import OutlierDetector
from utils.logging_utils import log_counts, log_footer, log_header
from utils.quarantine_utils import QuarantineUtils
from utils.spark_utils import SparkUtils

logger = logging.getLogger(__name__)

MISSING_REQUIRED = "missing_required"
UNPARSEABLE_TIMESTAMP = "unparseable_timestamp"

DEFAULT_REQUIRED_COLUMNS = ["country", "location_name", "latitude", "longitude", "last_updated"]
DEFAULT_DATETIME_COLUMNS = ["last_updated"]
DEFAULT_DATETIME_FORMATS = ["yyyy-MM-dd HH:mm", "yyyy-MM-dd HH:mm:ss", "yyyy/MM/dd HH:mm", "yyyy/MM/dd HH:mm:ss"]

PARSED_PREFIX = "norm_"


class SilverLayerManager:
    """Handles Silver Layer cleaning (row validation, outliers, duplicates, country names)"""

    def __init__(self, spark: SparkSession, cm: ConfigurationManager, dataset_name: str = "observations"):
        self.spark = spark
        self.cm = cm
        self.dataset_name = dataset_name

        transformations_cfg = self.cm.get_transformations("silver", dataset_name) or {}
        self.required_columns: List[str] = transformations_cfg.get("required_columns") or DEFAULT_REQUIRED_COLUMNS
        self.datetime_columns: List[str] = transformations_cfg.get("datetime_columns") or DEFAULT_DATETIME_COLUMNS
        self.datetime_formats: List[str] = transformations_cfg.get("datetime_formats") or DEFAULT_DATETIME_FORMATS

        wind_cfg = transformations_cfg.get("wind_outlier") or {}
        self.reconciler = CleaningReconciler(
            OutlierDetector(
                extreme_event_kph=wind_cfg.get("extreme_event_kph", 60.0),
                likely_error_kph=wind_cfg.get("likely_error_kph", 120.0),
            ),
            CountryNormalizer(self.cm.get_country_translations()),
        )

    def _normalize_timestamps(self, df: DataFrame) -> DataFrame:
        """
        Parse datetime columns into `norm_*` columns, trying each configured format in turn

        :param df: Input DataFrame with string datetime columns
        :return: DataFrame with additional `norm_*` timestamp columns (NULL when no format matches)
        """
        logger.info("Start normalizing datetime columns")

        for raw_col in self.datetime_columns:
            df = df.withColumn(
                f"{PARSED_PREFIX}{raw_col}",
                F.coalesce(*[F.to_timestamp(F.col(raw_col), fmt) for fmt in self.datetime_formats]),
            )

        logger.info("Normalizing datetime columns complete")
        return df

    def _rejection_reason(self) -> Column:
        """NULL for a valid row, otherwise the first defect found"""
        missing: Optional[Column] = None
        for c in self.required_columns:
            expr = F.col(c).isNull()
            if c in self.datetime_columns:
                expr = expr | (F.trim(F.col(c)) == "")
            missing = expr if missing is None else (missing | expr)

        unparseable: Optional[Column] = None
        for c in self.datetime_columns:
            expr = F.col(c).isNotNull() & F.col(f"{PARSED_PREFIX}{c}").isNull()
            unparseable = expr if unparseable is None else (unparseable | expr)

        reason = F.when(missing if missing is not None else F.lit(False), F.lit(MISSING_REQUIRED))
        return reason.when(unparseable if unparseable is not None else F.lit(False), F.lit(UNPARSEABLE_TIMESTAMP))

    def validate(self, df: DataFrame) -> Tuple[DataFrame, DataFrame]:
        """
        Split raw observations into typed valid rows and malformed rows

        :param df: Raw observations (string datetime columns)
        :return: Tuple of (valid rows with parsed timestamps, malformed rows with `_quarantine_reason`)
        """
        logger.info("Start validating observations")

        normalized = self._normalize_timestamps(df)
        valid_df, invalid_df = QuarantineUtils.split_valid_invalid(normalized, self._rejection_reason())

        for c in self.datetime_columns:
            valid_df = valid_df.withColumn(c, F.col(f"{PARSED_PREFIX}{c}")).drop(f"{PARSED_PREFIX}{c}")
            invalid_df = invalid_df.drop(f"{PARSED_PREFIX}{c}")

        logger.info("Validation complete")
        return valid_df, invalid_df

    def clean(self, df: DataFrame) -> Tuple[ReconciliationResult, DataFrame]:
        """
        Run row validation and the cleaning reconciliation on raw observations, without any I/O

        :param df: Raw observations
        :return: Tuple of (reconciliation result, malformed rows)
        """
        valid_df, malformed_df = self.validate(SparkUtils.drop_metadata(df))

        bounds = OutlierDetector.physical_bounds_report(valid_df)
        for column, count in bounds.items():
            if count:
                logger.info(f"{count:,} rows outside physical bounds for {column} (kept)")

        unmapped = [r[0] for r in self.reconciler.country_normalizer.find_unmapped_non_latin(valid_df).collect()]
        if unmapped:
            logger.warning(f"No translation for non-Latin country names (kept as is): {unmapped}")

        result = self.reconciler.reconcile(valid_df)
        return result._replace(cleaned=conform_to_schema(result.cleaned, SCHEMAS["cleaned_observations"])), malformed_df

    def transform(self) -> Dict[str, int]:
        """
        Clean the bronze snapshot into the silver table and quarantine everything that was left out

        :return: Row counts of the cleaning run
        """
        log_header(f"Start cleaning {self.dataset_name}")

        source_path = self.cm.get_layer_path("bronze", self.dataset_name)
        target_path = self.cm.get_layer_path("silver", self.dataset_name)

        bronze_df = self.spark.read.format("delta").load(source_path)
        result, malformed_df = self.clean(bronze_df)

        DeltaSink.overwrite(result.cleaned, target_path, self.dataset_name)

        malformed = QuarantineUtils.merge_upsert(
            self.spark, malformed_df, self.cm.get_quarantine_path(f"malformed_{self.dataset_name}"),
            f"malformed_{self.dataset_name}",
        )
        QuarantineUtils.merge_upsert(
            self.spark, result.outliers, self.cm.get_quarantine_path("wind_outliers"), "wind_outliers"
        )

        counts = {"bronze_rows": bronze_df.count(), "malformed_rows": malformed}
        counts.update(result.summary())

        if counts["duplicate_outlier_overlaps"]:
            logger.warning(
                f"{counts['duplicate_outlier_overlaps']:,} wind outliers belong to duplicate groups; "
                f"excluded before averaging"
            )
            QuarantineUtils.merge_upsert(
                self.spark, result.overlaps, self.cm.get_quarantine_path("duplicate_outlier_overlaps"),
                "duplicate_outlier_overlaps",
            )

        log_counts(f"Cleaning summary for {self.dataset_name}", counts)
        log_footer()
        return counts
