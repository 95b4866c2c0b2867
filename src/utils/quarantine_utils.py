import logging
from typing import Tuple

import pyspark.sql.functions as F
from pyspark.sql import Column, DataFrame, SparkSession

from schema_registry.schema_registry import QUARANTINE_REASON_COLUMN
from sinks.delta_sink import DeltaSink

logger = logging.getLogger(__name__)

ROW_HASH_COLUMN = "quarantine_row_hash"


class QuarantineUtils:
    @staticmethod
    def split_valid_invalid(df: DataFrame, reason: Column) -> Tuple[DataFrame, DataFrame]:
        """
        Split a DataFrame in valid and rejected record DataFrames

        :param df: Input DataFrame
        :param reason: Column expression that yields a rejection reason, or NULL for a valid row
        :return: Tuple of valid and rejected DataFrames; rejected rows carry `_quarantine_reason`
        """
        classified = df.withColumn(QUARANTINE_REASON_COLUMN, reason)

        invalid_df = classified.filter(F.col(QUARANTINE_REASON_COLUMN).isNotNull())
        valid_df = classified.filter(F.col(QUARANTINE_REASON_COLUMN).isNull()).drop(QUARANTINE_REASON_COLUMN)

        return valid_df, invalid_df

    @staticmethod
    def with_row_hash(df: DataFrame) -> DataFrame:
        """
        Add a stable sha256 hash over all data columns, used as merge key for quarantine tables.
        Metadata columns that change per run (ingestion_timestamp, run_id) are excluded for idempotency.
        """
        volatile = {"ingestion_timestamp", "ingestion_date", "run_id", ROW_HASH_COLUMN}
        stable_cols = [c for c in df.columns if c not in volatile]
        hash_input = F.concat_ws("||", *[F.coalesce(F.col(c).cast("string"), F.lit("<null>")) for c in stable_cols])

        return df.withColumn(ROW_HASH_COLUMN, F.sha2(hash_input, 256))

    @staticmethod
    def merge_upsert(
        spark: SparkSession, df: DataFrame, quarantine_path: str, dataset_name: str
    ) -> int:
        """
        Write rejected or flagged records to a quarantine Delta table for manual review.

        :param spark: Active SparkSession
        :param df: Input DataFrame
        :param quarantine_path: Target path to store the quarantine DataFrame
        :param dataset_name: Dataset name for logging
        :return: Number of records offered to the quarantine table
        """
        if df.isEmpty():
            return 0

        df_with_hash = QuarantineUtils.with_row_hash(df)
        count = df_with_hash.count()

        DeltaSink.upsert_with_merge(spark, df_with_hash, quarantine_path, dataset_name, [ROW_HASH_COLUMN])

        logger.warning(
            f"Quarantined {count:,} records for {dataset_name} to {quarantine_path}"
        )
        return count
