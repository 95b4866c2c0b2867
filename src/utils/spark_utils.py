import logging
from typing import Optional

import pyspark.sql.functions as F
from pyspark.sql import Column, DataFrame

logger = logging.getLogger(__name__)

METADATA_COLUMNS = ["ingestion_timestamp", "ingestion_date", "run_id", "source_system", "source_file"]


class SparkUtils:

    @staticmethod
    def add_metadata(
        df: DataFrame, run_id: str, source: str, source_file: Optional[str] = None
    ) -> DataFrame:
        """
        Add metadata columns to a DataFrame

        :param df: DataFrame to add metadata columns
        :param run_id: The current pipeline run ID
        :param source: Source system / dataset name
        :param source_file: full path of the ingested file
        :return: DataFrame enriched with layer metadata columns
        """
        result = (
            df.withColumn("ingestion_timestamp", F.current_timestamp())
            .withColumn("ingestion_date", F.current_date())
            .withColumn("run_id", F.lit(run_id))
            .withColumn("source_system", F.lit(source))
        )

        if source_file is not None:
            result = result.withColumn("source_file", F.lit(source_file))
        else:
            result = result.withColumn("source_file", F.input_file_name())

        return result

    @staticmethod
    def drop_metadata(df: DataFrame) -> DataFrame:
        """
        Drop all metadata columns from DataFrame

        :param df: Input DataFrame
        :return: DataFrame without metadata columns
        """
        existing_metadata = [c for c in METADATA_COLUMNS if c in df.columns]
        if existing_metadata:
            logger.debug(f"Dropping metadata columns: {existing_metadata}")
        return df.drop(*existing_metadata)

    @staticmethod
    def iso_year(ts: Column) -> Column:
        """
        ISO-8601 week-numbering year: the calendar year of the Thursday in the same Monday-based week.
        """
        return F.year(F.date_add(F.to_date(F.date_trunc("week", ts)), 3))

    @staticmethod
    def with_iso_week(df: DataFrame, ts_col: str = "last_updated") -> DataFrame:
        """
        Add `iso_year` and `iso_week` columns derived from a timestamp column

        :param df: Input DataFrame
        :param ts_col: Timestamp column to derive the ISO week from
        :return: DataFrame with `iso_year` and `iso_week`
        """
        return df.withColumn("iso_year", SparkUtils.iso_year(F.col(ts_col))).withColumn(
            "iso_week", F.weekofyear(F.col(ts_col))
        )
