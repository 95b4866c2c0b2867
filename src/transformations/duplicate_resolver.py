import logging
from typing import List, Tuple

import pyspark.sql.functions as F
from pyspark.sql import DataFrame

from schema_registry.observations_schema import NUMERIC_COLUMNS, OBSERVATION_COLUMNS

logger = logging.getLogger(__name__)

DATE_COLUMN = "observation_date"
GROUP_KEY_COLUMNS: List[str] = ["location_name", DATE_COLUMN]


class DuplicateResolver:
    """
    Collapses observations of the same location on the same calendar date.

    Some locations were sampled more than once a day. location_name is the natural key
    (country spellings vary for the same place), so a duplicate group is every row sharing
    (location_name, date) and each group is replaced by one averaged observation.
    """

    @staticmethod
    def with_group_key(df: DataFrame) -> DataFrame:
        """Add the calendar date of `last_updated` as `observation_date`"""
        return df.withColumn(DATE_COLUMN, F.to_date(F.col("last_updated")))

    @staticmethod
    def find_duplicate_keys(df: DataFrame) -> DataFrame:
        """
        Keys of groups with more than one observation

        :param df: Observations with a timestamp `last_updated`
        :return: DataFrame[location_name, observation_date, duplicate_count]
        """
        return (
            DuplicateResolver.with_group_key(df)
            .groupBy(*GROUP_KEY_COLUMNS)
            .agg(F.count(F.lit(1)).alias("duplicate_count"))
            .filter(F.col("duplicate_count") > 1)
        )

    @staticmethod
    def average_duplicates(df: DataFrame) -> DataFrame:
        """
        Build one averaged observation per duplicate group.

        Numeric fields are arithmetic means over the group. The timestamp keeps the group's date
        and moves to the mean time of day (seconds since midnight, rounded to the second).

        :param df: Observations with a timestamp `last_updated`
        :return: Averaged observations with the observation column layout
        """
        seconds_of_day = (
            F.hour("last_updated") * 3600 + F.minute("last_updated") * 60 + F.second("last_updated")
        )

        grouped = (
            DuplicateResolver.with_group_key(df)
            .withColumn("_seconds_of_day", seconds_of_day)
            .groupBy(*GROUP_KEY_COLUMNS)
            .agg(
                F.count(F.lit(1)).alias("_group_size"),
                # Spellings of a country may differ inside a group; keep a deterministic one
                F.min("country").alias("country"),
                F.avg("_seconds_of_day").alias("_avg_seconds_of_day"),
                *[F.avg(c).alias(c) for c in NUMERIC_COLUMNS],
            )
            .filter(F.col("_group_size") > 1)
        )

        averaged = grouped.withColumn(
            "last_updated",
            F.timestamp_seconds(
                F.unix_timestamp(F.col(DATE_COLUMN)) + F.round(F.col("_avg_seconds_of_day")).cast("long")
            ),
        )

        return averaged.select(*OBSERVATION_COLUMNS)

    @staticmethod
    def resolve(df: DataFrame) -> Tuple[DataFrame, DataFrame]:
        """
        Detect duplicate groups and build their replacements. Outlier overlap is not checked here.

        :param df: Observations with a timestamp `last_updated`
        :return: Tuple of (duplicate group keys, averaged observations)
        """
        logger.info("Start resolving duplicate observations")

        duplicate_keys = DuplicateResolver.find_duplicate_keys(df)
        averaged = DuplicateResolver.average_duplicates(df)

        logger.info("Duplicate resolution complete")
        return duplicate_keys, averaged
