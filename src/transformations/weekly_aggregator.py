import logging

import pyspark.sql.functions as F
from pyspark.sql import DataFrame

from schema_registry.observations_schema import AIR_QUALITY_COLUMNS
from utils.spark_utils import SparkUtils

logger = logging.getLogger(__name__)

LOCATION_COLUMNS = ["country", "location_name"]
WEEK_GROUP_COLUMNS = LOCATION_COLUMNS + ["iso_year", "iso_week"]


class WeeklyAggregator:
    """
    Weekly rollups per location, restricted to well-sampled locations.

    Sampling in the snapshot is sparse and irregular; locations with at most
    `min_distinct_dates` observation dates are left out of the rollup entirely.
    """

    def __init__(self, min_distinct_dates: int = 40) -> None:
        if min_distinct_dates < 0:
            raise ValueError(f"min_distinct_dates must be non-negative, got {min_distinct_dates}")
        self.min_distinct_dates = min_distinct_dates

    def well_sampled_locations(self, df: DataFrame) -> DataFrame:
        """
        (country, location_name) pairs with more than `min_distinct_dates` distinct observation dates

        :param df: Cleaned observations
        :return: DataFrame[country, location_name, distinct_dates]
        """
        return (
            df.groupBy(*LOCATION_COLUMNS)
            .agg(F.countDistinct(F.to_date("last_updated")).alias("distinct_dates"))
            .filter(F.col("distinct_dates") > self.min_distinct_dates)
        )

    def aggregate(self, df: DataFrame) -> DataFrame:
        """
        Compute one weekly aggregate per (country, location_name, ISO year, ISO week)

        :param df: Cleaned observations
        :return: Weekly aggregates of the well-sampled locations
        """
        logger.info(f"Start weekly aggregation (locations need > {self.min_distinct_dates} distinct dates)")

        eligible = self.well_sampled_locations(df).select(*LOCATION_COLUMNS)

        weekly = (
            SparkUtils.with_iso_week(df.join(eligible, on=LOCATION_COLUMNS, how="inner"), "last_updated")
            .groupBy(*WEEK_GROUP_COLUMNS)
            .agg(
                F.avg("latitude").alias("latitude"),
                F.avg("longitude").alias("longitude"),
                F.to_date(F.min("last_updated")).alias("week_start"),
                F.round(F.max("temperature_celsius"), 0).cast("int").alias("max_temperature_celsius"),
                F.round(F.min("temperature_celsius"), 0).cast("int").alias("min_temperature_celsius"),
                F.round(F.avg("wind_kph"), 1).alias("avg_wind_kph"),
                F.round(F.avg("pressure_mb"), 0).cast("int").alias("avg_pressure_mb"),
                F.round(F.sum("precip_mm"), 1).alias("total_precip_mm"),
                F.round(F.avg("humidity"), 1).alias("avg_humidity"),
                *[F.round(F.avg(c), 1).alias(f"avg_{c}") for c in AIR_QUALITY_COLUMNS],
            )
            .orderBy("country", "location_name", "week_start")
        )

        logger.info("Weekly aggregation complete")
        return weekly
