import logging

import pyspark.sql.functions as F
from pyspark.sql import Column, DataFrame, Window

from utils.spark_utils import SparkUtils

logger = logging.getLogger(__name__)

MIDNIGHT, DAWN, NOON, DUSK = "Midnight", "Dawn", "Noon", "Dusk"
WINTER, SPRING, SUMMER, FALL = "Winter", "Spring", "Summer", "Fall"

# Seasons change on day 21 of March, June, September and December
SEASON_START_DAY = 21

SOUTHERN_HEMISPHERE_SEASON = {WINTER: SUMMER, SPRING: FALL, SUMMER: WINTER, FALL: SPRING}

RAIN_PARTITION_COLUMNS = ["country", "location_name", "iso_year", "iso_week"]


def day_segment(hour: int) -> str:
    """
    Segment of the day for an hour in [0, 23]: Midnight 0-5, Dawn 6-11, Noon 12-17, Dusk 18-23.
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in [0, 23], got {hour}")
    if hour <= 5:
        return MIDNIGHT
    if hour <= 11:
        return DAWN
    if hour <= 17:
        return NOON
    return DUSK


def _northern_season(month: int, day: int) -> str:
    if (month == 12 and day >= SEASON_START_DAY) or month in (1, 2) or (month == 3 and day < SEASON_START_DAY):
        return WINTER
    if (month == 3 and day >= SEASON_START_DAY) or month in (4, 5) or (month == 6 and day < SEASON_START_DAY):
        return SPRING
    if (month == 6 and day >= SEASON_START_DAY) or month in (7, 8) or (month == 9 and day < SEASON_START_DAY):
        return SUMMER
    return FALL


def season(latitude: float, month: int, day: int) -> str:
    """
    Astronomical season approximated with fixed day-21 boundaries.

    Latitude >= 0 uses the northern calendar (Dec 21 - Mar 20 is Winter, ...); the southern
    hemisphere gets the opposite season for the same dates.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in [1, 12], got {month}")
    if not 1 <= day <= 31:
        raise ValueError(f"day must be in [1, 31], got {day}")

    northern = _northern_season(month, day)
    return northern if latitude >= 0 else SOUTHERN_HEMISPHERE_SEASON[northern]


def day_segment_col(hour: Column) -> Column:
    """Column expression equivalent of `day_segment`"""
    return (
        F.when(hour.between(0, 5), F.lit(MIDNIGHT))
        .when(hour.between(6, 11), F.lit(DAWN))
        .when(hour.between(12, 17), F.lit(NOON))
        .otherwise(F.lit(DUSK))
    )


def season_col(latitude: Column, month: Column, day: Column) -> Column:
    """Column expression equivalent of `season`"""
    winter = (
        ((month == 12) & (day >= SEASON_START_DAY))
        | month.isin(1, 2)
        | ((month == 3) & (day < SEASON_START_DAY))
    )
    spring = (
        ((month == 3) & (day >= SEASON_START_DAY))
        | month.isin(4, 5)
        | ((month == 6) & (day < SEASON_START_DAY))
    )
    summer = (
        ((month == 6) & (day >= SEASON_START_DAY))
        | month.isin(7, 8)
        | ((month == 9) & (day < SEASON_START_DAY))
    )

    def by_hemisphere(northern: str) -> Column:
        return F.when(latitude >= 0, F.lit(northern)).otherwise(F.lit(SOUTHERN_HEMISPHERE_SEASON[northern]))

    return (
        F.when(winter, by_hemisphere(WINTER))
        .when(spring, by_hemisphere(SPRING))
        .when(summer, by_hemisphere(SUMMER))
        .otherwise(by_hemisphere(FALL))
    )


class FeatureDeriver:
    """Adds day segment, season and the running weekly rainfall to cleaned observations"""

    @staticmethod
    def _add_classifications(df: DataFrame) -> DataFrame:
        ts = F.col("last_updated")
        return df.withColumn("day_segment", day_segment_col(F.hour(ts))).withColumn(
            "season", season_col(F.col("latitude"), F.month(ts), F.dayofmonth(ts))
        )

    @staticmethod
    def _add_weekly_accumulated_rain(df: DataFrame) -> DataFrame:
        """
        Running total of precip_mm per (country, location, ISO week), in timestamp order,
        including the current row. This is a point-in-time value per row, not the weekly total.
        """
        window = (
            Window.partitionBy(*RAIN_PARTITION_COLUMNS)
            .orderBy(F.col("last_updated").asc())
            .rowsBetween(Window.unboundedPreceding, Window.currentRow)
        )

        return (
            SparkUtils.with_iso_week(df, "last_updated")
            .withColumn("weekly_accumulated_rain", F.round(F.sum("precip_mm").over(window), 2))
            .drop("iso_year", "iso_week")
        )

    @staticmethod
    def derive(df: DataFrame) -> DataFrame:
        """
        Compute the derived feature view over the cleaned observations

        :param df: Cleaned observations
        :return: Cleaned observation columns + day_segment, season, weekly_accumulated_rain
        """
        logger.info("Start deriving weather features")

        result = (
            df.transform(FeatureDeriver._add_classifications)
            .transform(FeatureDeriver._add_weekly_accumulated_rain)
        )

        logger.info("Feature derivation complete")
        return result
