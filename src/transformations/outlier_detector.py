import logging
from typing import Dict, Optional, Tuple

import pyspark.sql.functions as F
from pyspark.sql import DataFrame

logger = logging.getLogger(__name__)

WIND_OUTLIER_COLUMN = "is_wind_outlier"
WIND_FLAG_COLUMN = "wind_speed_flag"

LIKELY_ERROR = "likely error"
POTENTIALLY_EXTREME_EVENT = "potentially extreme event"

# Physical plausibility limits, reported only; rows outside them are kept
PHYSICAL_BOUNDS = {
    "temperature_celsius": (-89.2, 60.0),
    "humidity": (0.0, 100.0),
    "precip_mm": (0.0, None),
    "pressure_mb": (870.0, 1090.0),
    "wind_kph": (0.0, None),
}


class OutlierDetector:
    """
    Flags sustained wind speeds above the strong gale threshold.

    Above `extreme_event_kph` (strong gale) a reading is a potentially extreme event, above
    `likely_error_kph` (hurricane force) it is most likely a sensor or transcription error.
    Exposed locations can legitimately exceed the lower threshold, so flags are advisory:
    flagged rows leave the cleaned table but are kept, with their severity, for manual review.
    """

    def __init__(self, extreme_event_kph: float = 60.0, likely_error_kph: float = 120.0) -> None:
        if likely_error_kph < extreme_event_kph:
            raise ValueError(
                f"likely_error_kph ({likely_error_kph}) must not be below extreme_event_kph ({extreme_event_kph})"
            )
        self.extreme_event_kph = float(extreme_event_kph)
        self.likely_error_kph = float(likely_error_kph)

    def classify(self, wind_kph: Optional[float]) -> Optional[str]:
        """
        Severity label for a single wind reading, or None when the reading is not an outlier
        """
        if wind_kph is None or wind_kph <= self.extreme_event_kph:
            return None
        if wind_kph > self.likely_error_kph:
            return LIKELY_ERROR
        return POTENTIALLY_EXTREME_EVENT

    def flag(self, df: DataFrame) -> DataFrame:
        """
        Add `is_wind_outlier` and `wind_speed_flag` columns

        :param df: Observations with a `wind_kph` column
        :return: DataFrame with flag columns; `is_wind_outlier` is never NULL
        """
        return df.withColumn(
            WIND_FLAG_COLUMN,
            F.when(F.col("wind_kph") > self.likely_error_kph, F.lit(LIKELY_ERROR))
            .when(F.col("wind_kph") > self.extreme_event_kph, F.lit(POTENTIALLY_EXTREME_EVENT)),
        ).withColumn(WIND_OUTLIER_COLUMN, F.col(WIND_FLAG_COLUMN).isNotNull())

    def split(self, df: DataFrame) -> Tuple[DataFrame, DataFrame]:
        """
        Split observations into kept rows and wind outliers

        :param df: Input observations
        :return: Tuple of (kept rows without flag columns, outlier rows with flag columns)
        """
        flagged = self.flag(df)

        kept_df = flagged.filter(~F.col(WIND_OUTLIER_COLUMN)).drop(WIND_OUTLIER_COLUMN, WIND_FLAG_COLUMN)
        outliers_df = flagged.filter(F.col(WIND_OUTLIER_COLUMN))

        return kept_df, outliers_df

    @staticmethod
    def physical_bounds_report(df: DataFrame) -> Dict[str, int]:
        """
        Count rows outside physical plausibility bounds per measurement.
        Informational only: apart from wind, no measurement is filtered.
        """
        aggregations = []
        for column, (lower, upper) in PHYSICAL_BOUNDS.items():
            if column not in df.columns:
                continue
            condition = F.lit(False)
            if lower is not None:
                condition = condition | (F.col(column) < lower)
            if upper is not None:
                condition = condition | (F.col(column) > upper)
            aggregations.append(F.sum(F.when(condition, 1).otherwise(0)).alias(column))

        if not aggregations:
            return {}

        row = df.agg(*aggregations).first()
        return {column: int(row[column] or 0) for column in row.asDict()}
