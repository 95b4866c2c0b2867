import logging
from typing import Dict

from pyspark.sql import DataFrame, SparkSession

from core.configuration_manager import ConfigurationManager
from sinks.delta_sink import DeltaSink
from transformations.feature_deriver import FeatureDeriver
from transformations.weekly_aggregator import WeeklyAggregator
from utils.logging_utils import log_footer, log_header
from utils.spark_utils import SparkUtils

logger = logging.getLogger(__name__)

FEATURES_DATASET = "weather_features"
WEEKLY_DATASET = "weather_weekly"


class GoldLayerManager:
    """Builds the derived feature view and the weekly rollup from the cleaned observations"""

    def __init__(self, spark: SparkSession, cm: ConfigurationManager, source_dataset: str = "observations"):
        self.spark = spark
        self.cm = cm
        self.source_dataset = source_dataset

        weekly_cfg = self.cm.get_transformations("gold", WEEKLY_DATASET) or {}
        self.aggregator = WeeklyAggregator(min_distinct_dates=int(weekly_cfg.get("min_distinct_dates", 40)))

    def build_features(self, cleaned_df: DataFrame) -> DataFrame:
        """
        Derived feature rows: cleaned observation + day_segment, season, weekly_accumulated_rain
        """
        return FeatureDeriver.derive(SparkUtils.drop_metadata(cleaned_df))

    def build_weekly(self, cleaned_df: DataFrame) -> DataFrame:
        """
        Weekly aggregates of locations with enough distinct observation dates
        """
        return self.aggregator.aggregate(SparkUtils.drop_metadata(cleaned_df))

    def compute_views(self) -> Dict[str, int]:
        """
        Read the silver table, write both gold tables

        :return: Row counts of the gold tables
        """
        log_header("Start computing gold views")

        source_path = self.cm.get_layer_path("silver", self.source_dataset)
        cleaned_df = self.spark.read.format("delta").load(source_path)

        features_path = self.cm.get_layer_path("gold", FEATURES_DATASET)
        DeltaSink.overwrite(self.build_features(cleaned_df), features_path, FEATURES_DATASET)

        weekly_path = self.cm.get_layer_path("gold", WEEKLY_DATASET)
        DeltaSink.overwrite(self.build_weekly(cleaned_df), weekly_path, WEEKLY_DATASET)

        locations = cleaned_df.select("country", "location_name").distinct().count()
        eligible = self.aggregator.well_sampled_locations(cleaned_df).count()
        if locations > eligible:
            logger.info(
                f"{locations - eligible:,} of {locations:,} locations have "
                f"<= {self.aggregator.min_distinct_dates} distinct dates and are left out of {WEEKLY_DATASET}"
            )

        counts = {
            FEATURES_DATASET: self.spark.read.format("delta").load(features_path).count(),
            WEEKLY_DATASET: self.spark.read.format("delta").load(weekly_path).count(),
        }

        logger.info(f"Gold views complete: {counts}")
        log_footer()
        return counts
