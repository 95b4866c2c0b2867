import logging
from typing import List

import pyspark.sql.functions as F
from pyspark.sql import DataFrame, SparkSession

from core.configuration_manager import ConfigurationManager
from schema_registry.observations_schema import SOURCE_COLUMN_MAPPING
from schema_registry.schema_registry import SCHEMAS, conform_to_schema
from sinks.delta_sink import DeltaSink
from utils.spark_utils import SparkUtils

logger = logging.getLogger(__name__)


class BronzeLayerManager:
    """Handles Bronze Layer ingestion of the raw observation snapshot"""

    def __init__(self, spark: SparkSession, cm: ConfigurationManager) -> None:
        """
        Initialize Bronze Layer Manager with active SparkSession and ConfigurationManager

        :param spark: Active SparkSession Instance
        :param cm: Current ConfigurationManager Instance
        """
        self.spark = spark
        self.cm = cm

    def _read_snapshot(self, path: str, data_format: str) -> DataFrame:
        """
        Read the landing snapshot with every value as string; typing happens in one place afterwards.

        :param path: Landing path of the snapshot
        :param data_format: Data format (csv, json, parquet, ...)
        :return: Untyped DataFrame with the source headers
        """
        reader = self.spark.read
        if data_format == "csv":
            reader = (
                reader.option("header", "true")
                .option("inferSchema", "false")
                .option("mode", "PERMISSIVE")
                .option("encoding", "UTF-8")
            )
        return reader.load(path, format=data_format)

    @staticmethod
    def _check_source_columns(df: DataFrame) -> None:
        """
        Fail fast when the snapshot lacks a column the pipeline depends on

        :raises ValueError: listing the missing source headers
        """
        missing: List[str] = [c for c in SOURCE_COLUMN_MAPPING if c not in df.columns]
        if missing:
            raise ValueError(f"Observation snapshot is missing source columns: {missing}")

    @staticmethod
    def _rename_source_columns(df: DataFrame) -> DataFrame:
        """
        Keep the mapped source columns under their snake_case names (e.g. `air_quality_PM2.5`
        becomes `air_quality_pm2_5`); extra source columns are dropped.
        """
        return df.select(*[F.col(f"`{src}`").alias(dst) for src, dst in SOURCE_COLUMN_MAPPING.items()])

    def to_raw_observations(self, df: DataFrame) -> DataFrame:
        """
        Turn an untyped snapshot into typed raw observations

        :param df: DataFrame with the source headers
        :return: DataFrame conforming to the raw observations schema
        """
        self._check_source_columns(df)
        return conform_to_schema(self._rename_source_columns(df), SCHEMAS["observations"])

    def ingest(self, run_id: str, dataset_name: str = "observations") -> DataFrame:
        """
        Ingest the landing snapshot into the bronze Delta table (overwrite; one snapshot per run)

        :param run_id: The current pipeline run ID
        :param dataset_name: Dataset key in configuration
        :return: Bronze DataFrame with metadata columns
        """
        path = self.cm.get_layer_path("landing", dataset_name)
        data_format = self.cm.get("datasets", dataset_name, "format", default="csv")
        logger.info(f"Batch ingesting {dataset_name} from: {path}")

        df = self.to_raw_observations(self._read_snapshot(path, data_format))
        df = SparkUtils.add_metadata(df, run_id, dataset_name, source_file=path)

        output_path = self.cm.get_layer_path("bronze", dataset_name)
        DeltaSink.overwrite(df, output_path, dataset_name)

        count = self.spark.read.format("delta").load(output_path).count()
        logger.info(f"Ingestion complete. Ingested {count:,} {dataset_name} records")

        return df
