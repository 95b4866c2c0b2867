import logging
from typing import List, Optional

from delta import DeltaTable
from pyspark.sql import DataFrame, SparkSession

logger = logging.getLogger(__name__)


class DeltaSink:
    """Generic Delta Sink to write pipeline tables"""

    @staticmethod
    def overwrite(df: DataFrame, output_path: str, dataset_name: str, partition_cols: Optional[List[str]] = None) -> None:
        """
        Replace a Delta table with the content of a DataFrame.

        Every layer table is a full snapshot of a single batch run, so re-running the pipeline
        on the same input replaces the table instead of appending to it.

        :param df: DataFrame to persist
        :param output_path: Delta table path
        :param dataset_name: Dataset name for logging
        :param partition_cols: Optional partition columns
        """
        writer = (
            df.write.format("delta")
            .mode("overwrite")
            .option("overwriteSchema", "true")
        )
        if partition_cols:
            writer = writer.partitionBy(*partition_cols)

        writer.save(output_path)

        logger.info(f"Overwrote {dataset_name} at {output_path}")

    @staticmethod
    def upsert_with_merge(spark: SparkSession, df: DataFrame, output_path: str, dataset_name: str, merge_keys: Optional[List[str]] = None) -> None:
        """
        Insert rows whose merge keys are not yet present; create the table on first write.

        :param spark: Active SparkSession
        :param df: DataFrame to persist
        :param output_path: Delta table path
        :param dataset_name: Dataset name for logging
        :param merge_keys: Column names for the merge condition
        """
        if merge_keys and DeltaTable.isDeltaTable(spark, output_path):
            merge_condition = " AND ".join(
                f"target.{k} = source.{k}" for k in merge_keys
            )
            delta_table = DeltaTable.forPath(spark, output_path)

            (delta_table.alias("target")
             .merge(df.alias("source"), merge_condition)
             .whenNotMatchedInsertAll()
             .execute())

            logger.info(f"Upsert merge {dataset_name} with keys: {merge_keys} complete")
        else:
            (
                df.write.format("delta")
                .mode("append")
                .option("mergeSchema", "true")
                .save(output_path)
            )

            logger.info(f"Appended {dataset_name} to {output_path}")
