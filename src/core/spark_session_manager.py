import logging
from typing import List, Optional

from delta import configure_spark_with_delta_pip
from pyspark.sql import SparkSession

from core.configuration_manager import ConfigurationManager
from utils.logging_utils import log_footer, log_header

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "world-weather-cleaning"


class SparkSessionManager:
    """Owns the SparkSession used by a single pipeline run"""

    def __init__(self, cm: ConfigurationManager, extra_packages: Optional[List[str]] = None) -> None:
        """
        Build and store a Delta-enabled SparkSession from the given configuration.

        :param cm: ConfigurationManager instance (environment and spark.* settings)
        :param extra_packages: Additional Maven coordinates to resolve next to Delta (e.g. hadoop-aws for s3a buckets)
        """
        self.cm = cm
        self.extra_packages = extra_packages or []
        self.spark = self._create_spark_session()

    def _create_spark_session(self) -> SparkSession:
        environment = self.cm.get_environment()
        app_name = self.cm.get("spark", environment, "app_name", default=DEFAULT_APP_NAME)
        builder = SparkSession.builder.appName(app_name)

        if environment != "databricks":
            master = self.cm.get("spark", environment, "master", default="local[*]")
            builder = builder.master(master)
        else:
            master = "databricks"

        # Session time zone, ANSI mode and parser policy come from config
        spark_config = self.cm.get("spark", environment, "config", default={}) or {}
        for key, value in spark_config.items():
            builder = builder.config(key, str(value))

        spark = configure_spark_with_delta_pip(
            builder,
            extra_packages=self.extra_packages,
        ).getOrCreate()

        log_header(f"SparkSession {app_name} ready ({environment})")
        logger.info(f"Master: {master}")
        logger.info(f"Spark version: {spark.version}")
        logger.info(f"Session time zone: {spark.conf.get('spark.sql.session.timeZone')}")
        log_footer()

        return spark

    def get_session(self) -> SparkSession:
        """
        Return the active SparkSession.
        """
        return self.spark

    def stop(self) -> None:
        """
        Stop the SparkSession when not on Databricks, where the cluster owns the session.
        """
        if self.cm.get_environment() != "databricks":
            self.spark.stop()
            log_header("SparkSession stopped")
