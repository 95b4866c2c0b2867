import logging
from datetime import datetime
from typing import Any, Dict

from pyspark.sql import SparkSession

from core.configuration_manager import ConfigurationManager
from layers.bronze_layer_manager import BronzeLayerManager
from layers.gold_layer_manager import GoldLayerManager
from layers.silver_layer_manager import SilverLayerManager
from utils.logging_utils import log_header

logger = logging.getLogger(__name__)


class WeatherCleaningPipeline:
    """
    Single batch pass over the observation snapshot: ingestion, cleaning, derived views
    """

    def _generate_run_id(self) -> str:
        """
        Generate a unique run id based on timestamp

        :return: Unique pipeline run ID
        """
        return datetime.now().strftime("%Y%m%d_%H%M%S")

    def __init__(self, spark: SparkSession, cm: ConfigurationManager) -> None:
        self.cm = cm
        self.spark = spark
        self.run_id = self._generate_run_id()

    def run(self) -> Dict[str, Any]:
        log_header(f"Start weather cleaning pipeline (run {self.run_id})")

        BronzeLayerManager(self.spark, self.cm).ingest(self.run_id)
        silver_counts = SilverLayerManager(self.spark, self.cm).transform()
        gold_counts = GoldLayerManager(self.spark, self.cm).compute_views()

        log_header(f"Finished weather cleaning pipeline (run {self.run_id})")

        return {"run_id": self.run_id, "silver": silver_counts, "gold": gold_counts}
