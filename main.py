import argparse
import logging

from core.configuration_manager import ConfigurationManager
from core.spark_session_manager import SparkSessionManager
from pipelines.weather_cleaning_pipeline import WeatherCleaningPipeline

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="World weather cleaning pipeline")
    parser.add_argument("--config", default="config/config.yaml", help="Path to the configuration YAML")
    args = parser.parse_args()

    cm = ConfigurationManager(args.config)
    spark_manager = SparkSessionManager(cm)

    try:
        summary = WeatherCleaningPipeline(spark_manager.get_session(), cm).run()
        logger.info(f"Pipeline summary: {summary}")
    finally:
        spark_manager.stop()


if __name__ == "__main__":
    main()
