import csv
from typing import Any, Callable, Dict, Generator, List

import pytest
import yaml
import pyspark.sql.functions as F
from pyspark.sql import DataFrame, SparkSession
from delta import configure_spark_with_delta_pip

from schema_registry.observations_schema import AIR_QUALITY_COLUMNS, SCHEMA_RAW_OBSERVATIONS, SOURCE_COLUMN_MAPPING

COUNTRY_TRANSLATIONS = {
    "Malásia": "Malaysia",
    "كولومبيا": "Colombia",
    "Гватемала": "Guatemala",
    "Польша": "Poland",
    "Polônia": "Poland",
    "Турция": "Turkey",
    "Südkorea": "South Korea",
    "Bélgica": "Belgium",
    "Turkménistan": "Turkmenistan",
    "火鸡": "Turkey",
}

DEFAULT_OBSERVATION: Dict[str, Any] = {
    "country": "Norway",
    "location_name": "Oslo",
    "latitude": 59.91,
    "longitude": 10.75,
    "last_updated": "2024-05-16 13:15:00",
    "temperature_celsius": 15.0,
    "wind_kph": 10.0,
    "pressure_mb": 1012.0,
    "precip_mm": 0.0,
    "humidity": 60.0,
    **{c: 1.0 for c in AIR_QUALITY_COLUMNS},
}


@pytest.fixture(scope="session")
def spark_session() -> Generator[SparkSession, Any, None]:
    """
    Session-scoped Delta-enabled SparkSession, pinned to UTC
    :return: SparkSession
    """

    builder = (
        SparkSession.builder.appName("world-weather-cleaning-unit-tests")
        .master("local[1]")
        .config("spark.sql.extensions", "io.delta.sql.DeltaSparkSessionExtension")
        .config(
            "spark.sql.catalog.spark_catalog",
            "org.apache.spark.sql.delta.catalog.DeltaCatalog",
        )
        .config("spark.databricks.delta.retentionDurationCheck.enabled", "false")
        .config("spark.sql.session.timeZone", "UTC")
        .config("spark.sql.ansi.enabled", "false")
        .config("spark.sql.legacy.timeParserPolicy", "CORRECTED")
        .config("spark.sql.shuffle.partitions", "2")
    )

    spark = configure_spark_with_delta_pip(builder).getOrCreate()
    yield spark
    spark.stop()


@pytest.fixture
def make_raw_observations(spark_session) -> Callable[[List[Dict[str, Any]]], DataFrame]:
    """
    Factory for raw observations (string `last_updated`); each dict overrides DEFAULT_OBSERVATION
    """

    def _make(rows: List[Dict[str, Any]]) -> DataFrame:
        data = []
        for overrides in rows:
            row = {**DEFAULT_OBSERVATION, **overrides}
            data.append(tuple(row[f.name] for f in SCHEMA_RAW_OBSERVATIONS.fields))
        return spark_session.createDataFrame(data, schema=SCHEMA_RAW_OBSERVATIONS)

    return _make


@pytest.fixture
def make_observations(make_raw_observations) -> Callable[[List[Dict[str, Any]]], DataFrame]:
    """
    Factory for validated observations: `last_updated` parsed as 'yyyy-MM-dd HH:mm:ss' in UTC
    """

    def _make(rows: List[Dict[str, Any]]) -> DataFrame:
        return make_raw_observations(rows).withColumn(
            "last_updated", F.to_timestamp(F.col("last_updated"), "yyyy-MM-dd HH:mm:ss")
        )

    return _make


@pytest.fixture
def country_translations() -> Dict[str, str]:
    return dict(COUNTRY_TRANSLATIONS)


@pytest.fixture
def weather_config_yaml(tmp_path) -> str:
    """
    Complete YAML config with every layer bucket under tmp_path

    :return: Path to the config YAML file.
    """
    base = tmp_path / "delta-lake"
    for layer in ("landing", "bronze", "silver", "gold", "quarantine"):
        (base / layer).mkdir(parents=True)

    config = {
        "environment": {"name": "local"},
        "storage": {
            "local": {
                "buckets": {
                    layer: str(base / layer)
                    for layer in ("landing", "bronze", "silver", "gold", "quarantine")
                }
            },
            "databricks": {"buckets": {}},
        },
        "datasets": {
            "observations": {
                "source": "GlobalWeatherRepository.csv",
                "format": "csv",
                "bronze_table": "raw_observations",
                "silver_table": "cleaned_observations",
            },
            "weather_features": {"gold_table": "weather_features"},
            "weather_weekly": {"gold_table": "weather_weekly"},
        },
        "transformations": {
            "silver": {
                "observations": {
                    "required_columns": ["country", "location_name", "latitude", "longitude", "last_updated"],
                    "datetime_columns": ["last_updated"],
                    "datetime_formats": ["yyyy-MM-dd HH:mm", "yyyy-MM-dd HH:mm:ss"],
                    "wind_outlier": {"extreme_event_kph": 60, "likely_error_kph": 120},
                },
            },
            "gold": {
                "weather_weekly": {"min_distinct_dates": 2},
            },
        },
        "country_translations": COUNTRY_TRANSLATIONS,
    }

    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(config, allow_unicode=True), encoding="utf-8")
    return str(config_path)


@pytest.fixture
def write_landing_csv(weather_config_yaml, tmp_path) -> Callable[[List[Dict[str, Any]]], str]:
    """
    Factory that writes observations as the source snapshot (source headers plus unused extra columns)
    into the landing bucket of `weather_config_yaml`

    :return: Path of the written CSV file
    """
    headers = list(SOURCE_COLUMN_MAPPING) + ["timezone", "condition_text"]
    landing_path = tmp_path / "delta-lake" / "landing" / "GlobalWeatherRepository.csv"

    def _write(rows: List[Dict[str, Any]]) -> str:
        with open(landing_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for overrides in rows:
                row = {**DEFAULT_OBSERVATION, "timezone": "Europe/Oslo", "condition_text": "Sunny", **overrides}
                values = [row[SOURCE_COLUMN_MAPPING.get(h, h)] for h in headers]
                writer.writerow(["" if v is None else v for v in values])
        return str(landing_path)

    return _write
