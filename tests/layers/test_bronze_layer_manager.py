import pytest
from pyspark import Row

from core.configuration_manager import ConfigurationManager
from layers.bronze_layer_manager import BronzeLayerManager
from schema_registry.observations_schema import SCHEMA_RAW_OBSERVATIONS
from utils.spark_utils import METADATA_COLUMNS


class TestBronzeLayerManager:
    """Unit tests for BronzeLayerManager."""

    class TestToRawObservations:
        """Tests for to_raw_observations."""

        def test_missing_source_header_raises(self, spark_session, weather_config_yaml) -> None:
            """A snapshot without a required source header is rejected before any typing."""
            manager = BronzeLayerManager(spark_session, ConfigurationManager(weather_config_yaml))
            df = spark_session.createDataFrame([Row(country="Norway", location_name="Oslo")])

            with pytest.raises(ValueError, match="last_updated"):
                manager.to_raw_observations(df)

    class TestIngest:
        """Tests for ingest."""

        def test_renames_types_and_drops_extra_columns(
            self, spark_session, weather_config_yaml, write_landing_csv
        ) -> None:
            """Source headers become snake_case columns with raw observation types."""
            write_landing_csv(
                [
                    {"air_quality_pm2_5": 12.5, "wind_kph": 7.2},
                    {"country": "Польша", "location_name": "Warsaw"},
                ]
            )
            manager = BronzeLayerManager(spark_session, ConfigurationManager(weather_config_yaml))

            df = manager.ingest("run-1")

            data_columns = [c for c in df.columns if c not in METADATA_COLUMNS]
            assert data_columns == SCHEMA_RAW_OBSERVATIONS.fieldNames()
            assert "timezone" not in df.columns
            rows = {r.location_name: r for r in df.collect()}
            assert rows["Oslo"].air_quality_pm2_5 == 12.5
            assert rows["Oslo"].wind_kph == 7.2
            assert rows["Oslo"].last_updated == "2024-05-16 13:15:00"
            assert rows["Warsaw"].country == "Польша"

        def test_unparseable_number_becomes_null(self, spark_session, weather_config_yaml, write_landing_csv) -> None:
            """Non-numeric measurements are read as NULL instead of failing the batch."""
            write_landing_csv([{"humidity": "n/a"}])
            manager = BronzeLayerManager(spark_session, ConfigurationManager(weather_config_yaml))

            row = manager.ingest("run-1").first()

            assert row.humidity is None

        def test_writes_bronze_delta_table_with_metadata(
            self, spark_session, weather_config_yaml, write_landing_csv
        ) -> None:
            """Bronze table holds the snapshot plus run metadata."""
            write_landing_csv([{}, {"location_name": "Bergen"}])
            cm = ConfigurationManager(weather_config_yaml)

            BronzeLayerManager(spark_session, cm).ingest("run-1")

            stored = spark_session.read.format("delta").load(cm.get_layer_path("bronze", "observations"))
            assert stored.count() == 2
            assert {r.run_id for r in stored.collect()} == {"run-1"}
            assert set(METADATA_COLUMNS).issubset(stored.columns)

        def test_reingest_replaces_the_snapshot(self, spark_session, weather_config_yaml, write_landing_csv) -> None:
            """Running ingestion twice on the same snapshot leaves one copy of it."""
            write_landing_csv([{}, {"location_name": "Bergen"}])
            cm = ConfigurationManager(weather_config_yaml)
            manager = BronzeLayerManager(spark_session, cm)

            manager.ingest("run-1")
            manager.ingest("run-2")

            stored = spark_session.read.format("delta").load(cm.get_layer_path("bronze", "observations"))
            assert stored.count() == 2
            assert {r.run_id for r in stored.collect()} == {"run-2"}
