import pytest
from pyspark.sql import functions as F

from schema_registry.observations_schema import OBSERVATION_COLUMNS
from transformations.cleaning_reconciler import CleaningReconciler
from transformations.country_normalizer import CountryNormalizer
from transformations.outlier_detector import OutlierDetector


@pytest.fixture
def reconciler(country_translations) -> CleaningReconciler:
    return CleaningReconciler(OutlierDetector(), CountryNormalizer(country_translations))


@pytest.fixture
def snapshot(make_observations):
    """
    Oslo: two readings on 05-16 (duplicate group), one on 05-17.
    Warsaw: one reading with a non-Latin country name.
    Bergen: one storm reading (wind outlier), one normal reading on another day.
    """
    return make_observations(
        [
            {"location_name": "Oslo", "last_updated": "2024-05-16 08:00:00", "temperature_celsius": 10.0, "wind_kph": 10.0},
            {"location_name": "Oslo", "last_updated": "2024-05-16 14:00:00", "temperature_celsius": 14.0, "wind_kph": 20.0},
            {"location_name": "Oslo", "last_updated": "2024-05-17 09:00:00", "temperature_celsius": 12.0},
            {"country": "Польша", "location_name": "Warsaw", "last_updated": "2024-05-16 12:00:00",
             "latitude": 52.23, "longitude": 21.01},
            {"location_name": "Bergen", "last_updated": "2024-05-16 12:00:00", "wind_kph": 95.0},
            {"location_name": "Bergen", "last_updated": "2024-05-18 12:00:00", "wind_kph": 30.0},
        ]
    )


def _keyed(df):
    rows = df.select(
        "location_name",
        F.date_format("last_updated", "yyyy-MM-dd HH:mm:ss").alias("ts"),
        "country",
        "temperature_celsius",
        "wind_kph",
    ).collect()
    return {(r.location_name, r.ts): r for r in rows}


class TestCleaningReconciler:

    class TestInvariants:

        def test_at_most_one_row_per_location_and_date(self, reconciler, snapshot) -> None:
            cleaned = reconciler.reconcile(snapshot).cleaned

            per_key = cleaned.groupBy("location_name", F.to_date("last_updated")).count()

            assert per_key.filter(F.col("count") > 1).count() == 0

        def test_no_wind_outlier_survives(self, reconciler, snapshot) -> None:
            cleaned = reconciler.reconcile(snapshot).cleaned

            assert cleaned.filter(F.col("wind_kph") > 60).count() == 0

        def test_output_layout_and_order(self, reconciler, snapshot) -> None:
            cleaned = reconciler.reconcile(snapshot).cleaned

            assert cleaned.columns == OBSERVATION_COLUMNS
            keys = [(r.country, r.location_name, r.last_updated) for r in cleaned.collect()]
            assert keys == sorted(keys)

        def test_rerun_gives_identical_rows(self, reconciler, snapshot) -> None:
            first = reconciler.reconcile(snapshot).cleaned.collect()
            second = reconciler.reconcile(snapshot).cleaned.collect()

            assert first == second

    class TestReconciliation:

        def test_originals_averages_and_exclusions(self, reconciler, snapshot) -> None:
            result = reconciler.reconcile(snapshot)
            cleaned = _keyed(result.cleaned)

            assert set(cleaned) == {
                ("Oslo", "2024-05-16 11:00:00"),
                ("Oslo", "2024-05-17 09:00:00"),
                ("Warsaw", "2024-05-16 12:00:00"),
                ("Bergen", "2024-05-18 12:00:00"),
            }
            assert cleaned[("Oslo", "2024-05-16 11:00:00")].temperature_celsius == pytest.approx(12.0)
            assert cleaned[("Oslo", "2024-05-16 11:00:00")].wind_kph == pytest.approx(15.0)
            assert cleaned[("Oslo", "2024-05-17 09:00:00")].temperature_celsius == 12.0

        def test_country_is_normalized(self, reconciler, snapshot) -> None:
            cleaned = _keyed(reconciler.reconcile(snapshot).cleaned)

            assert cleaned[("Warsaw", "2024-05-16 12:00:00")].country == "Poland"
            assert cleaned[("Oslo", "2024-05-17 09:00:00")].country == "Norway"

        def test_exclusion_sets_are_reported(self, reconciler, snapshot) -> None:
            result = reconciler.reconcile(snapshot)

            assert result.summary() == {
                "cleaned_rows": 4,
                "wind_outliers": 1,
                "duplicate_groups": 1,
                "averaged_rows": 1,
                "duplicate_outlier_overlaps": 0,
            }
            outlier = result.outliers.first()
            assert outlier.location_name == "Bergen"
            assert outlier.wind_speed_flag == "potentially extreme event"

        def test_clean_snapshot_passes_through(self, reconciler, make_observations) -> None:
            df = make_observations(
                [
                    {"location_name": "Oslo", "last_updated": "2024-05-16 08:00:00"},
                    {"location_name": "Oslo", "last_updated": "2024-05-17 08:00:00"},
                    {"location_name": "Bergen", "last_updated": "2024-05-16 08:00:00"},
                ]
            )

            assert reconciler.reconcile(df).cleaned.count() == 3

    class TestDuplicateOutlierOverlap:

        def test_outlier_is_excluded_before_averaging(self, reconciler, make_observations) -> None:
            df = make_observations(
                [
                    {"last_updated": "2024-05-16 06:00:00", "wind_kph": 10.0},
                    {"last_updated": "2024-05-16 12:00:00", "wind_kph": 130.0},
                    {"last_updated": "2024-05-16 18:00:00", "wind_kph": 20.0},
                ]
            )

            result = reconciler.reconcile(df)
            cleaned = _keyed(result.cleaned)

            assert result.overlaps.count() == 1
            assert result.overlaps.first().wind_kph == 130.0
            assert list(cleaned) == [("Oslo", "2024-05-16 12:00:00")]
            assert cleaned[("Oslo", "2024-05-16 12:00:00")].wind_kph == pytest.approx(15.0)

        def test_single_survivor_is_kept_unchanged(self, reconciler, make_observations) -> None:
            df = make_observations(
                [
                    {"last_updated": "2024-05-16 07:45:00", "wind_kph": 25.0, "temperature_celsius": 9.0},
                    {"last_updated": "2024-05-16 15:00:00", "wind_kph": 90.0, "temperature_celsius": 19.0},
                ]
            )

            result = reconciler.reconcile(df)
            cleaned = _keyed(result.cleaned)

            assert result.averaged.count() == 0
            assert list(cleaned) == [("Oslo", "2024-05-16 07:45:00")]
            assert cleaned[("Oslo", "2024-05-16 07:45:00")].temperature_celsius == 9.0

        def test_group_of_outliers_disappears(self, reconciler, make_observations) -> None:
            df = make_observations(
                [
                    {"last_updated": "2024-05-16 07:00:00", "wind_kph": 70.0},
                    {"last_updated": "2024-05-16 15:00:00", "wind_kph": 140.0},
                ]
            )

            result = reconciler.reconcile(df)

            assert result.cleaned.count() == 0
            assert result.overlaps.count() == 2
