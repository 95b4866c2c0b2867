from typing import Dict, List

from pyspark.sql.types import DoubleType, StringType, StructField, StructType, TimestampType

AIR_QUALITY_COLUMNS: List[str] = [
    "air_quality_carbon_monoxide",
    "air_quality_ozone",
    "air_quality_nitrogen_dioxide",
    "air_quality_sulphur_dioxide",
    "air_quality_pm2_5",
    "air_quality_pm10",
    "air_quality_us_epa_index",
    "air_quality_gb_defra_index",
]

MEASUREMENT_COLUMNS: List[str] = [
    "temperature_celsius",
    "wind_kph",
    "pressure_mb",
    "precip_mm",
    "humidity",
] + AIR_QUALITY_COLUMNS

# Numeric columns that are averaged when duplicate observations are collapsed
NUMERIC_COLUMNS: List[str] = ["latitude", "longitude"] + MEASUREMENT_COLUMNS

# Source CSV header -> column name used from bronze onwards
SOURCE_COLUMN_MAPPING: Dict[str, str] = {
    "country": "country",
    "location_name": "location_name",
    "latitude": "latitude",
    "longitude": "longitude",
    "last_updated": "last_updated",
    "temperature_celsius": "temperature_celsius",
    "wind_kph": "wind_kph",
    "pressure_mb": "pressure_mb",
    "precip_mm": "precip_mm",
    "humidity": "humidity",
    "air_quality_Carbon_Monoxide": "air_quality_carbon_monoxide",
    "air_quality_Ozone": "air_quality_ozone",
    "air_quality_Nitrogen_dioxide": "air_quality_nitrogen_dioxide",
    "air_quality_Sulphur_dioxide": "air_quality_sulphur_dioxide",
    "air_quality_PM2.5": "air_quality_pm2_5",
    "air_quality_PM10": "air_quality_pm10",
    "air_quality_us-epa-index": "air_quality_us_epa_index",
    "air_quality_gb-defra-index": "air_quality_gb_defra_index",
}

# Data schema for RAW observations (last_updated stays a string until silver parses it)
SCHEMA_RAW_OBSERVATIONS = StructType(
    [
        StructField("country", StringType(), nullable=True),
        StructField("location_name", StringType(), nullable=True),
        StructField("latitude", DoubleType(), nullable=True),
        StructField("longitude", DoubleType(), nullable=True),
        StructField("last_updated", StringType(), nullable=True),
    ]
    + [StructField(c, DoubleType(), nullable=True) for c in MEASUREMENT_COLUMNS]
)

# Data schema for cleaned observations
SCHEMA_CLEANED_OBSERVATIONS = StructType(
    [
        StructField("country", StringType(), nullable=False),
        StructField("location_name", StringType(), nullable=False),
        StructField("latitude", DoubleType(), nullable=False),
        StructField("longitude", DoubleType(), nullable=False),
        StructField("last_updated", TimestampType(), nullable=False),
    ]
    + [StructField(c, DoubleType(), nullable=True) for c in MEASUREMENT_COLUMNS]
)

OBSERVATION_COLUMNS: List[str] = [f.name for f in SCHEMA_CLEANED_OBSERVATIONS.fields]
