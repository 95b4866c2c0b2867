import pyspark.sql.functions as F
from pyspark.sql import DataFrame
from pyspark.sql.types import StructType

from schema_registry.observations_schema import SCHEMA_CLEANED_OBSERVATIONS, SCHEMA_RAW_OBSERVATIONS

QUARANTINE_REASON_COLUMN = "_quarantine_reason"


def conform_to_schema(df: DataFrame, schema: StructType) -> DataFrame:
    """
    Project a DataFrame onto a registered schema: schema column order, schema types, nothing else.

    Values that cannot be cast become null (ANSI mode is disabled in the session config).

    :raises ValueError: when a schema column is missing from the DataFrame
    """
    missing = [f.name for f in schema.fields if f.name not in df.columns]
    if missing:
        raise ValueError(f"DataFrame is missing schema columns: {missing}")

    return df.select(*[F.col(f.name).cast(f.dataType).alias(f.name) for f in schema.fields])


SCHEMAS = {
    "observations": SCHEMA_RAW_OBSERVATIONS,
    "cleaned_observations": SCHEMA_CLEANED_OBSERVATIONS,
}
