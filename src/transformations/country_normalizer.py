import logging
from itertools import chain
from types import MappingProxyType
from typing import Mapping

import pyspark.sql.functions as F
from pyspark.sql import DataFrame

logger = logging.getLogger(__name__)

# Anything outside printable ASCII (space .. tilde)
NON_LATIN_PATTERN = "[^ -~]"


class CountryNormalizer:
    """Replaces known non-Latin country spellings with their canonical name"""

    def __init__(self, translations: Mapping[str, str]) -> None:
        """
        :param translations: Fixed {[raw country] -> canonical country} lookup table
        """
        self.translations = MappingProxyType(dict(translations))
        logger.info(f"CountryNormalizer initialized with {len(self.translations)} translations")

    def normalize_name(self, name: str) -> str:
        """
        Translate a single country name; unmapped names are returned unchanged.
        """
        return self.translations.get(name, name)

    def normalize(self, df: DataFrame, column: str = "country") -> DataFrame:
        """
        Substitute mapped country names in a DataFrame column, keeping unmapped values as they are

        :param df: Input DataFrame
        :param column: Column holding the country name
        :return: DataFrame with the normalized column in place
        """
        if not self.translations:
            return df

        lookup = F.create_map(*[F.lit(v) for v in chain(*self.translations.items())])

        # CASE WHEN guards the map lookup, so unmapped keys never reach it
        return df.withColumn(
            column,
            F.when(F.col(column).isin(list(self.translations)), lookup[F.col(column)]).otherwise(F.col(column)),
        )

    def find_unmapped_non_latin(self, df: DataFrame, column: str = "country") -> DataFrame:
        """
        Distinct values that still contain non-Latin characters and have no translation.
        These pass through unchanged; the result is for reporting only.
        """
        return (
            df.select(column)
            .where(F.col(column).rlike(NON_LATIN_PATTERN))
            .where(~F.col(column).isin(list(self.translations)) if self.translations else F.lit(True))
            .distinct()
        )
