"""Categorical vocabulary used to classify and browse people."""
from __future__ import annotations

from enum import StrEnum


class Domain(StrEnum):
    POLITICS = "politics"
    SCIENCE = "science"
    BUSINESS = "business"
    ARTS = "arts"
    PHILOSOPHY = "philosophy"
    MILITARY = "military"
    RELIGION = "religion"
    SPORTS = "sports"
    ENTERTAINMENT = "entertainment"
    ACTIVISM = "activism"
    TECHNOLOGY = "technology"


class InfluenceMode(StrEnum):
    INTELLECTUAL = "intellectual"
    INSTITUTIONAL = "institutional"
    CULTURAL = "cultural"
    TECHNOLOGICAL = "technological"
    POLITICAL = "political"
    MILITARY = "military"
    SYMBOLIC = "symbolic"


class GeographicReach(StrEnum):
    LOCAL = "local"
    NATIONAL = "national"
    REGIONAL = "regional"
    GLOBAL = "global"


class InfluenceLongevity(StrEnum):
    SHORT_LIVED = "shortLived"
    GENERATIONAL = "generational"
    MULTI_CENTURY = "multiCentury"
    ONGOING = "ongoing"


class RecognitionLevel(StrEnum):
    OBSCURE = "obscure"
    FIELD_FAMOUS = "fieldFamous"
    PUBLICLY_FAMOUS = "publiclyFamous"
    CANONICAL = "canonical"


class Archetype(StrEnum):
    FOUNDER = "founder"
    REFORMER = "reformer"
    REBEL = "rebel"
    TYRANT = "tyrant"
    VISIONARY = "visionary"
    MARTYR = "martyr"
    POLYMATH = "polymath"
    OPERATOR = "operator"
    TRAGIC_FIGURE = "tragicFigure"


class MoralValence(StrEnum):
    WIDELY_ADMIRED = "widelyAdmired"
    CONTESTED = "contested"
    WIDELY_CONDEMNED = "widelyCondemned"


class LifeArc(StrEnum):
    STEADY_ASCENT = "steadyAscent"
    LATE_BLOOMER = "lateBlocker"
    RISE_AND_FALL = "riseAndFall"
    POSTHUMOUS_RECOGNITION = "posthumousRecognition"
    UNFULFILLED_POTENTIAL = "unfulfilledPotential"


class HistoricalPeriod(StrEnum):
    ANCIENT_WORLD = "ancientWorld"
    MEDIEVAL = "medieval"
    RENAISSANCE = "renaissance"
    ENLIGHTENMENT = "enlightenment"
    INDUSTRIAL = "industrial"
    MODERN_ERA = "modernEra"
    COLD_WAR = "coldWar"
    DIGITAL_AGE = "digitalAge"


class CulturalRegion(StrEnum):
    WESTERN_EUROPE = "westernEurope"
    EASTERN_EUROPE = "easternEurope"
    NORTH_AMERICA = "northAmerica"
    LATIN_AMERICA = "latinAmerica"
    EAST_ASIA = "eastAsia"
    SOUTH_ASIA = "southAsia"
    SOUTHEAST_ASIA = "southeastAsia"
    MIDDLE_EAST = "middleEast"
    NORTH_AFRICA = "northAfrica"
    SUB_SAHARAN_AFRICA = "subSaharanAfrica"
    OCEANIA = "oceania"
    CENTRAL_ASIA = "centralAsia"


class Era(StrEnum):
    ANCIENT = "ancient"
    MEDIEVAL = "medieval"
    EARLY_MODERN = "earlyModern"
    MODERN = "modern"
    CONTEMPORARY = "contemporary"
    LIVING = "living"

    @classmethod
    def from_period(cls, period: HistoricalPeriod) -> "Era":
        for era, periods in ERA_PERIODS.items():
            if period in periods:
                return era
        return cls.CONTEMPORARY

    @classmethod
    def from_birth_year(cls, birth_year: int) -> "Era":
        if birth_year < 500:
            return cls.ANCIENT
        if birth_year < 1500:
            return cls.MEDIEVAL
        if birth_year < 1800:
            return cls.EARLY_MODERN
        if birth_year < 1950:
            return cls.MODERN
        return cls.CONTEMPORARY

    @property
    def historical_periods(self) -> tuple[HistoricalPeriod, ...]:
        return ERA_PERIODS.get(self, ())


ERA_PERIODS: dict[Era, tuple[HistoricalPeriod, ...]] = {
    Era.ANCIENT: (HistoricalPeriod.ANCIENT_WORLD,),
    Era.MEDIEVAL: (HistoricalPeriod.MEDIEVAL,),
    Era.EARLY_MODERN: (HistoricalPeriod.RENAISSANCE, HistoricalPeriod.ENLIGHTENMENT),
    Era.MODERN: (HistoricalPeriod.INDUSTRIAL, HistoricalPeriod.MODERN_ERA),
    Era.CONTEMPORARY: (HistoricalPeriod.COLD_WAR, HistoricalPeriod.DIGITAL_AGE),
}


class ImpactLevel(StrEnum):
    EMERGING = "emerging"
    NOTABLE = "notable"
    INFLUENTIAL = "influential"
    LEGENDARY = "legendary"

    @classmethod
    def from_values(
        cls,
        reach: GeographicReach | None,
        recognition: RecognitionLevel | None,
        longevity: InfluenceLongevity | None,
    ) -> "ImpactLevel":
        """Collapse reach, recognition and longevity into a single scale."""
        ordinals = [
            list(enum_type).index(value)
            for enum_type, value in (
                (GeographicReach, reach),
                (RecognitionLevel, recognition),
                (InfluenceLongevity, longevity),
            )
            if value is not None
        ]
        if not ordinals:
            return cls.NOTABLE

        average = sum(ordinals) / len(ordinals)
        if average < 1:
            return cls.EMERGING
        if average < 2:
            return cls.NOTABLE
        if average < 2.5:
            return cls.INFLUENTIAL
        return cls.LEGENDARY


class SortOption(StrEnum):
    BIRTH_YEAR = "birthYear"
    DEATH_YEAR = "deathYear"
    NAME = "name"
    CREATED_AT = "createdAt"
    RECOGNITION_LEVEL = "recognitionLevel"
    DOMAIN_COUNT = "domainCount"


class SortDirection(StrEnum):
    ASCENDING = "ascending"
    DESCENDING = "descending"
