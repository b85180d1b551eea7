from __future__ import annotations

from enum import StrEnum


class ContentKind(StrEnum):
    __slots__ = ()

    LEGAL_CARD = "legal_card"
    SCRIPT = "script"
    EMERGENCY_MESSAGE = "emergency_message"


class Language(StrEnum):
    """ISO 639-1 codes of the supported content languages."""

    __slots__ = ()

    EN = "en"  # English
    ES = "es"  # Spanish


class GenSource(StrEnum):
    """Provenance tag attached to every content result."""

    __slots__ = ()

    CACHE = "cache"
    FRESH = "fresh"
    FALLBACK = "fallback"


class Channel(StrEnum):
    __slots__ = ()

    SMS = "sms"
    EMAIL = "email"


class AttemptOutcome(StrEnum):
    __slots__ = ()

    SENT = "sent"
    FAILED = "failed"


class InteractionScenario(StrEnum):
    __slots__ = ()

    TRAFFIC_STOP = "traffic_stop"
    STREET_QUESTIONING = "street_questioning"
    HOME_VISIT = "home_visit"
    WORKPLACE_VISIT = "workplace_visit"
    SEARCH_REQUEST = "search_request"
    ARREST_SITUATION = "arrest_situation"
    CHECKPOINT = "checkpoint"
    PROTEST_OR_DEMONSTRATION = "protest_or_demonstration"
    GENERAL_INTERACTION = "general_interaction"


class Jurisdiction(StrEnum):
    """Federal scope plus every state and the District of Columbia."""

    __slots__ = ()

    FEDERAL = "federal"
    ALABAMA = "alabama"
    ALASKA = "alaska"
    ARIZONA = "arizona"
    ARKANSAS = "arkansas"
    CALIFORNIA = "california"
    COLORADO = "colorado"
    CONNECTICUT = "connecticut"
    DELAWARE = "delaware"
    FLORIDA = "florida"
    GEORGIA = "georgia"
    HAWAII = "hawaii"
    IDAHO = "idaho"
    ILLINOIS = "illinois"
    INDIANA = "indiana"
    IOWA = "iowa"
    KANSAS = "kansas"
    KENTUCKY = "kentucky"
    LOUISIANA = "louisiana"
    MAINE = "maine"
    MARYLAND = "maryland"
    MASSACHUSETTS = "massachusetts"
    MICHIGAN = "michigan"
    MINNESOTA = "minnesota"
    MISSISSIPPI = "mississippi"
    MISSOURI = "missouri"
    MONTANA = "montana"
    NEBRASKA = "nebraska"
    NEVADA = "nevada"
    NEW_HAMPSHIRE = "new_hampshire"
    NEW_JERSEY = "new_jersey"
    NEW_MEXICO = "new_mexico"
    NEW_YORK = "new_york"
    NORTH_CAROLINA = "north_carolina"
    NORTH_DAKOTA = "north_dakota"
    OHIO = "ohio"
    OKLAHOMA = "oklahoma"
    OREGON = "oregon"
    PENNSYLVANIA = "pennsylvania"
    RHODE_ISLAND = "rhode_island"
    SOUTH_CAROLINA = "south_carolina"
    SOUTH_DAKOTA = "south_dakota"
    TENNESSEE = "tennessee"
    TEXAS = "texas"
    UTAH = "utah"
    VERMONT = "vermont"
    VIRGINIA = "virginia"
    WASHINGTON = "washington"
    WEST_VIRGINIA = "west_virginia"
    WISCONSIN = "wisconsin"
    WYOMING = "wyoming"
    DISTRICT_OF_COLUMBIA = "district_of_columbia"
