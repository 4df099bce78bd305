from dataclasses import dataclass, field
from typing import List, Literal, Optional, Union

from wildlife_finder.models import DisambiguationOption, Location, Organization, Species


@dataclass
class NeedsLocation:
    reason: Literal["welcome", "not-found", "no-species", "restart"] = "welcome"
    detail: str = ""
    query: str = ""


@dataclass
class DisambiguationPrompt:
    options: List[DisambiguationOption]
    query: str = ""
    unresolved: bool = False
    detail: str = ""


@dataclass
class ShowSpecies:
    location: Location
    species: List[Species]
    reason: Literal["new-list", "non-animal-input", "no-match"] = "new-list"


@dataclass
class NeedsAnimalLocation:
    animal: Species
    retry: bool = False
    detail: str = ""


@dataclass
class ShowOrganizations:
    animal: Species
    scope: str
    organizations: List[Organization] = field(default_factory=list)
    global_scope: bool = False


@dataclass
class TurnFailed:
    detail: str = ""
    collaborator: Optional[str] = None


ConversationOutcome = Union[
    NeedsLocation,
    DisambiguationPrompt,
    ShowSpecies,
    NeedsAnimalLocation,
    ShowOrganizations,
    TurnFailed,
]
